import json
import os
import tempfile
import unittest
from datetime import date, datetime, timezone

from compensation import export
from compensation.calculator import CompensationCalculator
from compensation.currency import CurrencyService, ExchangeRate, RateCache
from compensation.models import (
    BenefitsConfig,
    Bonus,
    CompensationPackage,
    EquityConfig,
    EquityGrant,
    FlexibleWork,
    Laptop,
    PerksConfig,
    SalaryData,
    VestingSchedule,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FixedSource:
    name = "fixed"

    def fetch(self):
        return ExchangeRate(rate=3.75, last_updated=NOW, source=self.name)


def make_package():
    return CompensationPackage(
        id="pkg-1",
        name="Big Offer",
        salary=SalaryData(base_salary=30000, bonus=Bonus(40000, guaranteed=True)),
        benefits=BenefitsConfig(sick_days="unlimited", parental_leave=5),
        equity=EquityConfig(grants=[EquityGrant(
            id="g1",
            type="RSU",
            amount=1000,
            grant_date=date(2024, 1, 1),
            vesting_start=date(2024, 2, 1),
            vesting_schedule=VestingSchedule(type="custom", percentages=[25, 25, 25, 25]),
            current_stock_price=20.0,
            company_stage="growth",
        )]),
        perks=PerksConfig(laptop=Laptop(provided=True), flexible_work=FlexibleWork(True, 2)),
        created_at=datetime(2024, 5, 1, 9, 30),
    )


def calculate(package):
    service = CurrencyService(sources=[FixedSource()], cache=RateCache(clock=lambda: NOW))
    return CompensationCalculator(service, clock=lambda: NOW).calculate_total_compensation(package)


class TestRecords(unittest.TestCase):
    def test_should_restore_package_from_its_record(self):
        package = make_package()

        restored = export.package_from_dict(json.loads(json.dumps(export.package_to_dict(package))))

        self.assertEqual(restored, package)

    def test_should_write_dates_as_iso_strings(self):
        record = export.package_to_dict(make_package())

        self.assertEqual(record["equity"]["grants"][0]["grant_date"], "2024-01-01")
        self.assertEqual(record["created_at"], "2024-05-01T09:30:00")
        self.assertIsNone(record["updated_at"])

    def test_should_serialize_calculation_to_plain_json(self):
        calc = calculate(make_package())

        record = json.loads(json.dumps(export.calculation_to_dict(calc)))

        self.assertEqual(record["calculated_at"], NOW.isoformat())
        self.assertEqual(record["exchange_rates"]["usd_to_ils"]["rate"], 3.75)
        self.assertIn("rsu", record["breakdown"]["equity"]["components"])
        self.assertAlmostEqual(record["total_annual_compensation"], calc.total_annual_compensation)


class TestExport(unittest.TestCase):
    def setUp(self):
        self.package = make_package()
        self.calc = calculate(self.package)

    def test_should_export_json_document(self):
        exported = json.loads(export.export_json(self.package, self.calc, exported_at=NOW))

        self.assertEqual(exported["version"], "1.0")
        self.assertEqual(exported["exported_at"], NOW.isoformat())
        self.assertEqual(exported["package"]["name"], "Big Offer")
        self.assertIsNotNone(exported["calculation"])

    def test_should_export_json_without_calculation(self):
        exported = json.loads(export.export_json(self.package))

        self.assertIsNone(exported["calculation"])

    def test_should_list_every_component_in_breakdown_frame(self):
        df = export.breakdown_dataframe(self.calc)

        self.assertEqual(list(df.columns), ["Category", "Component", "Value", "Method", "Assumptions"])
        expected_rows = sum(len(b.components) for _, b in self.calc.breakdown.items())
        self.assertEqual(len(df), expected_rows)
        self.assertAlmostEqual(df.loc[df["Category"] == "benefits", "Value"].sum(), self.calc.breakdown.benefits.gross)

    def test_should_write_csv_report(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "out", "report.csv")

            csv_text = export.export_csv(self.package, self.calc, filepath=path)

            with open(path, encoding="utf-8") as f:
                self.assertEqual(f.read(), csv_text)
        self.assertTrue(csv_text.startswith("Section,Item,Value"))
        self.assertIn("Total Annual Compensation", csv_text)
        self.assertIn("Bonus Guaranteed,Yes", csv_text)

    def test_should_omit_results_without_calculation(self):
        csv_text = export.export_csv(self.package)

        self.assertNotIn("Total Annual Compensation", csv_text)

    def test_should_slugify_export_filename(self):
        self.assertEqual(export.export_filename("Big Offer", "csv"), "big-offer-compensation.csv")
        self.assertEqual(export.export_filename("  ", "json"), "package-compensation.json")


if __name__ == '__main__':
    unittest.main()
