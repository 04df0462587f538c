import unittest
from datetime import date, datetime, timezone

from compensation.currency import CurrencyService, ExchangeRate, RateCache
from compensation.equity import EquityEngine, add_months
from compensation.models import EquityGrant, VestingSchedule

START = date(2024, 1, 15)
RATE = 3.75


class FixedSource:
    name = "fixed"

    def __init__(self, rate=RATE):
        self.rate = rate
        self.calls = 0

    def fetch(self, *args):
        self.calls += 1
        return ExchangeRate(rate=self.rate, last_updated=datetime(2024, 6, 1, tzinfo=timezone.utc), source=self.name)


def make_engine(source=None):
    service = CurrencyService(sources=[source or FixedSource()], cache=RateCache())
    return EquityEngine(service)


def make_grant(grant_type="RSU", amount=4800, price=10.0, strike=None, schedule=None, stage="public", **kwargs):
    return EquityGrant(
        id="g1",
        type=grant_type,
        amount=amount,
        grant_date=START,
        vesting_start=START,
        vesting_schedule=schedule or VestingSchedule(),
        strike_price=strike,
        current_stock_price=price,
        company_stage=stage,
        **kwargs,
    )


class TestVestingSchedule(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine()

    def test_should_release_cliff_tranche_then_quarterly(self):
        # Precondition
        grant = make_grant(amount=4800)

        # Under test
        events = self.engine.compute_vesting_schedule(grant)

        # Postcondition
        self.assertEqual(len(events), 16)
        self.assertEqual(events[0].date, date(2025, 1, 15))
        self.assertEqual(events[-1].date, date(2028, 10, 15))
        # Cliff tranche: the 4 quarters accrued during the cliff plus the first quarter
        self.assertAlmostEqual(events[0].shares_vested, 300 * (12 / 3 + 1))
        self.assertAlmostEqual(events[1].shares_vested, 300)
        self.assertAlmostEqual(events[-1].cumulative_shares, 4800)

    def test_should_keep_dates_non_decreasing_and_cumulative_monotone(self):
        events = self.engine.compute_vesting_schedule(make_grant(amount=1000))

        for earlier, later in zip(events, events[1:]):
            self.assertLessEqual(earlier.date, later.date)
            self.assertLessEqual(earlier.cumulative_shares, later.cumulative_shares)

    def test_should_vest_quarterly_from_start_without_cliff(self):
        events = self.engine.compute_vesting_schedule(
            make_grant(amount=1600, schedule=VestingSchedule(cliff_months=0)))

        self.assertEqual(events[0].date, date(2024, 1, 15))
        self.assertAlmostEqual(events[0].shares_vested, 100)

    def test_should_vest_everything_at_cliff(self):
        events = self.engine.compute_vesting_schedule(
            make_grant(amount=1000, schedule=VestingSchedule(type="cliff", cliff_months=12)))

        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].date, date(2025, 1, 15))
        self.assertEqual(events[0].shares_vested, 1000)
        self.assertEqual(events[0].cumulative_shares, 1000)

    def test_should_vest_custom_percentages_yearly(self):
        schedule = VestingSchedule(type="custom", cliff_months=12, percentages=[10, 20, 30, 40])

        events = self.engine.compute_vesting_schedule(make_grant(amount=1000, price=2.0, schedule=schedule))

        self.assertEqual([e.date for e in events],
                         [date(2025, 1, 15), date(2026, 1, 15), date(2027, 1, 15), date(2028, 1, 15)])
        for event, expected in zip(events, [100, 200, 300, 400]):
            self.assertAlmostEqual(event.shares_vested, expected)
        self.assertAlmostEqual(events[-1].cumulative_shares, 1000)
        self.assertAlmostEqual(events[0].estimated_value, 200)

    def test_should_pass_through_custom_percentages_not_summing_to_100(self):
        schedule = VestingSchedule(type="custom", cliff_months=0, percentages=[50, 30])

        events = self.engine.compute_vesting_schedule(make_grant(amount=1000, schedule=schedule))

        self.assertAlmostEqual(events[-1].cumulative_shares, 800)

    def test_should_produce_no_events_for_espp(self):
        self.assertEqual(self.engine.compute_vesting_schedule(make_grant("ESPP")), [])

    def test_should_clamp_month_end_dates(self):
        self.assertEqual(add_months(date(2024, 1, 31), 1), date(2024, 2, 29))
        self.assertEqual(add_months(date(2024, 11, 30), 3), date(2025, 2, 28))


class TestGrantValuation(unittest.TestCase):
    def setUp(self):
        self.source = FixedSource()
        self.engine = make_engine(self.source)

    def test_should_value_rsu_as_ordinary_income(self):
        valuation = self.engine.value_grant(make_grant("RSU", amount=100, price=10.0))

        self.assertAlmostEqual(valuation.current_value, 100 * 10 * RATE)
        self.assertAlmostEqual(valuation.post_tax_value, 3750 * 0.65)
        self.assertAlmostEqual(valuation.risk_adjusted_value, 3750)

    def test_should_apply_stage_discount_to_rsu(self):
        valuation = self.engine.value_grant(make_grant("RSU", amount=100, price=10.0, stage="startup"))

        self.assertAlmostEqual(valuation.risk_adjusted_value, 3750 * 0.3)

    def test_should_value_nqso_spread_as_ordinary_income(self):
        valuation = self.engine.value_grant(make_grant("NQSO", amount=100, price=30.0, strike=10.0))

        self.assertAlmostEqual(valuation.current_value, 2000 * RATE)
        self.assertAlmostEqual(valuation.post_tax_value, 7500 * 0.65)

    def test_should_value_iso_under_capital_gains(self):
        # Gain is well below the capital gains exemption
        valuation = self.engine.value_grant(make_grant("ISO", amount=100, price=30.0, strike=10.0))

        self.assertAlmostEqual(valuation.post_tax_value, 7500)

    def test_should_value_underwater_options_at_zero_without_rate_lookup(self):
        for price in (5.0, 10.0):
            valuation = self.engine.value_grant(make_grant("NQSO", amount=100, price=price, strike=10.0))
            self.assertEqual(valuation.current_value, 0)
            self.assertEqual(valuation.post_tax_value, 0)
            self.assertEqual(valuation.risk_adjusted_value, 0)

        self.assertEqual(self.source.calls, 0)

    def test_should_default_espp_purchase_price_to_85_percent(self):
        valuation = self.engine.value_grant(make_grant("ESPP", amount=100, price=100.0))

        self.assertAlmostEqual(valuation.current_value, 15 * 100 * RATE)
        self.assertAlmostEqual(valuation.post_tax_value, 5625 * 0.65)
        self.assertAlmostEqual(valuation.risk_adjusted_value, 5625)
        self.assertEqual(valuation.vesting_schedule, ())

    def test_should_prefer_explicit_espp_discount(self):
        grant = make_grant("ESPP", amount=100, price=100.0, strike=50.0, espp_discount_pct=10)

        self.assertAlmostEqual(EquityEngine.espp_purchase_price(grant), 90)

    def test_should_raise_given_unknown_grant_type(self):
        with self.assertRaises(ValueError):
            self.engine.value_grant(make_grant("PHANTOM"))

    def test_should_apply_risk_discount_factors(self):
        self.assertEqual(EquityEngine.apply_risk_discount(1000, "public"), 1000)
        self.assertAlmostEqual(EquityEngine.apply_risk_discount(1000, "pre-ipo"), 800)
        self.assertAlmostEqual(EquityEngine.apply_risk_discount(1000, "growth"), 600)
        self.assertAlmostEqual(EquityEngine.apply_risk_discount(1000, "startup"), 300)
        self.assertAlmostEqual(EquityEngine.apply_risk_discount(1000, "seed"), 500)

    def test_should_sum_post_tax_value_over_grants(self):
        grants = [make_grant("RSU", amount=100, price=10.0), make_grant("ESPP", amount=100, price=100.0)]

        self.assertAlmostEqual(self.engine.compute_post_tax_value(grants), 3750 * 0.65 + 5625 * 0.65)


class TestSummaries(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine()

    def test_should_find_next_vesting_event_after_today(self):
        # Precondition
        grants = [make_grant("RSU", amount=4800, price=10.0), make_grant("ESPP", amount=10, price=100.0)]

        # Under test
        summary = self.engine.summarize(grants, now=date(2025, 6, 1))

        # Postcondition
        self.assertEqual(summary.next_vesting_date, date(2025, 7, 15))
        self.assertAlmostEqual(summary.next_vesting_value, 300 * 10.0)
        self.assertEqual(len(summary.vesting_events), 16)
        self.assertAlmostEqual(summary.total_current_value, 48000 * RATE + 150 * RATE)

    def test_should_report_no_next_event_when_fully_vested(self):
        summary = self.engine.summarize([make_grant()], now=date(2030, 1, 1))

        self.assertIsNone(summary.next_vesting_date)
        self.assertEqual(summary.next_vesting_value, 0)

    def test_should_sum_events_in_target_year(self):
        value = self.engine.value_for_year([make_grant(amount=4800, price=10.0)], 1, now=date(2025, 6, 1))

        self.assertAlmostEqual(value, 4 * 300 * 10.0)

    def test_should_compute_espp_purchase(self):
        # 300000 ILS -> 80000 USD, 10% deducted, bought at 85
        purchase = self.engine.compute_espp_purchase(300000, 10, 15, 100)

        self.assertAlmostEqual(purchase.annual_contribution_usd, 8000)
        self.assertAlmostEqual(purchase.purchase_price, 85)
        self.assertAlmostEqual(purchase.shares_per_year, 8000 / 85)
        self.assertAlmostEqual(purchase.immediate_gain_usd, 8000 / 85 * 15)
        self.assertAlmostEqual(purchase.immediate_gain_ils, 8000 / 85 * 15 * RATE)

    def test_should_project_espp_purchase_from_grant_deduction(self):
        # Precondition
        grant = make_grant("ESPP", amount=100, price=100.0, espp_deduction_pct=10)

        # Under test
        purchase = self.engine.project_espp_purchase(grant, 300000)

        # Postcondition: default 15% discount, 8000 USD contributed
        self.assertAlmostEqual(purchase.purchase_price, 85)
        self.assertAlmostEqual(purchase.annual_contribution_usd, 8000)
        self.assertAlmostEqual(purchase.shares_per_year, 8000 / 85)

    def test_should_use_grant_discount_for_espp_projection(self):
        grant = make_grant("ESPP", amount=100, price=100.0, espp_deduction_pct=5, espp_discount_pct=10)

        purchase = self.engine.project_espp_purchase(grant, 300000)

        self.assertAlmostEqual(purchase.purchase_price, 90)
        self.assertAlmostEqual(purchase.shares_per_year, 4000 / 90)

    def test_should_not_project_espp_without_deduction_or_for_other_types(self):
        self.assertIsNone(self.engine.project_espp_purchase(make_grant("ESPP", price=100.0), 300000))
        self.assertIsNone(self.engine.project_espp_purchase(make_grant("RSU", espp_deduction_pct=10), 300000))


if __name__ == '__main__':
    unittest.main()
