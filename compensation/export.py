"""
Plain-record views of packages and calculations, plus JSON / CSV export.

Dates are written as ISO strings; everything else maps straight onto JSON types.
"""

import json
import os
from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Dict, Optional

import pandas as pd

from compensation.currency import format_currency
from compensation.models import (
    BenefitsConfig,
    Bonus,
    CompensationCalculation,
    CompensationPackage,
    EquityConfig,
    EquityGrant,
    FlexibleWork,
    FundContribution,
    HealthInsurance,
    Laptop,
    Meals,
    PerksConfig,
    SalaryData,
    VestingSchedule,
)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def package_to_dict(package: CompensationPackage) -> Dict[str, Any]:
    return _jsonable(asdict(package))


def calculation_to_dict(calculation: CompensationCalculation) -> Dict[str, Any]:
    return _jsonable(asdict(calculation))


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _parse_date(value: str) -> date:
    return datetime.fromisoformat(value).date()


def package_from_dict(data: Dict[str, Any]) -> CompensationPackage:
    salary = dict(data["salary"])
    bonus = salary.pop("bonus", None)

    benefits = dict(data.get("benefits") or {})
    perks = dict(data.get("perks") or {})
    grants = (data.get("equity") or {}).get("grants", [])

    return CompensationPackage(
        id=data["id"],
        name=data.get("name", ""),
        salary=SalaryData(**salary, bonus=Bonus(**bonus) if bonus else None),
        benefits=BenefitsConfig(
            pension_fund=FundContribution(**benefits.pop("pension_fund", {"employee_contribution": 6.0,
                                                                          "employer_contribution": 6.0})),
            study_fund=FundContribution(**benefits.pop("study_fund", {"employee_contribution": 2.5,
                                                                      "employer_contribution": 7.5})),
            health_insurance=HealthInsurance(**benefits.pop("health_insurance", {})),
            **benefits,
        ),
        equity=EquityConfig(grants=[_grant_from_dict(grant) for grant in grants]),
        perks=PerksConfig(
            laptop=Laptop(**perks.pop("laptop", {})),
            meals=Meals(**perks.pop("meals", {})),
            flexible_work=FlexibleWork(**perks.pop("flexible_work", {})),
            **perks,
        ),
        created_at=_parse_datetime(data.get("created_at")),
        updated_at=_parse_datetime(data.get("updated_at")),
    )


def _grant_from_dict(data: Dict[str, Any]) -> EquityGrant:
    grant = dict(data)
    grant["grant_date"] = _parse_date(grant["grant_date"])
    grant["vesting_start"] = _parse_date(grant["vesting_start"])
    grant["vesting_schedule"] = VestingSchedule(**(grant.get("vesting_schedule") or {}))
    return EquityGrant(**grant)


def export_json(package: CompensationPackage,
                calculation: Optional[CompensationCalculation] = None,
                exported_at: Optional[datetime] = None) -> str:
    data = {
        "package": package_to_dict(package),
        "calculation": calculation_to_dict(calculation) if calculation else None,
        "exported_at": (exported_at or datetime.now()).isoformat(),
        "version": "1.0",
    }
    return json.dumps(data, indent=2, ensure_ascii=False)


def breakdown_dataframe(calculation: CompensationCalculation) -> pd.DataFrame:
    """One row per valued component, grouped by category."""
    rows = []
    for category, breakdown in calculation.breakdown.items():
        for name, component in breakdown.components.items():
            rows.append({
                "Category": category,
                "Component": name,
                "Value": component.value,
                "Method": component.method,
                "Assumptions": "; ".join(component.assumptions),
            })
    return pd.DataFrame(rows, columns=["Category", "Component", "Value", "Method", "Assumptions"])


def report_dataframe(package: CompensationPackage,
                     calculation: Optional[CompensationCalculation] = None) -> pd.DataFrame:
    salary = package.salary
    benefits = package.benefits
    perks = package.perks

    rows = [
        ("Package", "Name", package.name),
        ("Salary", "Base Salary", f"{salary.currency} {salary.base_salary:,.0f} ({salary.frequency})"),
    ]
    if salary.bonus:
        rows.append(("Salary", "Bonus", f"{salary.currency} {salary.bonus.amount:,.0f} ({salary.bonus.frequency})"))
        rows.append(("Salary", "Bonus Guaranteed", "Yes" if salary.bonus.guaranteed else "No"))

    rows += [
        ("Benefits", "Pension Employee %", f"{benefits.pension_fund.employee_contribution:g}"),
        ("Benefits", "Pension Employer %", f"{benefits.pension_fund.employer_contribution:g}"),
        ("Benefits", "Study Fund Employee %", f"{benefits.study_fund.employee_contribution:g}"),
        ("Benefits", "Study Fund Employer %", f"{benefits.study_fund.employer_contribution:g}"),
        ("Benefits", "Health Insurance Coverage", benefits.health_insurance.coverage),
        ("Benefits", "Vacation Days", f"{benefits.vacation_days:g}"),
        ("Benefits", "Sick Days", str(benefits.sick_days)),
        ("Benefits", "Parental Leave", f"{benefits.parental_leave:g} days"),
        ("Perks", "Laptop Provided", "Yes" if perks.laptop.provided else "No"),
        ("Perks", "Meals", f"{perks.meals.type} ({format_currency(perks.meals.value, 'ILS')}/month)"),
        ("Perks", "Transportation", f"{format_currency(perks.transportation, 'ILS')}/month"),
        ("Perks", "Learning Budget", f"{format_currency(perks.learning_budget, 'ILS')}/year"),
        ("Perks", "Remote Work Allowed", "Yes" if perks.flexible_work.remote_allowed else "No"),
    ]

    if calculation:
        tax = calculation.tax_implications
        rows += [
            ("Results", "Total Annual Compensation", format_currency(calculation.total_annual_compensation, "ILS")),
            ("Results", "Net Compensation", format_currency(calculation.net_compensation, "ILS")),
        ]
        for category, breakdown in calculation.breakdown.items():
            label = category.replace("_", " ").title()
            rows.append(("Breakdown", f"{label} Gross", format_currency(breakdown.gross, "ILS")))
            rows.append(("Breakdown", f"{label} Net", format_currency(breakdown.net, "ILS")))
        rows += [
            ("Tax", "Income Tax", format_currency(tax.income_tax, "ILS")),
            ("Tax", "Bituach Leumi", format_currency(tax.bituach_leumi, "ILS")),
            ("Tax", "Pension Contributions", format_currency(tax.pension_contributions, "ILS")),
            ("Tax", "Total Deductions", format_currency(tax.total_deductions, "ILS")),
            ("Tax", "Effective Tax Rate", f"{tax.effective_tax_rate * 100:.1f}%"),
        ]

    return pd.DataFrame(rows, columns=["Section", "Item", "Value"])


def export_csv(package: CompensationPackage,
               calculation: Optional[CompensationCalculation] = None,
               filepath: Optional[str] = None) -> str:
    """Returns the CSV text; also writes it when a filepath is given."""
    csv_text = report_dataframe(package, calculation).to_csv(index=False)
    if filepath:
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(csv_text)
    return csv_text


def export_filename(package_name: str, kind: str) -> str:
    slug = "-".join(package_name.lower().split()) or "package"
    return f"{slug}-compensation.{kind}"
