# Israeli Tax Constants (2024)
# All monetary values are ILS unless the name says otherwise.

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

DEFAULT_TAX_YEAR = 2024


@dataclass(frozen=True)
class TaxBracket:
    min: float
    max: float  # float('inf') for the top bracket
    rate: float


# Income Tax Brackets (monthly)
INCOME_TAX_BRACKETS_2024 = (
    TaxBracket(0,     7010,         0.10),
    TaxBracket(7010,  10060,        0.14),
    TaxBracket(10060, 16150,        0.20),
    TaxBracket(16150, 21240,        0.31),
    TaxBracket(21240, 42480,        0.35),
    TaxBracket(42480, 54130,        0.47),
    TaxBracket(54130, float('inf'), 0.50),
)

# Bituach Leumi (Social Security)
BITUACH_LEUMI_RATE_2024 = 0.04
BITUACH_LEUMI_MONTHLY_CEILING_2024 = 47220
MINIMUM_WAGE_MONTHLY_2024 = 5880

# Pension Fund (mandatory)
PENSION_EMPLOYEE_RATE_2024 = 0.06
PENSION_EMPLOYER_RATE_2024 = 0.06
PENSION_MONTHLY_CEILING_2024 = 42480

# Study Fund (Keren Hishtalmut)
STUDY_FUND_EMPLOYEE_RATE_2024 = 0.025
STUDY_FUND_EMPLOYER_RATE_2024 = 0.075
STUDY_FUND_MONTHLY_CEILING_2024 = 33500

# Capital Gains
CAPITAL_GAINS_RATE_2024 = 0.25
CAPITAL_GAINS_EXEMPTION_2024 = 680000  # annual

# Tax Points (nekudot zikui)
TAX_POINT_VALUE_2024 = 245  # monthly credit per point
SINGLE_PERSON_TAX_POINTS = 2.25
MARRIED_PERSON_TAX_POINTS = 3.5
CHILD_TAX_POINTS = 1.0

# Flat rate used for equity taxed as ordinary income
ORDINARY_INCOME_EQUITY_RATE = 0.35

# Health insurance, typical employer contribution per month
HEALTH_INSURANCE_EMPLOYER_CONTRIBUTION_2024 = {
    "basic": 150,
    "premium": 300,
}

# Vacation / leave valuation
VACATION_LEGAL_MINIMUM_DAYS = 14
VACATION_TECH_AVERAGE_DAYS = 20
WORKING_DAYS_PER_YEAR = 250
SICK_DAYS_LEGAL_MINIMUM = 7
UNLIMITED_SICK_DAYS_EQUIVALENT = 10
SICK_DAYS_VALUE_FACTOR = 0.5       # conditional benefit
PARENTAL_LEAVE_VALUE_FACTOR = 0.3  # future conditional benefit

# Tech perk benchmarks (monthly unless noted)
LAPTOP_ANNUAL_VALUE = 8000
INTERNET_STIPEND_TYPICAL = 100
PHONE_STIPEND_TYPICAL = 150
GYM_MEMBERSHIP_TYPICAL = 200
MEAL_ALLOWANCE_BASIC = 500
TRANSPORTATION_TYPICAL = 300
LEARNING_BUDGET_TYPICAL = 5000  # annual

# Monthly salary benchmarks used for benefits comparison
BENCHMARK_MONTHLY_SALARIES = {
    "junior": 20000,
    "senior": 32000,
    "lead": 42000,
    "principal": 55000,
    "manager": 52000,
}
BENCHMARK_DEFAULT_MONTHLY_SALARY = 30000

# Equity risk discount by company stage
RISK_DISCOUNT_FACTORS = {
    "startup": 0.3,
    "growth": 0.6,
    "pre-ipo": 0.8,
    "public": 1.0,
}
UNKNOWN_STAGE_DISCOUNT_FACTOR = 0.5

# ESPP purchase price when no discount is configured
ESPP_DEFAULT_PRICE_RATIO = 0.85

# Input plausibility limits (monthly salary)
UNUSUAL_MONTHLY_SALARY = {
    "ILS": 200000,
    "USD": 50000,
}
PENSION_EMPLOYER_PCT_RANGE = (0, 10)
STUDY_FUND_EMPLOYER_PCT_RANGE = (0, 15)
VACATION_DAYS_RANGE = (0, 50)

# Exchange rate fallback, used only when every source fails
FALLBACK_USD_TO_ILS = 3.7
FALLBACK_RATE_DATE = "2024-01-01"


@dataclass(frozen=True)
class TaxYearRules:
    """Every rate, ceiling and table that changes from one tax year to the next."""
    year: int
    brackets: Tuple[TaxBracket, ...]
    tax_point_value: float
    bituach_leumi_rate: float
    bituach_leumi_ceiling: float
    pension_employee_rate: float
    pension_employer_rate: float
    pension_ceiling: float
    study_fund_employee_rate: float
    study_fund_employer_rate: float
    study_fund_ceiling: float
    capital_gains_rate: float
    capital_gains_exemption: float
    health_insurance_contribution: Dict[str, float] = field(default_factory=dict)
    single_person_tax_points: float = SINGLE_PERSON_TAX_POINTS
    married_person_tax_points: float = MARRIED_PERSON_TAX_POINTS
    child_tax_points: float = CHILD_TAX_POINTS


RULES_2024 = TaxYearRules(
    year=2024,
    brackets=INCOME_TAX_BRACKETS_2024,
    tax_point_value=TAX_POINT_VALUE_2024,
    bituach_leumi_rate=BITUACH_LEUMI_RATE_2024,
    bituach_leumi_ceiling=BITUACH_LEUMI_MONTHLY_CEILING_2024,
    pension_employee_rate=PENSION_EMPLOYEE_RATE_2024,
    pension_employer_rate=PENSION_EMPLOYER_RATE_2024,
    pension_ceiling=PENSION_MONTHLY_CEILING_2024,
    study_fund_employee_rate=STUDY_FUND_EMPLOYEE_RATE_2024,
    study_fund_employer_rate=STUDY_FUND_EMPLOYER_RATE_2024,
    study_fund_ceiling=STUDY_FUND_MONTHLY_CEILING_2024,
    capital_gains_rate=CAPITAL_GAINS_RATE_2024,
    capital_gains_exemption=CAPITAL_GAINS_EXEMPTION_2024,
    health_insurance_contribution=HEALTH_INSURANCE_EMPLOYER_CONTRIBUTION_2024,
)

TAX_YEARS = {
    2024: RULES_2024,
}


def get_rules(year: Optional[int] = None) -> TaxYearRules:
    year = DEFAULT_TAX_YEAR if year is None else year
    try:
        return TAX_YEARS[year]
    except KeyError:
        supported = ", ".join(str(y) for y in sorted(TAX_YEARS))
        raise KeyError(f"No tax rules for {year}. Supported years: {supported}") from None
