from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple, Union

from compensation.currency import ExchangeRate
from compensation.tax import TaxBreakdown

# --- Inputs ---


@dataclass
class Bonus:
    amount: float
    frequency: str = "annual"  # 'quarterly' or 'annual'
    guaranteed: bool = False


@dataclass
class SalaryData:
    base_salary: float
    currency: str = "ILS"  # 'ILS' or 'USD'
    frequency: str = "monthly"  # 'monthly' or 'annual'
    bonus: Optional[Bonus] = None


@dataclass
class FundContribution:
    """Contribution percentages, e.g. 6.0 for 6%."""
    employee_contribution: float
    employer_contribution: float


@dataclass
class HealthInsurance:
    coverage: str = "basic"  # 'basic', 'premium' or 'none'
    employer_contribution: Optional[float] = None  # ILS monthly; None = tier default


@dataclass
class BenefitsConfig:
    pension_fund: FundContribution = field(default_factory=lambda: FundContribution(6.0, 6.0))
    study_fund: FundContribution = field(default_factory=lambda: FundContribution(2.5, 7.5))
    health_insurance: HealthInsurance = field(default_factory=HealthInsurance)
    vacation_days: float = 20
    sick_days: Union[float, str] = 18  # number of days or 'unlimited'
    parental_leave: float = 0  # extra days beyond the statutory minimum


@dataclass
class Laptop:
    provided: bool = False
    annual_value: Optional[float] = None


@dataclass
class Meals:
    type: str = "none"  # 'allowance', 'provided' or 'none'
    value: float = 0.0  # ILS monthly


@dataclass
class FlexibleWork:
    remote_allowed: bool = False
    hybrid_days: Optional[float] = None  # days per week at home


@dataclass
class PerksConfig:
    laptop: Laptop = field(default_factory=Laptop)
    internet_stipend: float = 0.0  # monthly ILS
    phone_stipend: float = 0.0
    gym_membership: float = 0.0
    meals: Meals = field(default_factory=Meals)
    transportation: float = 0.0
    learning_budget: float = 0.0  # annual ILS
    flexible_work: FlexibleWork = field(default_factory=FlexibleWork)


@dataclass
class VestingSchedule:
    type: str = "standard"  # 'standard', 'cliff' or 'custom'
    total_years: int = 4
    cliff_months: int = 12
    frequency: str = "quarterly"
    percentages: Optional[List[float]] = None  # custom schedules, one entry per year


@dataclass
class EquityGrant:
    """
    One grant of RSU, ISO, NQSO or ESPP.

    Prices are USD per share. For ESPP, either strike_price is the purchase
    price or espp_discount_pct sets it relative to the current price.
    """
    id: str
    type: str
    amount: float
    grant_date: date
    vesting_start: date
    vesting_schedule: VestingSchedule = field(default_factory=VestingSchedule)
    strike_price: Optional[float] = None
    current_stock_price: Optional[float] = None
    company_valuation: Optional[float] = None
    company_stage: Optional[str] = None  # 'startup', 'growth', 'pre-ipo' or 'public'
    espp_deduction_pct: Optional[float] = None
    espp_discount_pct: Optional[float] = None


@dataclass
class EquityConfig:
    grants: List[EquityGrant] = field(default_factory=list)


@dataclass
class CompensationPackage:
    id: str
    name: str
    salary: SalaryData
    benefits: BenefitsConfig = field(default_factory=BenefitsConfig)
    equity: EquityConfig = field(default_factory=EquityConfig)
    perks: PerksConfig = field(default_factory=PerksConfig)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- Results ---


@dataclass(frozen=True)
class ComponentValue:
    value: float
    method: str
    assumptions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ComponentBreakdown:
    gross: float
    net: float
    components: Dict[str, ComponentValue] = field(default_factory=dict)


EMPTY_BREAKDOWN = ComponentBreakdown(gross=0.0, net=0.0)


@dataclass(frozen=True)
class PackageBreakdown:
    base_salary: ComponentBreakdown
    benefits: ComponentBreakdown
    equity: ComponentBreakdown
    perks: ComponentBreakdown

    def items(self):
        return [
            ("base_salary", self.base_salary),
            ("benefits", self.benefits),
            ("equity", self.equity),
            ("perks", self.perks),
        ]


@dataclass(frozen=True)
class ExchangeRateSnapshot:
    usd_to_ils: ExchangeRate
    timestamp: datetime


@dataclass(frozen=True)
class CompensationCalculation:
    total_annual_compensation: float  # ILS gross
    breakdown: PackageBreakdown
    tax_implications: TaxBreakdown  # annual
    net_compensation: float
    exchange_rates: ExchangeRateSnapshot
    calculated_at: datetime


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: Tuple[str, ...] = ()
