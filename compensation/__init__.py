"""
Israeli total-compensation calculator.

Computes salary, benefits, equity and perks for a compensation package under
Israeli tax rules, normalised to annual ILS. For estimation purposes only.

Public classes are re-exported here.
"""

# Configuration
from compensation.tax_rules import (
    DEFAULT_TAX_YEAR,
    TAX_YEARS,
    TaxBracket,
    TaxYearRules,
    get_rules,
)

# Engines
from compensation.tax import TaxEngine, TaxBreakdown
from compensation.currency import (
    CurrencyConversionError,
    CurrencyService,
    ExchangeRate,
    RateCache,
    RateFetchError,
    format_currency,
)
from compensation.equity import EquityEngine, EquitySummary, EquityValuation, VestingEvent
from compensation.benefits import BenefitsEngine
from compensation.calculator import CalculationError, CompensationCalculator

# Models
from compensation.models import (
    BenefitsConfig,
    Bonus,
    CompensationCalculation,
    CompensationPackage,
    ComponentBreakdown,
    ComponentValue,
    EquityConfig,
    EquityGrant,
    FlexibleWork,
    FundContribution,
    HealthInsurance,
    Laptop,
    Meals,
    PerksConfig,
    SalaryData,
    ValidationResult,
    VestingSchedule,
)

__all__ = [
    # Configuration
    "DEFAULT_TAX_YEAR",
    "TAX_YEARS",
    "TaxBracket",
    "TaxYearRules",
    "get_rules",
    # Engines
    "TaxEngine",
    "TaxBreakdown",
    "CurrencyConversionError",
    "CurrencyService",
    "ExchangeRate",
    "RateCache",
    "RateFetchError",
    "format_currency",
    "EquityEngine",
    "EquitySummary",
    "EquityValuation",
    "VestingEvent",
    "BenefitsEngine",
    "CalculationError",
    "CompensationCalculator",
    # Models
    "BenefitsConfig",
    "Bonus",
    "CompensationCalculation",
    "CompensationPackage",
    "ComponentBreakdown",
    "ComponentValue",
    "EquityConfig",
    "EquityGrant",
    "FlexibleWork",
    "FundContribution",
    "HealthInsurance",
    "Laptop",
    "Meals",
    "PerksConfig",
    "SalaryData",
    "ValidationResult",
    "VestingSchedule",
]
