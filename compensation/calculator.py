import logging
from collections import OrderedDict
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from compensation import tax_rules
from compensation.benefits import BenefitsEngine
from compensation.currency import CurrencyService, format_currency, utc_now
from compensation.equity import OPTION_TYPES, EquityEngine
from compensation.models import (
    EMPTY_BREAKDOWN,
    BenefitsConfig,
    CompensationCalculation,
    CompensationPackage,
    ComponentBreakdown,
    ComponentValue,
    EquityConfig,
    ExchangeRateSnapshot,
    PackageBreakdown,
    PerksConfig,
    SalaryData,
    ValidationResult,
)
from compensation.tax import MONTHS_PER_YEAR, TaxEngine
from compensation.tax_rules import TaxYearRules

logger = logging.getLogger(__name__)

CALCULATION_FAILED_MESSAGE = "Failed to calculate compensation. Please check your inputs and try again."

# Rough equity guess for live previews
QUICK_EQUITY_SHARE_OF_SALARY = 0.3

BONUS_MULTIPLIERS = {"quarterly": 4, "annual": 1}


class CalculationError(RuntimeError):
    """Opaque failure of a full compensation calculation."""


class CompensationCalculator:
    """
    Turns a CompensationPackage into a CompensationCalculation.

    All money in the result is annual ILS. The exchange rate is looked up
    through the currency service, so repeated calls within the cache window
    share a single fetch.
    """

    def __init__(self,
                 currency_service: Optional[CurrencyService] = None,
                 rules: Optional[TaxYearRules] = None,
                 tax_points: Optional[float] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.rules = rules or tax_rules.get_rules()
        self.currency = currency_service or CurrencyService()
        self.tax_engine = TaxEngine(self.rules)
        self.benefits_engine = BenefitsEngine(self.rules)
        self.equity_engine = EquityEngine(self.currency, self.tax_engine)
        self.tax_points = tax_points if tax_points is not None else self.rules.single_person_tax_points
        self.clock = clock

    def calculate_total_compensation(self, package: CompensationPackage) -> CompensationCalculation:
        try:
            return self._calculate(package)
        except Exception as exc:
            logger.exception("Error calculating total compensation for package %s", getattr(package, "id", None))
            raise CalculationError(CALCULATION_FAILED_MESSAGE) from exc

    def _calculate(self, package: CompensationPackage) -> CompensationCalculation:
        exchange_rate = self.currency.get_current_rate()
        now = self.clock()

        annual_salary_ils = self._annual_salary_ils(package.salary)
        monthly_salary_ils = annual_salary_ils / MONTHS_PER_YEAR

        breakdown = PackageBreakdown(
            base_salary=self._base_salary_breakdown(package.salary, annual_salary_ils),
            benefits=self._benefits_breakdown(monthly_salary_ils, package.benefits),
            equity=self._equity_breakdown(package.equity, now, annual_salary_ils),
            perks=self._perks_breakdown(package.perks),
        )
        tax_breakdown = self.tax_engine.compute_annual_tax_breakdown(monthly_salary_ils, self.tax_points)

        total_gross = sum(component.gross for _, component in breakdown.items())
        total_net = sum(component.net for _, component in breakdown.items())

        return CompensationCalculation(
            total_annual_compensation=total_gross,
            breakdown=breakdown,
            tax_implications=tax_breakdown,
            net_compensation=total_net,
            exchange_rates=ExchangeRateSnapshot(usd_to_ils=exchange_rate, timestamp=now),
            calculated_at=now,
        )

    def _annual_bonus(self, salary: SalaryData) -> float:
        if salary.bonus is None:
            return 0.0
        bonus = salary.bonus.amount * BONUS_MULTIPLIERS.get(salary.bonus.frequency, 1)
        return self.currency.convert(bonus, salary.currency, "ILS")

    def _annual_salary_ils(self, salary: SalaryData) -> float:
        """Base pay plus bonus, annualised and converted to ILS."""
        base = salary.base_salary
        if salary.frequency == "monthly":
            base = base * MONTHS_PER_YEAR
        base = self.currency.convert(base, salary.currency, "ILS")
        return base + self._annual_bonus(salary)

    def _base_salary_breakdown(self, salary: SalaryData, annual_salary_ils: float) -> ComponentBreakdown:
        monthly = annual_salary_ils / MONTHS_PER_YEAR
        annual_net = self.tax_engine.compute_net_salary(monthly, self.tax_points) * MONTHS_PER_YEAR

        components = {
            "base_salary": ComponentValue(
                value=annual_salary_ils,
                method="annual_salary_calculation",
                assumptions=(
                    f"Original currency: {salary.currency}",
                    f"Frequency: {salary.frequency}",
                    "Converted to ILS using current exchange rate" if salary.currency == "USD" else "Already in ILS",
                ),
            )
        }

        if salary.bonus is not None:
            components["bonus"] = ComponentValue(
                value=self._annual_bonus(salary),
                method="bonus_calculation",
                assumptions=(
                    f"{salary.bonus.frequency} bonus",
                    "Guaranteed bonus" if salary.bonus.guaranteed else "Performance-based bonus",
                ),
            )

        return ComponentBreakdown(gross=annual_salary_ils, net=annual_net, components=components)

    def _benefits_breakdown(self, monthly_salary_ils: float, benefits: BenefitsConfig) -> ComponentBreakdown:
        return self.benefits_engine.calculate_comprehensive_benefits(monthly_salary_ils, benefits)

    def _equity_breakdown(self, equity: EquityConfig, now: datetime, annual_salary_ils: float) -> ComponentBreakdown:
        grants = equity.grants
        if not grants:
            return EMPTY_BREAKDOWN

        summary = self.equity_engine.summarize(grants, now=now)

        grants_by_type: Dict[str, List] = OrderedDict()
        for grant in grants:
            grants_by_type.setdefault(grant.type, []).append(grant)

        components = {}
        for grant_type, typed_grants in grants_by_type.items():
            valuation = self.equity_engine.value_grants(typed_grants, (grant_type,))
            if valuation.current_value > 0:
                components[grant_type.lower()] = ComponentValue(
                    value=valuation.current_value,
                    method="equity_valuation",
                    assumptions=valuation.assumptions + self._espp_purchase_notes(typed_grants, annual_salary_ils),
                )

        return ComponentBreakdown(
            gross=summary.total_current_value,
            net=summary.total_post_tax_value,
            components=components,
        )

    def _espp_purchase_notes(self, grants: List, annual_salary_ils: float) -> Tuple[str, ...]:
        notes = []
        for grant in grants:
            purchase = self.equity_engine.project_espp_purchase(grant, annual_salary_ils)
            if purchase is None:
                continue
            notes.append(
                f"ESPP: {grant.espp_deduction_pct:g}% of salary buys {purchase.shares_per_year:,.1f} shares/year "
                f"at ${purchase.purchase_price:,.2f}, immediate gain {format_currency(purchase.immediate_gain_ils, 'ILS')}"
            )
        return tuple(notes)

    def _perks_breakdown(self, perks: PerksConfig) -> ComponentBreakdown:
        perks_value = self.benefits_engine.compute_perks_value(perks)
        components = {
            name: ComponentValue(
                value=value,
                method="annual_value_calculation",
                assumptions=("Valued at market rate or stipend amount",),
            )
            for name, value in perks_value.breakdown.items()
            if value > 0
        }
        # Perks are not taxed directly
        return ComponentBreakdown(
            gross=perks_value.total_annual_value,
            net=perks_value.total_annual_value,
            components=components,
        )

    def calculate_quick_total(self, monthly_salary: float, currency: str,
                              has_equity: bool = False, has_benefits: bool = True) -> float:
        """Cheap preview of the annual total. Returns 0 on any failure."""
        try:
            monthly_ils = self.currency.convert(monthly_salary, currency, "ILS")
            annual_ils = monthly_ils * MONTHS_PER_YEAR

            benefits_value = 0.0
            if has_benefits:
                benefits_value = (
                    self.benefits_engine.compute_pension_value(monthly_ils)
                    + self.benefits_engine.compute_study_fund_value(monthly_ils)
                    + self.benefits_engine.compute_health_insurance_value("basic")
                )

            equity_value = annual_ils * QUICK_EQUITY_SHARE_OF_SALARY if has_equity else 0.0
            return annual_ils + benefits_value + equity_value
        except Exception:
            logger.exception("Quick calculation failed")
            return 0.0

    def validate_inputs(self, package: CompensationPackage) -> ValidationResult:
        errors = []
        salary = package.salary

        if not salary.base_salary or salary.base_salary <= 0:
            errors.append("Base salary must be greater than 0")

        threshold = tax_rules.UNUSUAL_MONTHLY_SALARY.get(salary.currency)
        if threshold is not None and salary.base_salary and salary.base_salary > threshold:
            if salary.currency == "ILS":
                errors.append("Monthly salary seems unusually high. Please verify the amount.")
            else:
                errors.append(f"Monthly salary in {salary.currency} seems unusually high. Please verify the amount.")

        benefits = package.benefits
        low, high = tax_rules.PENSION_EMPLOYER_PCT_RANGE
        if not low <= benefits.pension_fund.employer_contribution <= high:
            errors.append(f"Pension fund employer contribution should be between {low}% and {high}%")

        low, high = tax_rules.STUDY_FUND_EMPLOYER_PCT_RANGE
        if not low <= benefits.study_fund.employer_contribution <= high:
            errors.append(f"Study fund employer contribution should be between {low}% and {high}%")

        low, high = tax_rules.VACATION_DAYS_RANGE
        if not low <= benefits.vacation_days <= high:
            errors.append(f"Vacation days should be between {low} and {high}")

        for grant in package.equity.grants:
            if grant.amount <= 0:
                errors.append("Equity grant amount must be greater than 0")
            if grant.type in OPTION_TYPES and (grant.strike_price is None or grant.strike_price < 0):
                errors.append("Strike price is required for stock options")
            if grant.current_stock_price is not None and grant.current_stock_price < 0:
                errors.append("Current stock price must be positive")

        return ValidationResult(is_valid=not errors, errors=tuple(errors))

    @staticmethod
    def generate_summary_stats(calculation: CompensationCalculation) -> Dict[str, float]:
        total = calculation.total_annual_compensation
        breakdown = calculation.breakdown

        def share(value: float) -> float:
            return value / total * 100 if total > 0 else 0.0

        return {
            "total_compensation": total,
            "net_compensation": calculation.net_compensation,
            "effective_tax_rate": calculation.tax_implications.effective_tax_rate,
            "salary_percentage": share(breakdown.base_salary.gross),
            "benefits_percentage": share(breakdown.benefits.gross),
            "equity_percentage": share(breakdown.equity.gross),
            "perks_percentage": share(breakdown.perks.gross),
        }
