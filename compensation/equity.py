from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from compensation import tax_rules
from compensation.currency import CurrencyService
from compensation.models import EquityGrant
from compensation.tax import TaxEngine

TIME_VESTED_TYPES = ("RSU",)
OPTION_TYPES = ("ISO", "NQSO")
PURCHASE_PLAN_TYPES = ("ESPP",)
GRANT_TYPES = TIME_VESTED_TYPES + OPTION_TYPES + PURCHASE_PLAN_TYPES


@dataclass(frozen=True)
class VestingEvent:
    date: date
    shares_vested: float
    cumulative_shares: float
    estimated_value: float  # USD, at the grant's current stock price


@dataclass(frozen=True)
class EquityValuation:
    current_value: float  # ILS
    post_tax_value: float
    risk_adjusted_value: float
    vesting_schedule: Tuple[VestingEvent, ...]
    assumptions: Tuple[str, ...]


@dataclass(frozen=True)
class EquitySummary:
    total_current_value: float
    total_post_tax_value: float
    risk_adjusted_value: float
    vesting_events: Tuple[VestingEvent, ...]
    next_vesting_date: Optional[date]
    next_vesting_value: float
    assumptions: Tuple[str, ...]


@dataclass(frozen=True)
class EsppPurchase:
    purchase_price: float  # USD per share
    annual_contribution_usd: float
    shares_per_year: float
    immediate_gain_usd: float
    immediate_gain_ils: float


@dataclass(frozen=True)
class _GrantValue:
    current_value: float
    post_tax_value: float
    risk_adjusted_value: float
    assumptions: Tuple[str, ...]


def add_months(start: date, months: int) -> date:
    """Calendar month arithmetic; day-of-month is clamped to the target month's end."""
    return (pd.Timestamp(start) + pd.DateOffset(months=months)).date()


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _price(value: Optional[float]) -> float:
    return value or 0.0


class EquityEngine:
    """
    Values equity grants in ILS.

    Every grant type shares the same vesting projection; they differ only in how
    the current value is measured and taxed, which is looked up per type in
    self._valuators.
    """

    def __init__(self, currency_service: CurrencyService, tax_engine: Optional[TaxEngine] = None,
                 ordinary_income_rate: float = tax_rules.ORDINARY_INCOME_EQUITY_RATE):
        self.currency = currency_service
        self.tax_engine = tax_engine or TaxEngine()
        self.ordinary_income_rate = ordinary_income_rate
        self._valuators: Dict[str, Callable[[EquityGrant], _GrantValue]] = {
            "RSU": self._value_time_vested,
            "ISO": self._value_option,
            "NQSO": self._value_option,
            "ESPP": self._value_purchase_plan,
        }

    # --- Vesting ---

    def compute_vesting_schedule(self, grant: EquityGrant) -> List[VestingEvent]:
        schedule = grant.vesting_schedule
        # ESPP shares are bought outright, nothing to vest
        if grant.type in PURCHASE_PLAN_TYPES or schedule is None:
            return []

        price = _price(grant.current_stock_price)
        cliff_months = schedule.cliff_months or 0
        start = _as_date(grant.vesting_start)
        events = []

        if schedule.type == "standard":
            quarters = int(schedule.total_years * 4)
            if quarters <= 0:
                return events
            quarterly_shares = grant.amount / quarters

            for quarter in range(quarters):
                shares = quarterly_shares
                if quarter == 0 and cliff_months > 0:
                    # First tranche releases everything accrued during the cliff
                    shares = quarterly_shares * (cliff_months / 3 + 1)
                events.append(VestingEvent(
                    date=add_months(start, cliff_months + quarter * 3),
                    shares_vested=shares,
                    cumulative_shares=(quarter + 1) * quarterly_shares,
                    estimated_value=shares * price,
                ))

        elif schedule.type == "cliff":
            events.append(VestingEvent(
                date=add_months(start, cliff_months),
                shares_vested=grant.amount,
                cumulative_shares=grant.amount,
                estimated_value=grant.amount * price,
            ))

        elif schedule.type == "custom" and schedule.percentages:
            cumulative = 0.0
            for index, percentage in enumerate(schedule.percentages):
                shares = grant.amount * (percentage / 100)
                cumulative += shares
                events.append(VestingEvent(
                    date=add_months(start, cliff_months + index * 12),
                    shares_vested=shares,
                    cumulative_shares=cumulative,
                    estimated_value=shares * price,
                ))

        return events

    # --- Valuation ---

    @staticmethod
    def apply_risk_discount(value: float, company_stage: Optional[str]) -> float:
        factor = tax_rules.RISK_DISCOUNT_FACTORS.get(company_stage, tax_rules.UNKNOWN_STAGE_DISCOUNT_FACTOR)
        return value * factor

    def _to_ils(self, usd_amount: float) -> float:
        # Skips the rate lookup entirely for worthless grants
        if usd_amount <= 0:
            return 0.0
        return self.currency.convert(usd_amount, "USD", "ILS")

    def _risk_adjust(self, value: float, grant: EquityGrant) -> float:
        return self.apply_risk_discount(value, grant.company_stage or "public")

    def _value_time_vested(self, grant: EquityGrant) -> _GrantValue:
        price = _price(grant.current_stock_price)
        value_ils = self._to_ils(grant.amount * price)

        # Cost basis is the value at vesting, so this gain is zero until a
        # separate post-vesting basis is tracked.
        taxable_value_at_vesting = value_ils
        capital_gains = max(0.0, value_ils - taxable_value_at_vesting)
        total_tax = (taxable_value_at_vesting * self.ordinary_income_rate
                     + self.tax_engine.compute_capital_gains_tax(capital_gains))

        return _GrantValue(
            current_value=value_ils,
            post_tax_value=max(0.0, value_ils - total_tax),
            risk_adjusted_value=self._risk_adjust(value_ils, grant),
            assumptions=(
                f"RSU grant valued at current stock price of ${price:g}",
                "RSUs taxed as ordinary income at vesting",
            ),
        )

    def _value_option(self, grant: EquityGrant) -> _GrantValue:
        price = _price(grant.current_stock_price)
        strike = _price(grant.strike_price)
        intrinsic = max(0.0, price - strike)
        value_ils = self._to_ils(grant.amount * intrinsic)

        if grant.type == "ISO":
            post_tax = value_ils - self.tax_engine.compute_capital_gains_tax(value_ils)
            treatment = "ISO options assumed to qualify for capital gains treatment"
        else:
            post_tax = value_ils - value_ils * self.ordinary_income_rate
            treatment = "NQSO options: spread taxed as ordinary income"

        return _GrantValue(
            current_value=value_ils,
            post_tax_value=max(0.0, post_tax),
            risk_adjusted_value=self._risk_adjust(value_ils, grant),
            assumptions=(
                treatment,
                f"Options valued at intrinsic value: ${price:g} - ${strike:g} = ${intrinsic:g} per share",
            ),
        )

    @staticmethod
    def espp_purchase_price(grant: EquityGrant) -> float:
        price = _price(grant.current_stock_price)
        if grant.espp_discount_pct is not None:
            return price * (1 - grant.espp_discount_pct / 100)
        if grant.strike_price:
            return grant.strike_price
        return price * tax_rules.ESPP_DEFAULT_PRICE_RATIO

    def _value_purchase_plan(self, grant: EquityGrant) -> _GrantValue:
        price = _price(grant.current_stock_price)
        discount = price - self.espp_purchase_price(grant)
        value_ils = self._to_ils(grant.amount * discount)

        return _GrantValue(
            current_value=value_ils,
            post_tax_value=max(0.0, value_ils - value_ils * self.ordinary_income_rate),
            # Discounted purchase of liquid stock: no risk haircut
            risk_adjusted_value=value_ils,
            assumptions=(f"ESPP discount of ${discount:g} per share taxed as ordinary income",),
        )

    def value_grant(self, grant: EquityGrant) -> EquityValuation:
        valuator = self._valuators.get(grant.type)
        if valuator is None:
            raise ValueError(f"Unknown equity grant type: {grant.type}")
        value = valuator(grant)
        return EquityValuation(
            current_value=value.current_value,
            post_tax_value=value.post_tax_value,
            risk_adjusted_value=value.risk_adjusted_value,
            vesting_schedule=tuple(self.compute_vesting_schedule(grant)),
            assumptions=value.assumptions,
        )

    def value_grants(self, grants: Iterable[EquityGrant], types: Sequence[str] = GRANT_TYPES) -> EquityValuation:
        current = post_tax = risk_adjusted = 0.0
        events: List[VestingEvent] = []
        assumptions: List[str] = []

        for grant in grants:
            if grant.type not in types:
                continue
            valuation = self.value_grant(grant)
            current += valuation.current_value
            post_tax += valuation.post_tax_value
            risk_adjusted += valuation.risk_adjusted_value
            events.extend(valuation.vesting_schedule)
            assumptions.extend(valuation.assumptions)

        return EquityValuation(
            current_value=current,
            post_tax_value=post_tax,
            risk_adjusted_value=risk_adjusted,
            vesting_schedule=tuple(sorted(events, key=lambda e: e.date)),
            assumptions=tuple(assumptions),
        )

    def value_time_vested_grants(self, grants: Iterable[EquityGrant]) -> EquityValuation:
        return self.value_grants(grants, TIME_VESTED_TYPES)

    def value_option_grants(self, grants: Iterable[EquityGrant]) -> EquityValuation:
        return self.value_grants(grants, OPTION_TYPES)

    def value_purchase_plan_grants(self, grants: Iterable[EquityGrant]) -> EquityValuation:
        return self.value_grants(grants, PURCHASE_PLAN_TYPES)

    def compute_post_tax_value(self, grants: Iterable[EquityGrant]) -> float:
        return self.value_grants(grants).post_tax_value

    # --- Summaries ---

    def summarize(self, grants: Sequence[EquityGrant], now: Optional[date] = None) -> EquitySummary:
        today = _as_date(now) if now is not None else date.today()
        rsu = self.value_time_vested_grants(grants)
        options = self.value_option_grants(grants)
        espp = self.value_purchase_plan_grants(grants)

        events = sorted(rsu.vesting_schedule + options.vesting_schedule, key=lambda e: e.date)
        future_events = [event for event in events if event.date > today]
        next_event = future_events[0] if future_events else None

        return EquitySummary(
            total_current_value=rsu.current_value + options.current_value + espp.current_value,
            total_post_tax_value=rsu.post_tax_value + options.post_tax_value + espp.post_tax_value,
            risk_adjusted_value=rsu.risk_adjusted_value + options.risk_adjusted_value + espp.risk_adjusted_value,
            vesting_events=tuple(events),
            next_vesting_date=next_event.date if next_event else None,
            next_vesting_value=next_event.estimated_value if next_event else 0.0,
            assumptions=rsu.assumptions + options.assumptions + espp.assumptions + (
                "All values converted to ILS using current exchange rates",
                f"Tax calculations based on {self.tax_engine.rules.year} Israeli tax law",
            ),
        )

    def value_for_year(self, grants: Iterable[EquityGrant], year_offset: int, now: Optional[date] = None) -> float:
        """Estimated value (USD) of everything vesting in calendar year now.year + year_offset."""
        today = _as_date(now) if now is not None else date.today()
        target_year = today.year + year_offset
        return sum(
            event.estimated_value
            for grant in grants
            for event in self.compute_vesting_schedule(grant)
            if event.date.year == target_year
        )

    def compute_espp_purchase(self, annual_salary_ils: float, deduction_pct: float,
                              discount_pct: float, current_price: float) -> EsppPurchase:
        """Shares bought in one year of payroll deductions and the gain locked in at purchase."""
        salary_usd = self.currency.convert(annual_salary_ils, "ILS", "USD")
        contribution = salary_usd * deduction_pct / 100
        purchase_price = current_price * (1 - discount_pct / 100)
        shares = contribution / purchase_price if purchase_price > 0 else 0.0
        gain_usd = shares * (current_price - purchase_price)

        return EsppPurchase(
            purchase_price=purchase_price,
            annual_contribution_usd=contribution,
            shares_per_year=shares,
            immediate_gain_usd=gain_usd,
            immediate_gain_ils=self._to_ils(gain_usd),
        )

    def project_espp_purchase(self, grant: EquityGrant, annual_salary_ils: float) -> Optional[EsppPurchase]:
        """One year of purchases under the grant's own deduction and discount; None when not applicable."""
        price = _price(grant.current_stock_price)
        if grant.type not in PURCHASE_PLAN_TYPES or not grant.espp_deduction_pct or price <= 0:
            return None
        discount_pct = (1 - self.espp_purchase_price(grant) / price) * 100
        return self.compute_espp_purchase(annual_salary_ils, grant.espp_deduction_pct, discount_pct, price)
