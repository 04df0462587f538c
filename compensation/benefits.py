from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from compensation import tax_rules
from compensation.models import BenefitsConfig, ComponentBreakdown, ComponentValue, PerksConfig
from compensation.tax import MONTHS_PER_YEAR
from compensation.tax_rules import TaxYearRules


@dataclass(frozen=True)
class PerksValue:
    total_annual_value: float
    breakdown: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class BenefitsBenchmark:
    pension_contribution: float
    study_fund_contribution: float
    health_insurance: float
    vacation_days: float
    total_benefits_value: float


@dataclass(frozen=True)
class EmployerCost:
    base_salary: float
    mandatory_benefits: float
    additional_benefits: float
    total_cost: float
    cost_percentage: float


class BenefitsEngine:
    """Annual ILS value of employer-paid benefits and perks. All inputs are monthly ILS."""

    def __init__(self, rules: Optional[TaxYearRules] = None):
        self.rules = rules or tax_rules.get_rules()

    @staticmethod
    def daily_rate(monthly_salary: float) -> float:
        return (monthly_salary * MONTHS_PER_YEAR) / tax_rules.WORKING_DAYS_PER_YEAR

    def compute_pension_value(self, monthly_salary: float, employer_rate: Optional[float] = None) -> float:
        if employer_rate is None:
            employer_rate = self.rules.pension_employer_rate
        applicable = min(monthly_salary, self.rules.pension_ceiling)
        return applicable * employer_rate * MONTHS_PER_YEAR

    def compute_study_fund_value(self, monthly_salary: float, employer_rate: Optional[float] = None) -> float:
        if employer_rate is None:
            employer_rate = self.rules.study_fund_employer_rate
        applicable = min(monthly_salary, self.rules.study_fund_ceiling)
        return applicable * employer_rate * MONTHS_PER_YEAR

    def compute_health_insurance_value(self, coverage: str, employer_contribution: Optional[float] = None) -> float:
        if coverage == "none":
            return 0.0
        if employer_contribution is not None:
            return employer_contribution * MONTHS_PER_YEAR
        defaults = self.rules.health_insurance_contribution
        monthly = defaults["premium"] if coverage == "premium" else defaults["basic"]
        return monthly * MONTHS_PER_YEAR

    def compute_pto_value(self, monthly_salary: float, vacation_days: float) -> float:
        return self.daily_rate(monthly_salary) * vacation_days

    def compute_sick_days_value(self, monthly_salary: float, sick_days: Union[float, str]) -> float:
        """Only days beyond the legal minimum count, at half the daily rate."""
        if sick_days == "unlimited":
            days = tax_rules.UNLIMITED_SICK_DAYS_EQUIVALENT
        elif isinstance(sick_days, (int, float)) and sick_days > tax_rules.SICK_DAYS_LEGAL_MINIMUM:
            days = sick_days - tax_rules.SICK_DAYS_LEGAL_MINIMUM
        else:
            return 0.0
        return self.daily_rate(monthly_salary) * days * tax_rules.SICK_DAYS_VALUE_FACTOR

    def compute_parental_leave_value(self, monthly_salary: float, extra_days: float) -> float:
        if extra_days <= 0:
            return 0.0
        return self.daily_rate(monthly_salary) * extra_days * tax_rules.PARENTAL_LEAVE_VALUE_FACTOR

    def compute_perks_value(self, perks: PerksConfig) -> PerksValue:
        breakdown = {}

        if perks.laptop.provided:
            breakdown["laptop"] = perks.laptop.annual_value or tax_rules.LAPTOP_ANNUAL_VALUE

        monthly_stipends = {
            "internet_stipend": perks.internet_stipend,
            "phone_stipend": perks.phone_stipend,
            "gym_membership": perks.gym_membership,
            "meals": perks.meals.value if perks.meals.type != "none" else 0.0,
            "transportation": perks.transportation,
        }
        for name, monthly in monthly_stipends.items():
            if monthly and monthly > 0:
                breakdown[name] = monthly * MONTHS_PER_YEAR

        if perks.learning_budget and perks.learning_budget > 0:
            breakdown["learning_budget"] = perks.learning_budget

        # Remote work is worth the commute it saves
        if perks.flexible_work.remote_allowed:
            commute = tax_rules.TRANSPORTATION_TYPICAL * MONTHS_PER_YEAR
            hybrid_days = perks.flexible_work.hybrid_days
            breakdown["flexible_work"] = (hybrid_days / 5) * commute if hybrid_days else commute

        return PerksValue(total_annual_value=sum(breakdown.values()), breakdown=breakdown)

    def calculate_comprehensive_benefits(self, monthly_salary: float, benefits: BenefitsConfig) -> ComponentBreakdown:
        pension_pct = benefits.pension_fund.employer_contribution
        study_pct = benefits.study_fund.employer_contribution
        coverage = benefits.health_insurance.coverage

        components = {
            "pension_fund": ComponentValue(
                value=self.compute_pension_value(monthly_salary, pension_pct / 100),
                method="employer_contribution",
                assumptions=(f"Employer contribution: {pension_pct:g}%",),
            ),
            "study_fund": ComponentValue(
                value=self.compute_study_fund_value(monthly_salary, study_pct / 100),
                method="employer_contribution",
                assumptions=(f"Employer contribution: {study_pct:g}%",),
            ),
            "health_insurance": ComponentValue(
                value=self.compute_health_insurance_value(coverage, benefits.health_insurance.employer_contribution),
                method="employer_contribution",
                assumptions=(f"Coverage: {coverage}",),
            ),
            "vacation_days": ComponentValue(
                value=self.compute_pto_value(monthly_salary, benefits.vacation_days),
                method="daily_rate_calculation",
                assumptions=(f"{benefits.vacation_days:g} vacation days per year",),
            ),
        }

        sick_value = self.compute_sick_days_value(monthly_salary, benefits.sick_days)
        if sick_value > 0:
            components["sick_days"] = ComponentValue(
                value=sick_value,
                method="daily_rate_calculation",
                assumptions=("Valued at 50% of daily rate for days above legal minimum",),
            )

        parental_value = self.compute_parental_leave_value(monthly_salary, benefits.parental_leave)
        if parental_value > 0:
            components["parental_leave"] = ComponentValue(
                value=parental_value,
                method="daily_rate_calculation",
                assumptions=("Valued at 30% of daily rate for future conditional benefit",),
            )

        gross = sum(component.value for component in components.values())
        # Benefits are not taxed as employee income
        return ComponentBreakdown(gross=gross, net=gross, components=components)

    def get_benefits_benchmark(self, role: str) -> BenefitsBenchmark:
        monthly = tax_rules.BENCHMARK_MONTHLY_SALARIES.get(role.lower(), tax_rules.BENCHMARK_DEFAULT_MONTHLY_SALARY)
        vacation_days = tax_rules.VACATION_TECH_AVERAGE_DAYS

        pension = self.compute_pension_value(monthly)
        study_fund = self.compute_study_fund_value(monthly)
        health = self.compute_health_insurance_value("basic")

        return BenefitsBenchmark(
            pension_contribution=pension,
            study_fund_contribution=study_fund,
            health_insurance=health,
            vacation_days=vacation_days,
            total_benefits_value=pension + study_fund + health + self.compute_pto_value(monthly, vacation_days),
        )

    def compute_total_employer_cost(self, monthly_salary: float, benefits: BenefitsConfig) -> EmployerCost:
        annual_salary = monthly_salary * MONTHS_PER_YEAR
        mandatory = (
            self.compute_pension_value(monthly_salary, benefits.pension_fund.employer_contribution / 100)
            + self.compute_study_fund_value(monthly_salary, benefits.study_fund.employer_contribution / 100)
        )
        additional = self.compute_health_insurance_value(
            benefits.health_insurance.coverage,
            benefits.health_insurance.employer_contribution,
        )

        return EmployerCost(
            base_salary=annual_salary,
            mandatory_benefits=mandatory,
            additional_benefits=additional,
            total_cost=annual_salary + mandatory + additional,
            cost_percentage=(mandatory + additional) / annual_salary * 100 if annual_salary > 0 else 0.0,
        )
