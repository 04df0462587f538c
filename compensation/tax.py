from dataclasses import dataclass, replace
from typing import Optional, Sequence

from compensation import tax_rules
from compensation.tax_rules import TaxBracket, TaxYearRules

MONTHS_PER_YEAR = 12


@dataclass(frozen=True)
class Contributions:
    employee: float
    employer: float
    total: float


@dataclass(frozen=True)
class EmployerBenefitsValue:
    pension_contribution: float
    study_fund_contribution: float
    total_employer_cost: float


@dataclass(frozen=True)
class TaxBreakdown:
    income_tax: float
    bituach_leumi: float
    pension_contributions: float  # employee share
    study_fund_contributions: float  # employee share
    total_deductions: float
    effective_tax_rate: float
    marginal_tax_rate: float
    gross_salary: float
    net_salary: float


class TaxEngine:
    """
    Israeli payroll deductions for a monthly salary.

    Never raises on bad amounts: zero or negative salaries simply produce zero tax.
    """

    def __init__(self, rules: Optional[TaxYearRules] = None):
        self.rules = rules or tax_rules.get_rules()

    @property
    def default_tax_points(self) -> float:
        return self.rules.single_person_tax_points

    def tax_points_for(self, married: bool = False, children: int = 0) -> float:
        base = self.rules.married_person_tax_points if married else self.rules.single_person_tax_points
        return base + max(0, children) * self.rules.child_tax_points

    def _taxable_income(self, monthly_salary: float, tax_points: float) -> float:
        credit = tax_points * self.rules.tax_point_value
        return max(0.0, monthly_salary - credit)

    @staticmethod
    def _calculate_marginal_tax(taxable_income: float, brackets: Sequence[TaxBracket]) -> float:
        """
        Progressive tax: each bracket taxes only the slice of income inside [min, max).
        """
        current_tax = 0.0

        for bracket in brackets:
            if taxable_income <= bracket.min:
                break
            taxable_amount_in_bracket = min(taxable_income, bracket.max) - bracket.min
            current_tax += taxable_amount_in_bracket * bracket.rate

        return max(0.0, current_tax)

    def compute_income_tax(self, monthly_salary: float, tax_points: Optional[float] = None) -> float:
        if tax_points is None:
            tax_points = self.default_tax_points
        taxable_income = self._taxable_income(monthly_salary, tax_points)
        return self._calculate_marginal_tax(taxable_income, self.rules.brackets)

    def compute_social_security(self, monthly_salary: float) -> float:
        applicable = min(max(0.0, monthly_salary), self.rules.bituach_leumi_ceiling)
        return applicable * self.rules.bituach_leumi_rate

    def _contributions(self, monthly_salary: float, ceiling: float,
                       employee_rate: float, employer_rate: float) -> Contributions:
        applicable = min(max(0.0, monthly_salary), ceiling)
        employee = applicable * employee_rate
        employer = applicable * employer_rate
        return Contributions(employee=employee, employer=employer, total=employee + employer)

    def compute_pension_contributions(self, monthly_salary: float) -> Contributions:
        return self._contributions(
            monthly_salary,
            self.rules.pension_ceiling,
            self.rules.pension_employee_rate,
            self.rules.pension_employer_rate,
        )

    def compute_study_fund_contributions(self, monthly_salary: float) -> Contributions:
        return self._contributions(
            monthly_salary,
            self.rules.study_fund_ceiling,
            self.rules.study_fund_employee_rate,
            self.rules.study_fund_employer_rate,
        )

    def compute_capital_gains_tax(self, gains: float) -> float:
        if gains <= 0:
            return 0.0
        taxable_gains = max(0.0, gains - self.rules.capital_gains_exemption)
        return taxable_gains * self.rules.capital_gains_rate

    def _total_deductions(self, monthly_salary: float, tax_points: float) -> float:
        return (
            self.compute_income_tax(monthly_salary, tax_points)
            + self.compute_social_security(monthly_salary)
            + self.compute_pension_contributions(monthly_salary).employee
            + self.compute_study_fund_contributions(monthly_salary).employee
        )

    def compute_net_salary(self, gross_monthly_salary: float, tax_points: Optional[float] = None) -> float:
        if tax_points is None:
            tax_points = self.default_tax_points
        net = gross_monthly_salary - self._total_deductions(gross_monthly_salary, tax_points)
        return max(0.0, net)

    def compute_marginal_rate(self, monthly_salary: float, tax_points: Optional[float] = None) -> float:
        """Rate paid on the next shekel: income tax bracket plus any uncapped contributions."""
        if tax_points is None:
            tax_points = self.default_tax_points
        taxable_income = self._taxable_income(monthly_salary, tax_points)
        rules = self.rules

        for bracket in rules.brackets:
            if bracket.min <= taxable_income < bracket.max:
                bl_rate = rules.bituach_leumi_rate if monthly_salary < rules.bituach_leumi_ceiling else 0.0
                pension_rate = rules.pension_employee_rate if monthly_salary < rules.pension_ceiling else 0.0
                study_rate = rules.study_fund_employee_rate if monthly_salary < rules.study_fund_ceiling else 0.0
                return bracket.rate + bl_rate + pension_rate + study_rate

        top = rules.brackets[-1]
        return top.rate + rules.bituach_leumi_rate + rules.pension_employee_rate + rules.study_fund_employee_rate

    def compute_tax_breakdown(self, gross_monthly_salary: float, tax_points: Optional[float] = None) -> TaxBreakdown:
        if tax_points is None:
            tax_points = self.default_tax_points

        income_tax = self.compute_income_tax(gross_monthly_salary, tax_points)
        bituach_leumi = self.compute_social_security(gross_monthly_salary)
        pension = self.compute_pension_contributions(gross_monthly_salary)
        study_fund = self.compute_study_fund_contributions(gross_monthly_salary)

        total_deductions = income_tax + bituach_leumi + pension.employee + study_fund.employee

        return TaxBreakdown(
            income_tax=income_tax,
            bituach_leumi=bituach_leumi,
            pension_contributions=pension.employee,
            study_fund_contributions=study_fund.employee,
            total_deductions=total_deductions,
            effective_tax_rate=total_deductions / gross_monthly_salary if gross_monthly_salary > 0 else 0.0,
            marginal_tax_rate=self.compute_marginal_rate(gross_monthly_salary, tax_points),
            gross_salary=gross_monthly_salary,
            net_salary=max(0.0, gross_monthly_salary - total_deductions),
        )

    def compute_annual_tax_breakdown(self, monthly_salary: float, tax_points: Optional[float] = None) -> TaxBreakdown:
        """Monthly breakdown scaled to a year. Rates are left as-is."""
        monthly = self.compute_tax_breakdown(monthly_salary, tax_points)
        return annualize(monthly)

    def compute_employer_benefits_value(self, monthly_salary: float) -> EmployerBenefitsValue:
        pension = self.compute_pension_contributions(monthly_salary)
        study_fund = self.compute_study_fund_contributions(monthly_salary)
        return EmployerBenefitsValue(
            pension_contribution=pension.employer,
            study_fund_contribution=study_fund.employer,
            total_employer_cost=pension.employer + study_fund.employer,
        )


def annualize(breakdown: TaxBreakdown) -> TaxBreakdown:
    return replace(
        breakdown,
        income_tax=breakdown.income_tax * MONTHS_PER_YEAR,
        bituach_leumi=breakdown.bituach_leumi * MONTHS_PER_YEAR,
        pension_contributions=breakdown.pension_contributions * MONTHS_PER_YEAR,
        study_fund_contributions=breakdown.study_fund_contributions * MONTHS_PER_YEAR,
        total_deductions=breakdown.total_deductions * MONTHS_PER_YEAR,
        gross_salary=breakdown.gross_salary * MONTHS_PER_YEAR,
        net_salary=breakdown.net_salary * MONTHS_PER_YEAR,
    )
