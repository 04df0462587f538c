import numpy as np
import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from compensation.benefits import BenefitsEngine
from compensation.currency import format_currency
from compensation.tax import TaxEngine
from compensation.tax_rules import BENCHMARK_MONTHLY_SALARIES


def rate_curve(engine: TaxEngine, tax_points: float, max_salary: float, steps: int = 200) -> pd.DataFrame:
    """Effective and marginal deduction rates across a range of monthly salaries."""
    salaries = np.linspace(1000, max_salary, steps)
    effective = []
    marginal = []
    for salary in salaries:
        breakdown = engine.compute_tax_breakdown(float(salary), tax_points)
        effective.append(breakdown.effective_tax_rate)
        marginal.append(breakdown.marginal_tax_rate)
    return pd.DataFrame({
        "Monthly Salary": salaries,
        "Effective Rate": np.array(effective) * 100,
        "Marginal Rate": np.array(marginal) * 100,
    })


def render_tax():
    st.header("Monthly Payroll Deductions")
    engine = TaxEngine()
    st.caption(f"Tax year {engine.rules.year}")

    col1, col2 = st.columns(2)
    with col1:
        salary = st.number_input("Gross Monthly Salary (₪)", min_value=0.0, value=25000.0, step=1000.0)
    with col2:
        married = st.checkbox("Married")
        children = st.number_input("Children", 0, 10, 0)
    tax_points = engine.tax_points_for(married=married, children=children)
    st.caption(f"Tax credit points: {tax_points:g}")

    breakdown = engine.compute_tax_breakdown(salary, tax_points)
    c1, c2, c3 = st.columns(3)
    c1.metric("Net Monthly", format_currency(breakdown.net_salary, "ILS"))
    c2.metric("Effective Rate", f"{breakdown.effective_tax_rate * 100:.1f}%")
    c3.metric("Marginal Rate", f"{breakdown.marginal_tax_rate * 100:.1f}%")

    st.dataframe(pd.DataFrame([
        ("Income Tax", breakdown.income_tax),
        ("Bituach Leumi", breakdown.bituach_leumi),
        ("Pension (employee)", breakdown.pension_contributions),
        ("Study Fund (employee)", breakdown.study_fund_contributions),
        ("Total Deductions", breakdown.total_deductions),
    ], columns=["Deduction", "Monthly (₪)"]))

    employer = engine.compute_employer_benefits_value(salary)
    st.caption(f"Employer pension + study fund: {format_currency(employer.total_employer_cost, 'ILS')} / month")

    curve = rate_curve(engine, tax_points, max(salary * 2, 60000))
    fig = go.Figure()
    fig.add_trace(go.Scatter(x=curve["Monthly Salary"], y=curve["Effective Rate"], name="Effective"))
    fig.add_trace(go.Scatter(x=curve["Monthly Salary"], y=curve["Marginal Rate"], name="Marginal", line=dict(dash="dot")))
    fig.add_vline(x=salary, line_dash="dash", line_color="gray")
    fig.update_layout(xaxis_title="Monthly Salary (₪)", yaxis_title="Rate (%)", hovermode="x unified")
    st.plotly_chart(fig, width='stretch')

    st.subheader("Benefits Benchmarks")
    benefits = BenefitsEngine(engine.rules)
    rows = []
    for role in BENCHMARK_MONTHLY_SALARIES:
        benchmark = benefits.get_benefits_benchmark(role)
        rows.append({
            "Role": role.title(),
            "Pension": benchmark.pension_contribution,
            "Study Fund": benchmark.study_fund_contribution,
            "Health": benchmark.health_insurance,
            "Total Benefits": benchmark.total_benefits_value,
        })
    st.dataframe(pd.DataFrame(rows))
