import uuid
from datetime import date

import pandas as pd
import plotly.express as px
import streamlit as st

from compensation import export, persistence
from compensation.calculator import CalculationError
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
from ui.utils import get_calculator


def _salary_inputs() -> SalaryData:
    st.subheader("Salary")
    c1, c2 = st.columns(2)
    with c1:
        base = st.number_input("Base Salary", min_value=0.0, value=30000.0, step=1000.0)
        currency = st.selectbox("Currency", ["ILS", "USD"])
    with c2:
        frequency = st.selectbox("Frequency", ["monthly", "annual"])
        bonus_amount = st.number_input("Bonus Amount", min_value=0.0, value=0.0, step=1000.0)
        bonus_frequency = st.selectbox("Bonus Frequency", ["annual", "quarterly"])
        guaranteed = st.checkbox("Bonus Guaranteed")
    bonus = Bonus(bonus_amount, bonus_frequency, guaranteed) if bonus_amount > 0 else None
    return SalaryData(base_salary=base, currency=currency, frequency=frequency, bonus=bonus)


def _benefits_inputs() -> BenefitsConfig:
    st.subheader("Benefits")
    c1, c2 = st.columns(2)
    with c1:
        pension = st.slider("Pension Employer %", 0.0, 10.0, 6.0, 0.5)
        study = st.slider("Study Fund Employer %", 0.0, 15.0, 7.5, 0.5)
        coverage = st.selectbox("Health Insurance", ["basic", "premium", "none"])
    with c2:
        vacation = st.number_input("Vacation Days", 0, 50, 20)
        unlimited_sick = st.checkbox("Unlimited Sick Days")
        sick = "unlimited" if unlimited_sick else st.number_input("Sick Days", 0, 60, 18)
        parental = st.number_input("Extra Parental Leave Days", 0, 180, 0)
    return BenefitsConfig(
        pension_fund=FundContribution(6.0, pension),
        study_fund=FundContribution(2.5, study),
        health_insurance=HealthInsurance(coverage=coverage),
        vacation_days=vacation,
        sick_days=sick,
        parental_leave=parental,
    )


def _equity_inputs() -> EquityConfig:
    st.subheader("Equity")
    if not st.checkbox("Include an equity grant"):
        return EquityConfig()
    c1, c2 = st.columns(2)
    with c1:
        grant_type = st.selectbox("Grant Type", ["RSU", "ISO", "NQSO", "ESPP"])
        amount = st.number_input("Shares", min_value=0.0, value=4800.0, step=100.0)
        price = st.number_input("Current Stock Price ($)", min_value=0.0, value=50.0)
        strike = st.number_input("Strike / Purchase Price ($)", min_value=0.0, value=0.0)
        espp_deduction = None
        if grant_type == "ESPP":
            espp_deduction = st.number_input("ESPP Deduction (% of salary)", 0.0, 15.0, 10.0)
    with c2:
        stage = st.selectbox("Company Stage", ["public", "pre-ipo", "growth", "startup"])
        vesting_type = st.selectbox("Vesting", ["standard", "cliff"])
        total_years = st.number_input("Vesting Years", 1, 10, 4)
        cliff = st.number_input("Cliff Months", 0, 48, 12)
        start = st.date_input("Vesting Start", value=date.today())
    grant = EquityGrant(
        id=str(uuid.uuid4()),
        type=grant_type,
        amount=amount,
        grant_date=start,
        vesting_start=start,
        vesting_schedule=VestingSchedule(type=vesting_type, total_years=total_years, cliff_months=cliff),
        strike_price=strike or None,
        current_stock_price=price,
        company_stage=stage,
        espp_deduction_pct=espp_deduction,
    )
    return EquityConfig(grants=[grant])


def _perks_inputs() -> PerksConfig:
    st.subheader("Perks")
    c1, c2 = st.columns(2)
    with c1:
        laptop = st.checkbox("Laptop Provided", value=True)
        meals = st.number_input("Meal Allowance (₪/month)", 0.0, 5000.0, 0.0)
        transportation = st.number_input("Transportation (₪/month)", 0.0, 5000.0, 0.0)
        learning = st.number_input("Learning Budget (₪/year)", 0.0, 50000.0, 0.0)
    with c2:
        internet = st.number_input("Internet Stipend (₪/month)", 0.0, 1000.0, 0.0)
        phone = st.number_input("Phone Stipend (₪/month)", 0.0, 1000.0, 0.0)
        gym = st.number_input("Gym (₪/month)", 0.0, 2000.0, 0.0)
        remote = st.checkbox("Remote Work Allowed")
        hybrid = st.slider("Home Days per Week", 0, 5, 2) if remote else None
    return PerksConfig(
        laptop=Laptop(provided=laptop),
        internet_stipend=internet,
        phone_stipend=phone,
        gym_membership=gym,
        meals=Meals(type="allowance" if meals > 0 else "none", value=meals),
        transportation=transportation,
        learning_budget=learning,
        flexible_work=FlexibleWork(remote_allowed=remote, hybrid_days=hybrid),
    )


def render_calculator():
    st.header("Total Compensation")
    calculator = get_calculator()

    if "package_id" not in st.session_state:
        st.session_state.package_id = str(uuid.uuid4())

    name = st.text_input("Package Name", value="My Offer")
    package = CompensationPackage(
        id=st.session_state.package_id,
        name=name,
        salary=_salary_inputs(),
        benefits=_benefits_inputs(),
        equity=_equity_inputs(),
        perks=_perks_inputs(),
    )

    monthly = package.salary.base_salary / 12 if package.salary.frequency == "annual" else package.salary.base_salary
    quick = calculator.calculate_quick_total(monthly, package.salary.currency, has_equity=bool(package.equity.grants))
    st.caption(f"Quick estimate: {format_currency(quick, 'ILS')} / year")

    validation = calculator.validate_inputs(package)
    for error in validation.errors:
        st.warning(error)

    if st.button("Calculate", key="calculate", disabled=not validation.is_valid):
        try:
            st.session_state.last_result = (package, calculator.calculate_total_compensation(package))
        except CalculationError as e:
            st.session_state.pop("last_result", None)
            st.error(str(e))

    # Kept across reruns so the buttons below still act on the shown result
    if "last_result" in st.session_state:
        _render_results(*st.session_state.last_result)


def _render_results(package: CompensationPackage, calculation: CompensationCalculation):
    c1, c2, c3 = st.columns(3)
    c1.metric("Total Annual (Gross)", format_currency(calculation.total_annual_compensation, "ILS"))
    c2.metric("Total Annual (Net)", format_currency(calculation.net_compensation, "ILS"))
    c3.metric("USD/ILS", f"{calculation.exchange_rates.usd_to_ils.rate:.3f}",
              help=f"Source: {calculation.exchange_rates.usd_to_ils.source}")

    totals = pd.DataFrame(
        [(category.replace("_", " ").title(), b.gross, b.net) for category, b in calculation.breakdown.items()],
        columns=["Category", "Gross", "Net"],
    )
    fig = px.bar(totals, x="Category", y=["Gross", "Net"], barmode="group")
    st.plotly_chart(fig, width='stretch')

    st.dataframe(export.breakdown_dataframe(calculation))

    c1, c2, c3 = st.columns(3)
    c1.download_button("Download JSON", export.export_json(package, calculation),
                       file_name=export.export_filename(package.name, "json"))
    c2.download_button("Download CSV", export.export_csv(package, calculation),
                       file_name=export.export_filename(package.name, "csv"))
    if c3.button("Save Package", key="save_package"):
        try:
            persistence.save_package(package)
        except persistence.PackageStoreError as e:
            st.error(str(e))
        else:
            st.success(f"Saved {package.name}.")
