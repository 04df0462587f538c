import logging

import pandas as pd
import streamlit as st
from compensation import persistence
from compensation.calculator import CalculationError
from compensation.currency import format_currency
from ui import calculator, tax
from ui.utils import get_calculator

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(page_title="Israeli Compensation Calculator", layout="wide")
st.title("Israeli Tech Compensation Calculator")
st.caption("For estimation purposes only.")

tab_calc, tab_tax, tab_saved = st.tabs(["Calculator", "Payroll Tax", "Saved Packages"])

# --- TAB: CALCULATOR ---
with tab_calc:
    calculator.render_calculator()

# --- TAB: PAYROLL TAX ---
with tab_tax:
    tax.render_tax()

# --- TAB: SAVED PACKAGES ---
with tab_saved:
    packages = persistence.load_packages()
    if not packages:
        st.info("No saved packages yet.")
    else:
        calc = get_calculator()
        rows = []
        for package in packages:
            total = None
            if calc.validate_inputs(package).is_valid:
                try:
                    total = calc.calculate_total_compensation(package).total_annual_compensation
                except CalculationError as e:
                    st.warning(f"{package.name}: {e}")
            rows.append({
                "Package": package.name,
                "Base Salary": f"{package.salary.currency} {package.salary.base_salary:,.0f} ({package.salary.frequency})",
                "Total Annual": format_currency(total, "ILS") if total is not None else "invalid",
            })
        st.dataframe(pd.DataFrame(rows))
        to_delete = st.selectbox("Delete package", [p.name for p in packages])
        if st.button("Delete"):
            target = next(p for p in packages if p.name == to_delete)
            try:
                persistence.delete_package(target.id)
            except persistence.PackageStoreError as e:
                st.error(str(e))
            else:
                st.rerun()
