import streamlit as st
from compensation.calculator import CompensationCalculator
from compensation.currency import CurrencyService

@st.cache_resource
def get_calculator() -> CompensationCalculator:
    # One calculator per server process
    return CompensationCalculator(CurrencyService())
