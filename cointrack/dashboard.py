"""Home dashboard: this month at a glance plus quick entry.

Rendered by ``Home.py``; the detailed screens live in ``pages/``.
"""

from __future__ import annotations

import pandas as pd
import streamlit as st

from . import config, db
from .aggregation import aggregate_month
from .analytics import daily_spend, todays_breakdown
from .formatting import format_currency
from .periods import current_window
from .series import monthly_series, rounded_series
from .shared_sidebar import _rerun, render_shared_sidebar, run_write
from .visualization import create_category_donut, create_daily_bar_chart, create_monthly_trend_chart


def main():
    """Main entry point for the CoinTrack dashboard."""
    st.set_page_config(
        page_title="CoinTrack",
        page_icon="🪙",
        layout="wide",
        initial_sidebar_state="expanded",
    )

    sidebar = render_shared_sidebar()
    snapshot = sidebar['snapshot']
    user_id = sidebar['user_id']
    window = current_window()

    st.title("🪙 CoinTrack")
    st.caption(f"{window.period.strftime('%B %Y')} for **{user_id}**")

    current = aggregate_month(snapshot.expenses, snapshot.recurring, window.year, window.month_index)
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("This month", format_currency(current.combined_total))
    col2.metric("One-time", format_currency(current.one_time_total))
    col3.metric("Recurring", format_currency(current.recurring_total))
    col4.metric("Transactions", current.transaction_count)

    _render_quick_add(user_id)

    st.divider()
    left, right = st.columns(2)
    with left:
        st.plotly_chart(
            create_category_donut(todays_breakdown(snapshot.expenses), title="Today's spending"),
            use_container_width=True,
        )
    with right:
        st.plotly_chart(create_daily_bar_chart(daily_spend(snapshot.expenses)), use_container_width=True)

    series = monthly_series(
        snapshot.expenses,
        snapshot.recurring,
        sidebar['months'],
        historical_cutoff=sidebar['cutoff'],
        incomes=snapshot.incomes,
    )
    st.plotly_chart(create_monthly_trend_chart(series), use_container_width=True)
    with st.expander("Monthly figures"):
        st.dataframe(rounded_series(series), use_container_width=True, hide_index=True)

    _render_income_entry(user_id, snapshot.incomes, window)


def _render_quick_add(user_id: str) -> None:
    st.subheader("➕ Quick add")
    with st.form("quick_add_expense", clear_on_submit=True):
        col1, col2, col3 = st.columns([1, 1, 2])
        amount = col1.number_input("Amount", min_value=0.0, step=10.0, format="%.2f")
        category = col2.selectbox("Category", config.EXPENSE_CATEGORIES)
        note = col3.text_input("Note", placeholder="Optional")
        submitted = st.form_submit_button("Add expense")
    if submitted:
        if amount <= 0:
            st.error("Enter an amount greater than zero.")
            return
        if run_write(db.add_expense, user_id, amount, category=category, note=note,
                     success=f"Added {format_currency(amount)} to {category}"):
            _rerun()


def _render_income_entry(user_id: str, incomes: pd.DataFrame, window) -> None:
    st.subheader("💰 Monthly income")
    existing = 0.0
    if not incomes.empty:
        match = incomes[(incomes['Year'] == window.year) & (incomes['Month'] == window.month_index)]
        if not match.empty:
            existing = float(match['Amount'].iloc[0])
    with st.form("income_entry"):
        amount = st.number_input(
            f"Income for {window.period.strftime('%B %Y')}",
            min_value=0.0,
            value=existing,
            step=1000.0,
            format="%.2f",
        )
        submitted = st.form_submit_button("Save income")
    if submitted and run_write(db.save_income, user_id, window.year, window.month_index, amount,
                               success="Income saved"):
        _rerun()
