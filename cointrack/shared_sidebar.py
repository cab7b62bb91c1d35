"""Shared sidebar components for the multi-page dashboard.

Every page calls :func:`render_shared_sidebar` first; it picks the active
user, loads that user's data from the store and exposes the chart
settings.  Writes from the pages go through :func:`run_write` so a slow
store never blocks the UI.
"""

from __future__ import annotations

import calendar
import logging
import sqlite3
from typing import Any, Callable, Dict, List, Optional

import pandas as pd
import streamlit as st

from . import config, db
from .aggregation import prepare_transactions
from .periods import MonthWindow, coerce_timestamp, current_window, month_window

logger = logging.getLogger(__name__)

FLASH_KEY = 'flash_message'


def render_shared_sidebar() -> Dict[str, Any]:
    """Render shared sidebar elements available on all pages.

    Returns:
        Dict with keys: 'user_id', 'snapshot', 'months', 'cutoff'
    """
    config.configure_logging()
    st.sidebar.title("🪙 CoinTrack")
    show_flash()

    user_id = st.sidebar.text_input(
        "User",
        value=st.session_state.get('user_id', config.DEFAULT_USER),
        help="Expenses, budgets and income are stored per user.",
    ).strip() or config.DEFAULT_USER
    st.session_state['user_id'] = user_id

    months = st.sidebar.slider(
        "Months in trend charts",
        min_value=3,
        max_value=24,
        value=min(24, max(3, config.get_series_months())),
    )

    cutoff = config.get_historical_cutoff()
    if cutoff is not None:
        st.sidebar.caption(f"Recurring spend before {cutoff:%b %Y} is hidden in trend charts.")

    try:
        snapshot = db.load_snapshot(user_id)
    except sqlite3.Error as exc:
        logger.error("Could not load data for %s: %s", user_id, exc)
        st.sidebar.error(f"Could not open the database: {exc}")
        snapshot = db.UserSnapshot(user_id=user_id)

    st.sidebar.caption(
        f"{len(snapshot.expenses)} expenses · {len(snapshot.recurring)} recurring · "
        f"{len(snapshot.budgets)} budgets"
    )
    return {
        'user_id': user_id,
        'snapshot': snapshot,
        'months': months,
        'cutoff': cutoff,
    }


def run_write(fn: Callable[..., Any], *args: Any, success: Optional[str] = None, **kwargs: Any) -> bool:
    """Run a store write through :func:`db.guarded_write` and report the outcome.

    Returns True when the write finished.  Validation errors, bad settings
    and timeouts are shown to the user instead of raising.  The success
    message is kept in session state so it survives the rerun that follows.
    """
    try:
        db.guarded_write(fn, *args, **kwargs)
    except db.WriteTimeoutError:
        st.warning("Saving is taking longer than expected. Refresh in a moment to check.")
        return False
    except (config.ConfigError, ValueError) as exc:
        st.error(str(exc))
        return False
    except sqlite3.Error as exc:
        logger.error("Store write %s failed: %s", getattr(fn, '__name__', fn), exc)
        st.error(f"Could not save: {exc}")
        return False
    if success:
        # shown by show_flash() after the page reruns
        st.session_state[FLASH_KEY] = success
    return True


def show_flash() -> None:
    """Display and clear the message left by the last successful write."""
    message = st.session_state.pop(FLASH_KEY, None)
    if message:
        st.success(message)


def picker_years(expenses: Any, today: Any = None) -> List[int]:
    """Years offered by the month pickers, newest first.

    Spans the earliest and latest expense dates and always includes the
    current year.
    """
    now = coerce_timestamp(today) if today is not None else None
    current = (now if now is not None else pd.Timestamp.now()).year
    dates = prepare_transactions(expenses)['Date'].dropna()
    first = min(current, int(dates.min().year)) if not dates.empty else current
    last = max(current, int(dates.max().year)) if not dates.empty else current
    return list(range(last, first - 1, -1))


def render_month_picker(expenses: Any, key: str) -> MonthWindow:
    """Year and month selectors defaulting to the current month."""
    today = current_window()
    years = picker_years(expenses)
    col1, col2 = st.columns(2)
    year = col1.selectbox("Year", years, index=years.index(today.year), key=f"{key}_year")
    month_index = col2.selectbox(
        "Month",
        list(range(12)),
        index=today.month_index,
        format_func=lambda m: calendar.month_name[m + 1],
        key=f"{key}_month",
    )
    return month_window(year, month_index)


def _rerun() -> None:
    rerun_fn = getattr(st, 'rerun', None) or getattr(st, 'experimental_rerun', None)
    if rerun_fn:
        rerun_fn()
