"""Dashboard statistics built on the monthly aggregator."""

from __future__ import annotations

from typing import Any, Dict

import pandas as pd

from .aggregation import aggregate_month, prepare_transactions
from .periods import coerce_timestamp, current_window


def _today(today: Any = None) -> pd.Timestamp:
    ts = coerce_timestamp(today) if today is not None else None
    return ts if ts is not None else pd.Timestamp.now()


def todays_breakdown(transactions: Any, today: Any = None) -> pd.DataFrame:
    """Category totals for expenses dated today, largest first."""
    day = _today(today).normalize()
    txns = prepare_transactions(transactions)
    todays = txns[txns['Date'].dt.normalize() == day]
    if todays.empty:
        return pd.DataFrame(columns=['Category', 'Amount'])
    grouped = todays.groupby('Category', sort=False)['Amount'].sum().round(2)
    result = grouped.reset_index()
    return result.sort_values('Amount', ascending=False, kind='mergesort').reset_index(drop=True)


def daily_spend(transactions: Any, days: int = 7, today: Any = None) -> pd.DataFrame:
    """One-time spend per day for the last ``days`` days, oldest first.

    Columns ``Date``, ``Day`` (short weekday) and ``Amount``.
    """
    if days < 1:
        raise ValueError("days must be at least 1")
    end = _today(today).normalize()
    dates = pd.date_range(end=end, periods=days, freq='D')
    txns = prepare_transactions(transactions)
    txns = txns.dropna(subset=['Date'])
    by_day = txns.groupby(txns['Date'].dt.normalize())['Amount'].sum() if not txns.empty else pd.Series(dtype=float)
    amounts = [round(float(by_day.get(day, 0.0)), 2) for day in dates]
    return pd.DataFrame({
        'Date': dates,
        'Day': [day.strftime('%a') for day in dates],
        'Amount': amounts,
    })


def spending_stats(transactions: Any, recurring: Any, today: Any = None) -> Dict[str, float]:
    """Headline numbers for the analytics screen.

    ``monthly_recurring`` only counts commitments active in the current
    month; ``average_daily`` spreads all one-time spend over the days since
    the first recorded expense (inclusive).
    """
    now = _today(today)
    txns = prepare_transactions(transactions)
    total_one_time = float(txns['Amount'].sum()) if not txns.empty else 0.0

    window = current_window(now)
    current = aggregate_month(txns, recurring, window.year, window.month_index)

    dated = txns['Date'].dropna()
    days_active = 1
    if not dated.empty:
        first = dated.min().normalize()
        days_active = abs((now.normalize() - first).days) + 1
    return {
        'total_one_time': total_one_time,
        'monthly_recurring': current.recurring_total,
        'total_expenses': total_one_time + current.recurring_total,
        'average_daily': total_one_time / max(1, days_active),
        'transaction_count': int(len(txns)),
        'this_month_total': current.combined_total,
    }
