"""Trailing multi-month series for the trend charts."""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import pandas as pd

from .aggregation import aggregate_month, prepare_transactions
from .periods import trailing_windows
from .recurring import coerce_amount, prepare_recurring

SERIES_COLUMNS = [
    'Month',
    'Year',
    'Month Index',
    'One-Time',
    'Recurring',
    'Total',
    'Transactions',
    'Income',
]


def income_lookup(incomes: Any) -> Dict[Tuple[int, int], float]:
    """Map ``(year, month_index)`` to the recorded income for that month."""
    if incomes is None:
        return {}
    df = pd.DataFrame(incomes)
    if df.empty or not {'Year', 'Month', 'Amount'}.issubset(df.columns):
        return {}
    lookup: Dict[Tuple[int, int], float] = {}
    for year, month, amount in zip(df['Year'], df['Month'], df['Amount']):
        if pd.isna(year) or pd.isna(month):
            continue
        # later records win, matching upsert-by-key
        lookup[(int(year), int(month))] = coerce_amount(amount)
    return lookup


def monthly_series(
    transactions: Any,
    recurring: Any,
    months: int = 6,
    *,
    today: Any = None,
    historical_cutoff: Any = None,
    incomes: Any = None,
) -> pd.DataFrame:
    """Aggregate each of the last ``months`` months, oldest to newest.

    Each month runs through :func:`aggregate_month`; when
    ``historical_cutoff`` is set, months starting before it report zero
    recurring spend.  Short month labels repeat when ``months`` exceeds 12.
    """
    windows = trailing_windows(months, today)
    # clean once, then reuse for every month
    txns = prepare_transactions(transactions)
    rec = prepare_recurring(recurring)
    income = income_lookup(incomes)

    rows = []
    for window in windows:
        aggregate = aggregate_month(
            txns,
            rec,
            window.year,
            window.month_index,
            historical_cutoff=historical_cutoff,
        )
        rows.append({
            'Month': window.label,
            'Year': window.year,
            'Month Index': window.month_index,
            'One-Time': aggregate.one_time_total,
            'Recurring': aggregate.recurring_total,
            'Total': aggregate.combined_total,
            'Transactions': aggregate.transaction_count,
            'Income': income.get((window.year, window.month_index), 0.0),
        })
    return pd.DataFrame(rows, columns=SERIES_COLUMNS)


def rounded_series(series: pd.DataFrame, decimals: int = 2) -> pd.DataFrame:
    """Round the money columns of a :func:`monthly_series` frame for display."""
    if series.empty:
        return series
    out = series.copy()
    for column in ('One-Time', 'Recurring', 'Total', 'Income'):
        out[column] = out[column].round(decimals)
    return out


def series_for_cutoff(
    transactions: Any,
    recurring: Any,
    months: int = 6,
    *,
    today: Any = None,
    historical_cutoff: Optional[Any] = None,
) -> pd.DataFrame:
    """Return the series with and without the cutoff side by side.

    Useful for showing how much recurring spend the cutoff policy hides.
    """
    plain = monthly_series(transactions, recurring, months, today=today)
    if historical_cutoff is None:
        plain['Hidden Recurring'] = 0.0
        return plain
    applied = monthly_series(
        transactions, recurring, months, today=today, historical_cutoff=historical_cutoff
    )
    applied['Hidden Recurring'] = plain['Recurring'] - applied['Recurring']
    return applied
