"""Helpers for recurring commitments such as rent or subscriptions.

A commitment counts toward a month when its ``[start, end]`` interval
overlaps the month window, and it then contributes its monthly-equivalent
amount for the whole month (no pro-rating).
"""

from __future__ import annotations

import math
from typing import Any, Optional

import numpy as np
import pandas as pd

from .periods import MonthWindow, coerce_dates, coerce_timestamp

FREQUENCIES = ('weekly', 'monthly', 'yearly')

# 4 weeks per month and 12 months per year; the weekly figure is an
# approximation kept for output compatibility.
WEEKS_PER_MONTH = 4
MONTHS_PER_YEAR = 12

FREQUENCY_LABELS = {
    'weekly': 'Weekly',
    'monthly': 'Monthly',
    'yearly': 'Yearly',
}


def normalize_frequency(value: Any) -> str:
    """Canonical form of a frequency typed by the user (trimmed, lower-case).

    Only the store applies this, on write.  Stored values are matched
    exactly by :func:`normalize_amount`.
    """
    if not isinstance(value, str):
        return ''
    return value.strip().lower()


def coerce_amount(value: Any) -> float:
    """Return ``value`` as a finite float, or ``0.0`` when it is unusable."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(amount) or math.isinf(amount):
        return 0.0
    return amount


def normalize_amount(amount: Any, frequency: Any) -> float:
    """Convert a recurring amount to its monthly equivalent.

    Exactly ``'weekly'`` is multiplied by 4 and exactly ``'yearly'`` divided
    by 12; anything else, including other spellings such as ``'Weekly'``, is
    returned unchanged.
    """
    value = coerce_amount(amount)
    if frequency == 'weekly':
        return value * WEEKS_PER_MONTH
    if frequency == 'yearly':
        return value / MONTHS_PER_YEAR
    return value


def is_active(start_date: Any, end_date: Any, window: MonthWindow) -> bool:
    """Return True when ``[start_date, end_date]`` overlaps ``window``.

    A missing start date means the commitment has always been running; a
    missing end date means it is open-ended.
    """
    start = coerce_timestamp(start_date)
    end = coerce_timestamp(end_date)
    if start is not None and start > window.end:
        return False
    if end is not None and end < window.start:
        return False
    return True


def suppressed_by_cutoff(window: MonthWindow, historical_cutoff: Any = None) -> bool:
    """True when ``window`` starts before the historical cutoff policy date."""
    cutoff = coerce_timestamp(historical_cutoff)
    return cutoff is not None and window.start < cutoff


def prepare_recurring(recurring: Any) -> pd.DataFrame:
    """Return a cleaned copy of a recurring-commitment table.

    Adds ``Monthly Amount`` and coerces ``Amount``, ``Start Date`` and
    ``End Date``.  Missing columns are created empty so malformed snapshots
    still aggregate.
    """
    df = pd.DataFrame(recurring).copy() if recurring is not None else pd.DataFrame()
    for column in ('Name', 'Amount', 'Category', 'Frequency', 'Start Date', 'End Date'):
        if column not in df.columns:
            df[column] = None
    df['Amount'] = df['Amount'].map(coerce_amount).astype(float)
    df['Start Date'] = coerce_dates(df['Start Date'])
    df['End Date'] = coerce_dates(df['End Date'])
    df['Monthly Amount'] = [
        normalize_amount(amount, frequency)
        for amount, frequency in zip(df['Amount'], df['Frequency'])
    ]
    df['Monthly Amount'] = df['Monthly Amount'].astype(float)
    return df


def active_mask(prepared: pd.DataFrame, window: MonthWindow) -> pd.Series:
    """Vectorized :func:`is_active` over a frame from :func:`prepare_recurring`."""
    if prepared.empty:
        return pd.Series(dtype=bool, index=prepared.index)
    starts = prepared['Start Date']
    ends = prepared['End Date']
    started = starts.isna() | (starts <= window.end)
    not_ended = ends.isna() | (ends >= window.start)
    return pd.Series(np.asarray(started & not_ended, dtype=bool), index=prepared.index)


def next_occurrence(start_date: Any, frequency: Any, after: Optional[Any] = None) -> Optional[pd.Timestamp]:
    """Return the first scheduled date on or after ``after`` (default: now).

    Purely informational; aggregation never reads it.
    """
    start = coerce_timestamp(start_date)
    if start is None:
        return None
    reference = coerce_timestamp(after) if after is not None else pd.Timestamp.now().normalize()
    if reference is None or start >= reference:
        return start
    if frequency == 'weekly':
        step = pd.DateOffset(weeks=1)
    elif frequency == 'yearly':
        step = pd.DateOffset(years=1)
    else:
        step = pd.DateOffset(months=1)
    occurrence = start
    count = 0
    while occurrence < reference:
        count += 1
        occurrence = start + step * count
    return occurrence
