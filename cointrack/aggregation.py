"""Monthly aggregation of one-time transactions and recurring commitments.

Every screen (dashboard, expenses, budgets, analytics, assistant) derives
its monthly numbers from :func:`aggregate_month` so the rules for which
commitments count in a month, and how much they count for, live in one
place.  Inputs are plain snapshots (DataFrames or lists of mappings) and
are never modified.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

import pandas as pd

from .config import DEFAULT_EXPENSE_CATEGORY, DEFAULT_RECURRING_CATEGORY
from .periods import MonthWindow, coerce_dates, month_window
from .recurring import active_mask, coerce_amount, prepare_recurring, suppressed_by_cutoff


@dataclass(frozen=True)
class MonthlyAggregate:
    window: MonthWindow
    one_time_total: float
    recurring_total: float
    combined_total: float
    transaction_count: int
    per_category: Dict[str, float] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            'year': self.window.year,
            'month_index': self.window.month_index,
            'one_time_total': self.one_time_total,
            'recurring_total': self.recurring_total,
            'combined_total': self.combined_total,
            'transaction_count': self.transaction_count,
            'per_category': dict(self.per_category),
        }


@dataclass(frozen=True)
class MonthDetail:
    """Itemised rows behind a :class:`MonthlyAggregate`."""

    window: MonthWindow
    one_time: pd.DataFrame
    recurring: pd.DataFrame
    recurring_suppressed: bool = False

    @property
    def one_time_total(self) -> float:
        return float(self.one_time['Amount'].sum()) if not self.one_time.empty else 0.0

    @property
    def recurring_total(self) -> float:
        return float(self.recurring['Monthly Amount'].sum()) if not self.recurring.empty else 0.0

    @property
    def grand_total(self) -> float:
        return self.one_time_total + self.recurring_total


def fill_category(values: pd.Series, default: str) -> pd.Series:
    """Replace missing or blank category labels with ``default``."""
    cleaned = values.map(lambda v: v.strip() if isinstance(v, str) else None)
    return cleaned.where(cleaned.notna() & (cleaned != ''), default)


def prepare_transactions(transactions: Any) -> pd.DataFrame:
    """Return a cleaned copy of a one-time transaction table."""
    df = pd.DataFrame(transactions).copy() if transactions is not None else pd.DataFrame()
    for column in ('Amount', 'Category', 'Note', 'Date'):
        if column not in df.columns:
            df[column] = None
    df['Amount'] = df['Amount'].map(coerce_amount).astype(float)
    df['Category'] = fill_category(df['Category'], DEFAULT_EXPENSE_CATEGORY)
    df['Date'] = coerce_dates(df['Date'])
    return df


def month_detail(
    transactions: Any,
    recurring: Any,
    year: int,
    month_index: int,
    *,
    historical_cutoff: Any = None,
) -> MonthDetail:
    """List the one-time rows and active recurring rows for one month.

    ``historical_cutoff`` drops every recurring row when the month starts
    before the cutoff date, whatever the commitments' own dates are.
    """
    window = month_window(year, month_index)

    txns = prepare_transactions(transactions)
    in_month = (txns['Date'] >= window.start) & (txns['Date'] <= window.end)
    one_time = txns[in_month.fillna(False).astype(bool)].copy()

    rec = prepare_recurring(recurring)
    rec['Category'] = fill_category(rec['Category'], DEFAULT_RECURRING_CATEGORY)
    suppressed = suppressed_by_cutoff(window, historical_cutoff)
    if suppressed:
        active = rec.iloc[0:0].copy()
    else:
        active = rec[active_mask(rec, window)].copy()

    return MonthDetail(window=window, one_time=one_time, recurring=active, recurring_suppressed=suppressed)


def aggregate_detail(detail: MonthDetail) -> MonthlyAggregate:
    """Collapse a :class:`MonthDetail` into totals and a category map."""
    per_category: Dict[str, float] = {}
    if not detail.one_time.empty:
        for category, amount in detail.one_time.groupby('Category', sort=False)['Amount'].sum().items():
            per_category[category] = per_category.get(category, 0.0) + float(amount)
    if not detail.recurring.empty:
        for category, amount in detail.recurring.groupby('Category', sort=False)['Monthly Amount'].sum().items():
            per_category[category] = per_category.get(category, 0.0) + float(amount)

    one_time_total = detail.one_time_total
    recurring_total = detail.recurring_total
    return MonthlyAggregate(
        window=detail.window,
        one_time_total=one_time_total,
        recurring_total=recurring_total,
        combined_total=one_time_total + recurring_total,
        transaction_count=int(len(detail.one_time)),
        per_category=per_category,
    )


def aggregate_month(
    transactions: Any,
    recurring: Any,
    year: int,
    month_index: int,
    *,
    historical_cutoff: Any = None,
) -> MonthlyAggregate:
    """Compute the monthly aggregate for ``(year, month_index)``.

    Parameters
    ----------
    transactions : DataFrame or iterable of mappings
        One-time expenses with ``Amount``, ``Category`` and ``Date``.
    recurring : DataFrame or iterable of mappings
        Recurring commitments with ``Amount``, ``Category``, ``Frequency``,
        ``Start Date`` and optional ``End Date``.
    year, month_index : int
        Target month; ``month_index`` is 0-based and may roll over.
    historical_cutoff : date-like, optional
        When given and the month starts before it, recurring spend is zero.

    Returns
    -------
    MonthlyAggregate
        ``combined_total == one_time_total + recurring_total`` and the
        ``per_category`` values add up to ``combined_total``.
    """
    detail = month_detail(
        transactions,
        recurring,
        year,
        month_index,
        historical_cutoff=historical_cutoff,
    )
    return aggregate_detail(detail)


def category_breakdown(aggregate: MonthlyAggregate) -> pd.DataFrame:
    """Category totals rounded to cents, largest first."""
    if not aggregate.per_category:
        return pd.DataFrame(columns=['Category', 'Amount'])
    df = pd.DataFrame(
        {
            'Category': list(aggregate.per_category.keys()),
            'Amount': [round(value, 2) for value in aggregate.per_category.values()],
        }
    )
    return df.sort_values('Amount', ascending=False, kind='mergesort').reset_index(drop=True)
