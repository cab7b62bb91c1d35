"""Budget status evaluation.

Compares a month's per-category spend with the user's category limits and
classifies each category into a severity tier (``safe``, ``warning`` or
``exceeded``).  Results are ordered so exceeded categories come first,
then warnings, then safe ones, each by how close to or over the limit
they are.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import numpy as np
import pandas as pd

from .aggregation import aggregate_month
from .recurring import coerce_amount

SAFE = 'safe'
WARNING = 'warning'
EXCEEDED = 'exceeded'

WARNING_THRESHOLD = 80.0
EXCEEDED_THRESHOLD = 100.0

STATUS_BASE_SCORE = {
    EXCEEDED: 300.0,
    WARNING: 200.0,
    SAFE: 0.0,
}

BUDGET_COLUMNS = ['Category', 'Spent', 'Limit', 'Percentage', 'Status']


def budget_percentage(spent: Any, limit: Any) -> float:
    limit_value = coerce_amount(limit)
    if limit_value <= 0:
        return 0.0
    return coerce_amount(spent) / limit_value * 100


def status_for_percentage(percentage: float, limit: Optional[float] = None) -> str:
    """Tier for a spend percentage; a zero or missing limit is always safe."""
    if limit is not None and coerce_amount(limit) <= 0:
        return SAFE
    if percentage >= EXCEEDED_THRESHOLD:
        return EXCEEDED
    if percentage >= WARNING_THRESHOLD:
        return WARNING
    return SAFE


def severity_score(status: str, percentage: float) -> float:
    return STATUS_BASE_SCORE.get(status, 0.0) + percentage


def clean_limits(limits: Optional[Mapping[str, Any]]) -> Dict[str, float]:
    """Drop unusable entries and negative limits from a stored budget map."""
    cleaned: Dict[str, float] = {}
    for category, limit in (limits or {}).items():
        if not isinstance(category, str) or not category.strip():
            continue
        value = coerce_amount(limit)
        cleaned[category] = max(value, 0.0)
    return cleaned


def evaluate_budgets(
    per_category: Optional[Mapping[str, Any]],
    limits: Optional[Mapping[str, Any]],
) -> pd.DataFrame:
    """Build the budget status table for one month.

    Parameters
    ----------
    per_category : mapping
        Category spend, usually ``MonthlyAggregate.per_category``.
    limits : mapping
        Category to monthly limit.

    Returns
    -------
    pandas.DataFrame
        Columns ``Category``, ``Spent``, ``Limit``, ``Percentage`` and
        ``Status``.  Categories with spend but no limit appear with a zero
        limit; categories with a limit but no spend appear with zero spend.
    """
    spend = {
        category: coerce_amount(amount)
        for category, amount in (per_category or {}).items()
        if coerce_amount(amount) > 0
    }
    limit_map = clean_limits(limits)

    categories = list(spend.keys()) + [c for c in limit_map if c not in spend]
    if not categories:
        return pd.DataFrame(columns=BUDGET_COLUMNS)

    rows = []
    for category in categories:
        spent = spend.get(category, 0.0)
        limit = limit_map.get(category, 0.0)
        percentage = budget_percentage(spent, limit)
        rows.append({
            'Category': category,
            'Spent': spent,
            'Limit': limit,
            'Percentage': percentage,
            'Status': status_for_percentage(percentage, limit),
        })
    df = pd.DataFrame(rows, columns=BUDGET_COLUMNS)
    scores = np.array([severity_score(s, p) for s, p in zip(df['Status'], df['Percentage'])])
    # stable so equal scores keep spend-then-limit order
    order = np.argsort(-scores, kind='stable')
    return df.iloc[order].reset_index(drop=True)


def evaluate_month_budgets(
    transactions: Any,
    recurring: Any,
    limits: Optional[Mapping[str, Any]],
    year: int,
    month_index: int,
) -> pd.DataFrame:
    """Aggregate ``(year, month_index)`` and evaluate it against ``limits``."""
    aggregate = aggregate_month(transactions, recurring, year, month_index)
    return evaluate_budgets(aggregate.per_category, limits)


def budget_summary(status_df: pd.DataFrame) -> Dict[str, Any]:
    """Counts per tier plus total limit and spend for the header metrics."""
    if status_df.empty:
        return {'exceeded': 0, 'warning': 0, 'safe': 0, 'total_limit': 0.0, 'total_spent': 0.0}
    counts = status_df['Status'].value_counts()
    return {
        'exceeded': int(counts.get(EXCEEDED, 0)),
        'warning': int(counts.get(WARNING, 0)),
        'safe': int(counts.get(SAFE, 0)),
        'total_limit': float(status_df['Limit'].sum()),
        'total_spent': float(status_df['Spent'].sum()),
    }
