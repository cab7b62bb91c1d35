"""Display formatting helpers."""

from __future__ import annotations

from typing import Any

import pandas as pd

from . import config
from .recurring import FREQUENCY_LABELS, coerce_amount


def format_currency(amount: Any, symbol: str | None = None) -> str:
    """Format ``amount`` with a currency symbol and two decimals."""
    value = coerce_amount(amount)
    prefix = config.CURRENCY_SYMBOL if symbol is None else symbol
    sign = '-' if value < 0 else ''
    return f"{sign}{prefix}{abs(value):,.2f}"


def frequency_label(frequency: Any) -> str:
    if not isinstance(frequency, str):
        return ''
    return FREQUENCY_LABELS.get(frequency.strip().lower(), frequency)


def format_date(value: Any, fmt: str = '%d %b %Y') -> str:
    if value is None or pd.isna(value):
        return ''
    try:
        return value.strftime(fmt)
    except (AttributeError, ValueError):
        return str(value)
