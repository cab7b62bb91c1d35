"""Calendar month windows used by every aggregation.

Months are addressed by ``(year, month_index)`` with a 0-based
``month_index`` (January is 0).  Indexes outside ``0..11`` roll over into
the adjacent years, so callers can do month arithmetic such as
``month_window(year, month - i)`` without normalizing first.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional

import pandas as pd
from dateutil import tz


@dataclass(frozen=True)
class MonthWindow:
    """Inclusive ``[start, end]`` range covering one calendar month."""

    period: pd.Period

    @property
    def year(self) -> int:
        return self.period.year

    @property
    def month_index(self) -> int:
        return self.period.month - 1

    @property
    def start(self) -> pd.Timestamp:
        return self.period.start_time

    @property
    def end(self) -> pd.Timestamp:
        return self.period.end_time

    @property
    def label(self) -> str:
        return self.period.strftime('%b')

    @property
    def key(self) -> str:
        return f"{self.year}-{self.month_index}"

    def contains(self, value: Any) -> bool:
        ts = coerce_timestamp(value)
        if ts is None:
            return False
        return self.start <= ts <= self.end

    def shift(self, months: int) -> 'MonthWindow':
        return MonthWindow(self.period + months)


def month_window(year: int, month_index: int) -> MonthWindow:
    """Return the window for ``month_index`` (0-based) of ``year``.

    >>> month_window(2025, -1).key
    '2024-11'
    >>> month_window(2025, 12).key
    '2026-0'
    """
    return MonthWindow(pd.Period(year=int(year), month=1, freq='M') + int(month_index))


def current_window(today: Any = None) -> MonthWindow:
    now = coerce_timestamp(today) if today is not None else None
    if now is None:
        now = pd.Timestamp.now()
    return month_window(now.year, now.month - 1)


def trailing_windows(months: int, today: Any = None) -> List[MonthWindow]:
    """Windows for the last ``months`` months, oldest first, ending this month."""
    if months < 1:
        raise ValueError("months must be at least 1")
    latest = current_window(today)
    return [latest.shift(-offset) for offset in range(months - 1, -1, -1)]


def local_timezone() -> Any:
    """Zone used to turn timezone-aware values into local wall-clock time."""
    return tz.tzlocal()


def coerce_timestamp(value: Any) -> Optional[pd.Timestamp]:
    """Convert dates, datetimes and ISO strings into naive timestamps.

    Timezone-aware values are converted to local time first, so month
    windows compare against the local calendar.  Anything that cannot be
    parsed returns ``None``.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        ts = pd.Timestamp(value) if not isinstance(value, str) else pd.to_datetime(value, errors='coerce')
    except (TypeError, ValueError):
        return None
    if ts is None or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert(local_timezone()).tz_localize(None)
    return ts


def coerce_dates(values: pd.Series) -> pd.Series:
    """Vectorized :func:`coerce_timestamp`; unparseable entries become ``NaT``."""
    if isinstance(values.dtype, pd.DatetimeTZDtype):
        return values.dt.tz_convert(local_timezone()).dt.tz_localize(None)
    if pd.api.types.is_datetime64_any_dtype(values):
        return values
    # element-wise so mixed string formats and mixed timezones both parse
    return pd.to_datetime(values.map(coerce_timestamp), errors='coerce')
