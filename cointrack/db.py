"""SQLite persistence for expenses, recurring items, budgets and incomes.

Every row is namespaced by ``user_id``.  Readers return pandas frames in
the column layout the aggregation modules expect; the aggregation modules
themselves never import this module.
"""

from __future__ import annotations

import logging
import sqlite3
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional

import pandas as pd

from . import config
from .periods import coerce_timestamp
from .recurring import FREQUENCIES, coerce_amount, next_occurrence, normalize_frequency

logger = logging.getLogger(__name__)

# Read at connect() time, not import time.
DB_PATH = config.DB_PATH

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS expenses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    amount REAL NOT NULL,
    category TEXT,
    note TEXT,
    date TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS recurring_expenses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    amount REAL NOT NULL,
    category TEXT,
    frequency TEXT NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT,
    next_date TEXT,
    last_processed TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS budgets (
    user_id TEXT NOT NULL,
    category TEXT NOT NULL,
    monthly_limit REAL NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (user_id, category)
);

CREATE TABLE IF NOT EXISTS incomes (
    user_id TEXT NOT NULL,
    year INTEGER NOT NULL,
    month INTEGER NOT NULL,
    amount REAL NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (user_id, year, month)
);

CREATE INDEX IF NOT EXISTS ix_expenses_user_date ON expenses (user_id, date);
CREATE INDEX IF NOT EXISTS ix_recurring_user ON recurring_expenses (user_id);
"""

EXPENSE_COLUMNS = ['id', 'Amount', 'Category', 'Note', 'Date', 'Created At']
RECURRING_COLUMNS = [
    'id', 'Name', 'Amount', 'Category', 'Frequency',
    'Start Date', 'End Date', 'Next Date', 'Last Processed',
]
INCOME_COLUMNS = ['Key', 'Year', 'Month', 'Amount']

_WRITE_POOL = ThreadPoolExecutor(max_workers=2, thread_name_prefix='cointrack-write')


class WriteTimeoutError(TimeoutError):
    """A store write did not finish in time; it may still complete later."""


@dataclass
class UserSnapshot:
    """Everything the derived views need for one user, read in one pass."""

    user_id: str
    expenses: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=EXPENSE_COLUMNS))
    recurring: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=RECURRING_COLUMNS))
    budgets: Dict[str, float] = field(default_factory=dict)
    incomes: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=INCOME_COLUMNS))


def _ensure_dirs() -> None:
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)


@contextmanager
def connect() -> Iterator[sqlite3.Connection]:
    _ensure_dirs()
    conn = sqlite3.connect(str(DB_PATH))
    try:
        yield conn
    finally:
        conn.close()


def init_db() -> None:
    with connect() as conn:
        conn.executescript(SCHEMA_SQL)
        conn.commit()


def _now_iso() -> str:
    return datetime.now().replace(microsecond=0).isoformat()


def _to_iso(value: Any) -> Optional[str]:
    ts = coerce_timestamp(value)
    if ts is None:
        return None
    return ts.isoformat()


def _sanitize_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    stripped = value.strip()
    return stripped if stripped else None


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _parse_number(value: Any, what: str) -> float:
    """Strict numeric parse for writes; reads use the lenient coerce_amount."""
    if _is_blank(value) or isinstance(value, bool):
        raise ValueError(f"{what} is required")
    try:
        number = float(str(value).replace(',', '').strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{what} must be a number (received {value!r})") from exc
    if number != coerce_amount(number):
        raise ValueError(f"{what} must be a finite number (received {value!r})")
    return number


def _positive_amount(value: Any) -> float:
    amount = _parse_number(value, "Amount")
    if amount <= 0:
        raise ValueError(f"Amount must be greater than zero (received {value!r})")
    return amount


def _non_negative(value: Any, what: str) -> float:
    number = _parse_number(value, what)
    if number < 0:
        raise ValueError(f"{what} cannot be negative (received {value!r})")
    return number


def guarded_write(fn: Callable[..., Any], *args: Any, timeout: Optional[float] = None, **kwargs: Any) -> Any:
    """Run a store write on a worker thread and wait at most ``timeout`` seconds.

    On timeout :class:`WriteTimeoutError` is raised and the caller moves on;
    the underlying write is not cancelled.
    """
    limit = config.get_write_timeout() if timeout is None else timeout
    future = _WRITE_POOL.submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=limit)
    except FutureTimeout as exc:
        logger.warning("Store write %s exceeded %.1fs; it may still complete", getattr(fn, '__name__', fn), limit)
        raise WriteTimeoutError(f"Write did not finish within {limit:.0f}s") from exc


# ---------------------------------------------------------------------------
# Expenses


def add_expense(
    user_id: str,
    amount: Any,
    category: Optional[str] = None,
    note: Optional[str] = None,
    date: Any = None,
) -> int:
    """Insert a one-time expense and return its id."""
    value = _positive_amount(amount)
    occurred = _to_iso(date) if date is not None else _now_iso()
    if occurred is None:
        raise ValueError(f"Invalid expense date: {date!r}")
    row = (
        user_id,
        value,
        _sanitize_text(category) or config.DEFAULT_EXPENSE_CATEGORY,
        _sanitize_text(note),
        occurred,
        _now_iso(),
    )
    with connect() as conn:
        cur = conn.execute(
            "INSERT INTO expenses (user_id, amount, category, note, date, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            row,
        )
        conn.commit()
        expense_id = int(cur.lastrowid)
    logger.info("Added expense %s for %s", expense_id, user_id)
    return expense_id


def update_expense(
    user_id: str,
    expense_id: int,
    amount: Any = None,
    category: Optional[str] = None,
    note: Optional[str] = None,
) -> bool:
    """Edit amount, category or note of an expense.  The date never changes.

    Returns True if a row was updated.
    """
    updates = []
    params: list = []

    if amount is not None:
        updates.append("amount = ?")
        params.append(_positive_amount(amount))

    if category is not None:
        updates.append("category = ?")
        params.append(_sanitize_text(category) or config.DEFAULT_EXPENSE_CATEGORY)

    if note is not None:
        updates.append("note = ?")
        params.append(_sanitize_text(note))

    if not updates:
        return False

    params.extend([expense_id, user_id])
    sql = f"UPDATE expenses SET {', '.join(updates)} WHERE id = ? AND user_id = ?"
    with connect() as conn:
        cursor = conn.execute(sql, params)
        conn.commit()
        return cursor.rowcount > 0


def delete_expense(user_id: str, expense_id: int) -> bool:
    with connect() as conn:
        cursor = conn.execute("DELETE FROM expenses WHERE id = ? AND user_id = ?", (expense_id, user_id))
        conn.commit()
        return cursor.rowcount > 0


def fetch_expenses(user_id: str) -> pd.DataFrame:
    """All expenses for ``user_id``, newest first."""
    sql = (
        "SELECT id, amount AS 'Amount', category AS 'Category', note AS 'Note', "
        "date AS 'Date', created_at AS 'Created At' FROM expenses "
        "WHERE user_id = ? ORDER BY date DESC, id DESC"
    )
    with connect() as conn:
        df = pd.read_sql_query(sql, conn, params=[user_id])
    if not df.empty:
        df['Date'] = pd.to_datetime(df['Date'], format='ISO8601')
        df['Created At'] = pd.to_datetime(df['Created At'], format='ISO8601')
    return df


# ---------------------------------------------------------------------------
# Recurring commitments


def add_recurring(
    user_id: str,
    name: str,
    amount: Any,
    frequency: str,
    start_date: Any,
    category: Optional[str] = None,
    end_date: Any = None,
) -> int:
    """Insert a recurring commitment and return its id.

    Raises ``ValueError`` for an unknown frequency, a missing start date or
    an end date before the start date.
    """
    label = _sanitize_text(name)
    if not label:
        raise ValueError("Recurring expense needs a name")
    value = _positive_amount(amount)
    cadence = normalize_frequency(frequency)
    if cadence not in FREQUENCIES:
        raise ValueError(f"Frequency must be one of {', '.join(FREQUENCIES)} (received {frequency!r})")
    start = coerce_timestamp(start_date)
    if start is None:
        raise ValueError(f"Invalid start date: {start_date!r}")
    end = None
    if not _is_blank(end_date):
        end = coerce_timestamp(end_date)
        if end is None:
            raise ValueError(f"Invalid end date: {end_date!r}")
    if end is not None and end < start:
        raise ValueError("End date must be on or after the start date")

    upcoming = next_occurrence(start, cadence)
    row = (
        user_id,
        label,
        value,
        _sanitize_text(category) or config.DEFAULT_RECURRING_CATEGORY,
        cadence,
        start.isoformat(),
        end.isoformat() if end is not None else None,
        upcoming.isoformat() if upcoming is not None else None,
        _now_iso(),
    )
    with connect() as conn:
        cur = conn.execute(
            "INSERT INTO recurring_expenses (user_id, name, amount, category, frequency, start_date, "
            "end_date, next_date, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            row,
        )
        conn.commit()
        recurring_id = int(cur.lastrowid)
    logger.info("Added recurring expense %s (%s) for %s", recurring_id, cadence, user_id)
    return recurring_id


def delete_recurring(user_id: str, recurring_id: int) -> bool:
    with connect() as conn:
        cursor = conn.execute(
            "DELETE FROM recurring_expenses WHERE id = ? AND user_id = ?", (recurring_id, user_id)
        )
        conn.commit()
        return cursor.rowcount > 0


def fetch_recurring(user_id: str) -> pd.DataFrame:
    sql = (
        "SELECT id, name AS 'Name', amount AS 'Amount', category AS 'Category', "
        "frequency AS 'Frequency', start_date AS 'Start Date', end_date AS 'End Date', "
        "next_date AS 'Next Date', last_processed AS 'Last Processed' "
        "FROM recurring_expenses WHERE user_id = ? ORDER BY start_date ASC, id ASC"
    )
    with connect() as conn:
        df = pd.read_sql_query(sql, conn, params=[user_id])
    for column in ('Start Date', 'End Date', 'Next Date', 'Last Processed'):
        if column in df.columns:
            df[column] = pd.to_datetime(df[column], format='ISO8601', errors='coerce')
    return df


# ---------------------------------------------------------------------------
# Budgets and incomes


def save_budget(user_id: str, category: str, limit: Any) -> None:
    """Set one category's monthly limit without touching the others."""
    label = _sanitize_text(category)
    if not label:
        raise ValueError("Budget category cannot be empty")
    value = _non_negative(limit, "Budget limit")
    with connect() as conn:
        conn.execute(
            "INSERT INTO budgets (user_id, category, monthly_limit, updated_at) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(user_id, category) DO UPDATE SET monthly_limit = excluded.monthly_limit, "
            "updated_at = excluded.updated_at",
            (user_id, label, value, _now_iso()),
        )
        conn.commit()
    logger.info("Budget for %s set to %.2f (%s)", label, value, user_id)


def fetch_budgets(user_id: str) -> Dict[str, float]:
    with connect() as conn:
        rows = conn.execute(
            "SELECT category, monthly_limit FROM budgets WHERE user_id = ? ORDER BY category",
            (user_id,),
        ).fetchall()
    return {category: float(limit) for category, limit in rows}


def save_income(user_id: str, year: int, month_index: int, amount: Any) -> None:
    """Upsert the income for ``(year, month_index)``; re-saving overwrites."""
    if not 0 <= int(month_index) <= 11:
        raise ValueError(f"month_index must be between 0 and 11 (received {month_index!r})")
    value = _non_negative(amount, "Income")
    with connect() as conn:
        conn.execute(
            "INSERT INTO incomes (user_id, year, month, amount, updated_at) VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(user_id, year, month) DO UPDATE SET amount = excluded.amount, "
            "updated_at = excluded.updated_at",
            (user_id, int(year), int(month_index), value, _now_iso()),
        )
        conn.commit()


def fetch_incomes(user_id: str) -> pd.DataFrame:
    sql = (
        "SELECT year AS 'Year', month AS 'Month', amount AS 'Amount' FROM incomes "
        "WHERE user_id = ? ORDER BY year ASC, month ASC"
    )
    with connect() as conn:
        df = pd.read_sql_query(sql, conn, params=[user_id])
    df.insert(0, 'Key', [f"{y}-{m}" for y, m in zip(df['Year'], df['Month'])])
    return df


def load_snapshot(user_id: str) -> UserSnapshot:
    """Read all four collections for ``user_id``."""
    init_db()
    return UserSnapshot(
        user_id=user_id,
        expenses=fetch_expenses(user_id),
        recurring=fetch_recurring(user_id),
        budgets=fetch_budgets(user_id),
        incomes=fetch_incomes(user_id),
    )


def clear_user_data(user_id: str) -> None:
    """Delete every record belonging to ``user_id``."""
    with connect() as conn:
        for table in ('expenses', 'recurring_expenses', 'budgets', 'incomes'):
            conn.execute(f"DELETE FROM {table} WHERE user_id = ?", (user_id,))
        conn.commit()
    logger.info("Cleared all data for %s", user_id)
