"""Configuration management for CoinTrack.

This module centralizes all configuration values including paths,
defaults, and environment variable overrides.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pandas as pd

# Base project root - assumes this file is in cointrack/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("COINTRACK_DATA_DIR", _PROJECT_ROOT / "data"))

# Database
DB_PATH = Path(
    os.getenv("COINTRACK_DB_PATH", DATA_DIR / "cointrack.db")
).resolve()

# Single-user dashboard identity
DEFAULT_USER = os.getenv("COINTRACK_USER", "local")

# Category defaults. One-time and recurring items keep separate fallbacks.
DEFAULT_EXPENSE_CATEGORY = "Uncategorized"
DEFAULT_RECURRING_CATEGORY = "Bills"
EXPENSE_CATEGORIES = ["Food", "Transport", "Shopping", "Bills", "Health", "Other"]
RECURRING_CATEGORIES = ["Bills", "Home", "Health", "Food", "Entertainment", "Other"]

CURRENCY_SYMBOL = os.getenv("COINTRACK_CURRENCY", "₹")

# Recurring spend was historically hidden from the trend charts before this date.
LEGACY_RECURRING_CUTOFF = pd.Timestamp(2026, 1, 1)

DEFAULT_AI_MODEL = "deepseek/deepseek-r1-0528:free"
DEFAULT_AI_BASE_URL = "https://openrouter.ai/api/v1"


class ConfigError(RuntimeError):
    """Raised when an environment override cannot be parsed."""


@dataclass(frozen=True)
class AssistantSettings:
    api_key: Optional[str]
    model: str
    base_url: str
    timeout_seconds: float
    temperature: float
    max_tokens: int
    history_limit: int = 30


def _parse_float(raw_value: Optional[str], default: float, env_key: str) -> float:
    if raw_value is None or raw_value.strip() == "":
        return default
    try:
        return float(raw_value)
    except ValueError as exc:
        raise ConfigError(f"{env_key} must be numeric (received '{raw_value}')") from exc


def _parse_int(raw_value: Optional[str], default: int, env_key: str) -> int:
    if raw_value is None or raw_value.strip() == "":
        return default
    try:
        return int(raw_value)
    except ValueError as exc:
        raise ConfigError(f"{env_key} must be an integer (received '{raw_value}')") from exc


def get_write_timeout() -> float:
    """Seconds a store write may take before the UI stops waiting."""
    return _parse_float(os.getenv("COINTRACK_WRITE_TIMEOUT"), 10.0, "COINTRACK_WRITE_TIMEOUT")


def get_series_months() -> int:
    """Length of the trailing window shown in trend charts."""
    months = _parse_int(os.getenv("COINTRACK_SERIES_MONTHS"), 6, "COINTRACK_SERIES_MONTHS")
    if months < 1:
        raise ConfigError("COINTRACK_SERIES_MONTHS must be at least 1")
    return months


def get_historical_cutoff() -> Optional[pd.Timestamp]:
    """Return the configured recurring-history cutoff, or ``None``.

    ``COINTRACK_HISTORICAL_CUTOFF`` accepts an ISO date or the word
    ``legacy`` for :data:`LEGACY_RECURRING_CUTOFF`. Unset means no cutoff.
    """
    raw = (os.getenv("COINTRACK_HISTORICAL_CUTOFF") or "").strip()
    if not raw:
        return None
    if raw.lower() == "legacy":
        return LEGACY_RECURRING_CUTOFF
    cutoff = pd.to_datetime(raw, errors="coerce")
    if pd.isna(cutoff):
        raise ConfigError(f"COINTRACK_HISTORICAL_CUTOFF must be a date (received '{raw}')")
    return pd.Timestamp(cutoff)


def load_assistant_settings() -> AssistantSettings:
    """Build assistant settings from the environment."""
    api_key = os.getenv("OPENROUTER_API_KEY") or os.getenv("OPENAI_API_KEY") or None
    return AssistantSettings(
        api_key=api_key,
        model=os.getenv("COINTRACK_AI_MODEL", DEFAULT_AI_MODEL),
        base_url=os.getenv("COINTRACK_AI_BASE_URL", DEFAULT_AI_BASE_URL),
        timeout_seconds=_parse_float(os.getenv("COINTRACK_AI_TIMEOUT"), 60.0, "COINTRACK_AI_TIMEOUT"),
        temperature=_parse_float(os.getenv("COINTRACK_AI_TEMPERATURE"), 0.7, "COINTRACK_AI_TEMPERATURE"),
        max_tokens=_parse_int(os.getenv("COINTRACK_AI_MAX_TOKENS"), 1500, "COINTRACK_AI_MAX_TOKENS"),
    )


def configure_logging() -> None:
    """Configure root logging once for the Streamlit app and scripts."""
    level = os.getenv("COINTRACK_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
