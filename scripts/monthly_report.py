#!/usr/bin/env python3
"""Print one month's totals, category breakdown and budget status."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cointrack import config, db
from cointrack.aggregation import aggregate_month, category_breakdown
from cointrack.budgets import evaluate_budgets
from cointrack.formatting import format_currency


def build_parser() -> argparse.ArgumentParser:
    today = pd.Timestamp.now()
    parser = argparse.ArgumentParser(description='Show a monthly spending report.')
    parser.add_argument('--user', default=config.DEFAULT_USER, help='User id to report on')
    parser.add_argument('--year', type=int, default=today.year)
    parser.add_argument('--month', type=int, default=today.month, help='Calendar month, 1-12')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if not 1 <= args.month <= 12:
        print(f"Month must be between 1 and 12 (received {args.month})")
        return 1

    config.configure_logging()
    snapshot = db.load_snapshot(args.user)
    aggregate = aggregate_month(snapshot.expenses, snapshot.recurring, args.year, args.month - 1)

    print(f"CoinTrack report for {args.user}: {aggregate.window.period.strftime('%B %Y')}")
    print(f"  One-time:   {format_currency(aggregate.one_time_total)} ({aggregate.transaction_count} transactions)")
    print(f"  Recurring:  {format_currency(aggregate.recurring_total)}")
    print(f"  Total:      {format_currency(aggregate.combined_total)}")

    breakdown = category_breakdown(aggregate)
    if breakdown.empty:
        print("\nNo spending recorded.")
    else:
        breakdown['Amount'] = breakdown['Amount'].map(format_currency)
        print("\nBy category:")
        print(breakdown.to_string(index=False))

    status = evaluate_budgets(aggregate.per_category, snapshot.budgets)
    limited = status[status['Limit'] > 0]
    if not limited.empty:
        print("\nBudgets:")
        for row in limited.itertuples(index=False):
            print(
                f"  [{row.Status:>8}] {row.Category}: {format_currency(row.Spent)} of "
                f"{format_currency(row.Limit)} ({row.Percentage:.1f}%)"
            )
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
