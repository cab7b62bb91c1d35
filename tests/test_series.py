import pandas as pd
import pytest

from cointrack.config import LEGACY_RECURRING_CUTOFF
from cointrack.aggregation import aggregate_month
from cointrack.series import SERIES_COLUMNS, income_lookup, monthly_series, rounded_series, series_for_cutoff

YEARLY_HOME = {
    'Name': 'Insurance', 'Amount': 1200, 'Frequency': 'yearly',
    'Start Date': '2025-01-01', 'End Date': None, 'Category': 'Home',
}


def test_series_is_oldest_first_with_short_labels():
    series = monthly_series([], [], 6, today='2026-02-10')

    assert list(series.columns) == SERIES_COLUMNS
    assert series['Month'].tolist() == ['Sep', 'Oct', 'Nov', 'Dec', 'Jan', 'Feb']
    assert series['Year'].tolist() == [2025, 2025, 2025, 2025, 2026, 2026]
    assert (series['Total'] == 0).all()


def test_each_month_matches_the_single_month_aggregate():
    txns = [
        {'Amount': 40, 'Category': 'Food', 'Date': '2025-08-03'},
        {'Amount': 60, 'Category': 'Food', 'Date': '2025-10-20'},
    ]
    series = monthly_series(txns, [YEARLY_HOME], 4, today='2025-10-15')

    for year, month_index, total, recurring in zip(
        series['Year'], series['Month Index'], series['Total'], series['Recurring']
    ):
        expected = aggregate_month(txns, [YEARLY_HOME], year, month_index)
        assert total == pytest.approx(expected.combined_total)
        assert recurring == pytest.approx(100.0)
    assert series['One-Time'].tolist() == [0.0, 40.0, 0.0, 60.0]


def test_legacy_cutoff_hides_recurring_history_as_intended():
    # Without the cutoff the commitment is active in every month of the window.
    plain = monthly_series([], [YEARLY_HOME], 6, today='2025-10-15')
    assert plain['Recurring'].tolist() == [100.0] * 6

    # With the legacy cutoff every month before 2026 reports zero recurring.
    hidden = monthly_series(
        [], [YEARLY_HOME], 6, today='2025-10-15', historical_cutoff=LEGACY_RECURRING_CUTOFF
    )
    assert hidden['Recurring'].tolist() == [0.0] * 6
    assert hidden['Total'].tolist() == [0.0] * 6


def test_cutoff_only_affects_months_before_it():
    series = monthly_series(
        [], [YEARLY_HOME], 4, today='2026-02-01', historical_cutoff=LEGACY_RECURRING_CUTOFF
    )
    assert series['Recurring'].tolist() == [0.0, 0.0, 100.0, 100.0]


def test_series_for_cutoff_reports_hidden_amount():
    series = series_for_cutoff(
        [], [YEARLY_HOME], 3, today='2026-01-20', historical_cutoff='2026-01-01'
    )
    assert series['Hidden Recurring'].tolist() == [100.0, 100.0, 0.0]

    unfiltered = series_for_cutoff([], [YEARLY_HOME], 3, today='2026-01-20')
    assert (unfiltered['Hidden Recurring'] == 0).all()


def test_incomes_line_up_with_months():
    incomes = pd.DataFrame([
        {'Year': 2025, 'Month': 9, 'Amount': 50000},
        {'Year': 2025, 'Month': 10, 'Amount': 52000},
    ])
    series = monthly_series([], [], 3, today='2025-12-01', incomes=incomes)
    assert series['Income'].tolist() == [50000.0, 52000.0, 0.0]


def test_income_lookup_ignores_incomplete_frames():
    assert income_lookup(None) == {}
    assert income_lookup(pd.DataFrame({'Amount': [1]})) == {}
    assert income_lookup([{'Year': 2025, 'Month': 0, 'Amount': 'x'}]) == {(2025, 0): 0.0}


def test_rounded_series_rounds_money_columns():
    txns = [{'Amount': 10.005, 'Category': 'Food', 'Date': '2025-10-01'}, {'Amount': 0.333, 'Date': '2025-10-02'}]
    series = rounded_series(monthly_series(txns, [], 1, today='2025-10-15'))
    assert series['One-Time'].iloc[0] == pytest.approx(10.34, abs=0.01)


def test_zero_months_is_rejected():
    with pytest.raises(ValueError):
        monthly_series([], [], 0)
