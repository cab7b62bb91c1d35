import pandas as pd
import pytest

from cointrack.periods import month_window
from cointrack.recurring import (
    active_mask,
    coerce_amount,
    is_active,
    next_occurrence,
    normalize_amount,
    prepare_recurring,
    suppressed_by_cutoff,
)


@pytest.mark.parametrize(
    "amount, frequency, expected",
    [
        (100, 'weekly', 400.0),
        (1200, 'yearly', 100.0),
        (500, 'monthly', 500.0),
        (500, 'Monthly ', 500.0),
        (100, 'Weekly', 100.0),
        (1200, 'YEARLY', 1200.0),
        (100, ' weekly', 100.0),
        (75, 'fortnightly', 75.0),
        (75, None, 75.0),
    ],
)
def test_normalize_amount(amount, frequency, expected):
    assert normalize_amount(amount, frequency) == pytest.approx(expected)


@pytest.mark.parametrize("value", [None, 'abc', float('nan'), float('inf'), True, object()])
def test_coerce_amount_treats_unusable_values_as_zero(value):
    assert coerce_amount(value) == 0.0


def test_coerce_amount_parses_numeric_strings():
    assert coerce_amount('12.5') == 12.5


@pytest.mark.parametrize(
    "start, end, expected",
    [
        ('2025-03-31', None, True),          # starts on the last day
        ('2025-04-01', None, False),         # starts the day after
        ('2025-01-01', '2025-03-01', True),  # ends on the first day
        ('2025-01-01', '2025-02-28', False), # ended the day before
        (None, None, True),
        (None, '2025-02-01', False),
        ('2024-01-01', '2030-01-01', True),
    ],
)
def test_is_active_boundaries(start, end, expected):
    window = month_window(2025, 2)  # March 2025
    assert is_active(start, end, window) is expected


def test_active_mask_matches_scalar_rule():
    rows = pd.DataFrame([
        {'Name': 'Rent', 'Amount': 1000, 'Frequency': 'monthly', 'Start Date': '2025-03-31'},
        {'Name': 'Gym', 'Amount': 50, 'Frequency': 'monthly', 'Start Date': '2025-04-01'},
        {'Name': 'Old', 'Amount': 20, 'Frequency': 'weekly', 'Start Date': '2024-01-01', 'End Date': '2025-02-28'},
        {'Name': 'Undated', 'Amount': 10, 'Frequency': 'yearly'},
    ])
    prepared = prepare_recurring(rows)
    window = month_window(2025, 2)
    mask = active_mask(prepared, window)
    assert mask.tolist() == [True, False, False, True]
    expected = [
        is_active(s, e, window)
        for s, e in zip(prepared['Start Date'], prepared['End Date'])
    ]
    assert mask.tolist() == expected


def test_prepare_recurring_adds_monthly_amount_and_missing_columns():
    prepared = prepare_recurring([{'Amount': 'oops', 'Frequency': 'weekly'}, {'Amount': 120, 'Frequency': 'yearly'}])
    assert prepared['Monthly Amount'].tolist() == [0.0, 10.0]
    for column in ('Name', 'Category', 'Start Date', 'End Date'):
        assert column in prepared.columns


def test_prepare_recurring_empty_input():
    prepared = prepare_recurring(None)
    assert prepared.empty
    assert active_mask(prepared, month_window(2025, 0)).empty


def test_suppressed_by_cutoff():
    cutoff = pd.Timestamp('2026-01-01')
    assert suppressed_by_cutoff(month_window(2025, 11), cutoff)
    assert not suppressed_by_cutoff(month_window(2026, 0), cutoff)
    assert not suppressed_by_cutoff(month_window(2020, 0), None)


def test_next_occurrence_steps_by_frequency():
    after = pd.Timestamp('2025-03-10')
    assert next_occurrence('2025-01-15', 'monthly', after=after) == pd.Timestamp('2025-03-15')
    assert next_occurrence('2025-03-01', 'weekly', after=after) == pd.Timestamp('2025-03-15')
    assert next_occurrence('2023-06-01', 'yearly', after=after) == pd.Timestamp('2025-06-01')
    assert next_occurrence('2025-04-01', 'monthly', after=after) == pd.Timestamp('2025-04-01')
    assert next_occurrence(None, 'monthly', after=after) is None


def test_next_occurrence_month_end_does_not_drift():
    # DateOffset from the original start keeps the 31st where the month allows it
    result = next_occurrence('2025-01-31', 'monthly', after='2025-03-02')
    assert result == pd.Timestamp('2025-03-31')


def test_prepare_recurring_keeps_stored_frequency_spelling():
    prepared = prepare_recurring([{'Amount': 100, 'Frequency': 'Weekly'}, {'Amount': 100, 'Frequency': 'weekly'}])
    assert prepared['Frequency'].tolist() == ['Weekly', 'weekly']
    assert prepared['Monthly Amount'].tolist() == [100.0, 400.0]
