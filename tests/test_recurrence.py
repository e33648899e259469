from __future__ import annotations

from datetime import datetime

import pytest

from cmms.domain.models import RecurringPeriod
from cmms.domain.recurrence import advance, occurrence_dates


@pytest.mark.parametrize(
    ("period", "expected"),
    [
        (RecurringPeriod.DAILY, datetime(2025, 1, 17, 8, 0)),
        (RecurringPeriod.WEEKLY, datetime(2025, 1, 29, 8, 0)),
        (RecurringPeriod.BIWEEKLY, datetime(2025, 2, 12, 8, 0)),
        (RecurringPeriod.MONTHLY, datetime(2025, 3, 15, 8, 0)),
        (RecurringPeriod.QUARTERLY, datetime(2025, 7, 15, 8, 0)),
        (RecurringPeriod.SEMIANNUALLY, datetime(2026, 1, 15, 8, 0)),
        (RecurringPeriod.ANNUALLY, datetime(2027, 1, 15, 8, 0)),
    ],
)
def test_advance_two_steps_per_period(period: RecurringPeriod, expected: datetime) -> None:
    assert advance(datetime(2025, 1, 15, 8, 0), period, 2) == expected


def test_monthly_series_from_mid_month() -> None:
    dates = occurrence_dates(datetime(2025, 1, 15), RecurringPeriod.MONTHLY, 3)
    assert dates == [datetime(2025, 1, 15), datetime(2025, 2, 15), datetime(2025, 3, 15)]


def test_weekly_series() -> None:
    dates = occurrence_dates(datetime(2025, 6, 1), "weekly", 2)
    assert dates == [datetime(2025, 6, 1), datetime(2025, 6, 8)]


def test_month_end_rolls_into_next_month_without_drift() -> None:
    dates = occurrence_dates(datetime(2025, 1, 31), RecurringPeriod.MONTHLY, 4)
    assert dates == [
        datetime(2025, 1, 31),
        datetime(2025, 3, 3),
        datetime(2025, 3, 31),
        datetime(2025, 5, 1),
    ]


def test_month_end_rollover_in_leap_year() -> None:
    assert advance(datetime(2024, 1, 31, 6, 30), RecurringPeriod.MONTHLY, 1) == datetime(2024, 3, 2, 6, 30)


def test_leap_day_annual_series() -> None:
    dates = occurrence_dates(datetime(2024, 2, 29), RecurringPeriod.ANNUALLY, 2)
    assert dates == [datetime(2024, 2, 29), datetime(2025, 3, 1)]


def test_zero_occurrences_is_empty() -> None:
    assert occurrence_dates(datetime(2025, 1, 1), RecurringPeriod.DAILY, 0) == []
