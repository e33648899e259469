"""Calendar arithmetic for preventive-maintenance recurrence.

Month-based periods roll over rather than clamp: a day that does not exist in
the target month spills into the next one, so Jan 31 +1 month is Mar 3 (Mar 2
in a leap year) and Feb 29 +1 year is Mar 1.
"""

from __future__ import annotations

from datetime import datetime

from dateutil.relativedelta import relativedelta

from cmms.domain.models import RecurringPeriod

DAY_STEPS: dict[RecurringPeriod, int] = {
    RecurringPeriod.DAILY: 1,
    RecurringPeriod.WEEKLY: 7,
    RecurringPeriod.BIWEEKLY: 14,
}

MONTH_STEPS: dict[RecurringPeriod, int] = {
    RecurringPeriod.MONTHLY: 1,
    RecurringPeriod.QUARTERLY: 3,
    RecurringPeriod.SEMIANNUALLY: 6,
    RecurringPeriod.ANNUALLY: 12,
}


def add_months(start: datetime, months: int) -> datetime:
    # Step from the first of the month, then walk forward to the original day.
    first = start.replace(day=1) + relativedelta(months=months)
    return first + relativedelta(days=start.day - 1)


def advance(start: datetime, period: RecurringPeriod, steps: int) -> datetime:
    period = RecurringPeriod(period)
    if period in DAY_STEPS:
        return start + relativedelta(days=DAY_STEPS[period] * steps)
    return add_months(start, MONTH_STEPS[period] * steps)


def occurrence_dates(start: datetime, period: RecurringPeriod, occurrences: int) -> list[datetime]:
    return [advance(start, period, index) for index in range(occurrences)]
