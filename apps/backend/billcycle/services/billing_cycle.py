"""
Statement period calculation

A card with closing day ``d`` produces one bill per month: the period runs from
the day after the previous month's closing date through ``d`` of the bill
month, and payment is due a fixed number of days later.

Every function here is pure; the current instant is always passed in.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from billcycle.errors import InvalidConfig
from billcycle.utils.months import add_months, bill_label, previous_month


MIN_CLOSING_DAY = 1
MAX_CLOSING_DAY = 28

# Millisecond precision, matching how statement end instants are rendered
END_OF_DAY = time(23, 59, 59, 999000)


@dataclass(frozen=True)
class BillingPeriod:
    month: int
    year: int
    start_date: datetime
    end_date: datetime
    due_date: datetime
    origin: str | None = None

    @property
    def label(self) -> str:
        return bill_label(self.month, self.year)

    @property
    def start_day(self) -> date:
        return self.start_date.date()

    @property
    def end_day(self) -> date:
        return self.end_date.date()

    def contains(self, value: date | datetime) -> bool:
        if isinstance(value, datetime):
            return self.start_date <= value <= self.end_date
        return self.start_day <= value <= self.end_day


def validate_closing_day(closing_day: int) -> int:
    if not isinstance(closing_day, int) or isinstance(closing_day, bool):
        raise InvalidConfig("closingDay must be an integer")
    if not MIN_CLOSING_DAY <= closing_day <= MAX_CLOSING_DAY:
        raise InvalidConfig(
            f"closingDay must be between {MIN_CLOSING_DAY} and {MAX_CLOSING_DAY}, got {closing_day}"
        )
    return closing_day


def build_period(
    closing_day: int,
    month: int,
    year: int,
    *,
    due_offset_days: int = 7,
    origin: str | None = None,
) -> BillingPeriod:
    """Period of the bill closing on ``closing_day`` of ``month/year``."""
    validate_closing_day(closing_day)
    prev_year, prev_month = previous_month(year, month)
    start = datetime.combine(date(prev_year, prev_month, closing_day) + timedelta(days=1), time.min)
    end = datetime.combine(date(year, month, closing_day), END_OF_DAY)
    due = datetime.combine(end.date() + timedelta(days=due_offset_days), time.min)
    return BillingPeriod(
        month=month,
        year=year,
        start_date=start,
        end_date=end,
        due_date=due,
        origin=origin,
    )


def get_bill_periods(
    closing_day: int,
    *,
    now: datetime | date,
    count: int = 6,
    due_offset_days: int = 7,
    origin: str | None = None,
) -> list[BillingPeriod]:
    """
    Generate ``count`` consecutive bill periods ending with the current month.

    Returns most recent first. Raises InvalidConfig for a closing day outside
    1-28 or a non-positive count.

    Example:
        >>> [p.label for p in get_bill_periods(13, now=date(2024, 3, 20), count=2)]
        ['Marco 2024', 'Fevereiro 2024']
    """
    validate_closing_day(closing_day)
    if count < 1:
        raise InvalidConfig(f"count must be at least 1, got {count}")

    periods: list[BillingPeriod] = []
    for offset in range(count):
        year, month = add_months(now.year, now.month, -offset)
        periods.append(
            build_period(closing_day, month, year, due_offset_days=due_offset_days, origin=origin)
        )
    return periods
