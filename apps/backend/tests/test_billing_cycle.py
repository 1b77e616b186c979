from datetime import date, datetime, timedelta

import pytest

from billcycle.errors import InvalidConfig
from billcycle.services.billing_cycle import build_period, get_bill_periods


def test_closing_day_13_periods():
    periods = get_bill_periods(13, now=datetime(2024, 3, 20, 12, 0), count=6)

    assert len(periods) == 6
    current = periods[0]
    assert (current.month, current.year) == (3, 2024)
    assert current.label == "Marco 2024"
    assert current.start_date == datetime(2024, 2, 14, 0, 0, 0)
    assert current.end_date == datetime(2024, 3, 13, 23, 59, 59, 999000)
    assert current.due_date == datetime(2024, 3, 20, 0, 0, 0)

    oldest = periods[-1]
    assert (oldest.month, oldest.year) == (10, 2023)
    assert oldest.label == "Outubro 2023"


def test_periods_cross_year_boundary():
    periods = get_bill_periods(5, now=date(2024, 1, 2), count=2)
    january, december = periods
    assert january.start_date == datetime(2023, 12, 6)
    assert december.label == "Dezembro 2023"
    assert december.start_date == datetime(2023, 11, 6)


@pytest.mark.parametrize("closing_day", range(1, 29))
def test_periods_are_contiguous(closing_day):
    periods = get_bill_periods(closing_day, now=date(2024, 3, 1), count=12)
    for newer, older in zip(periods, periods[1:]):
        assert older.end_date.date() + timedelta(days=1) == newer.start_date.date()
        assert older.end_date < newer.start_date


def test_contains_is_inclusive_on_both_ends():
    period = build_period(13, 3, 2024)
    assert period.contains(date(2024, 2, 14))
    assert period.contains(date(2024, 3, 13))
    assert period.contains(datetime(2024, 3, 13, 23, 59, 59))
    assert not period.contains(date(2024, 2, 13))
    assert not period.contains(date(2024, 3, 14))


def test_due_offset_is_configurable():
    period = build_period(28, 2, 2024, due_offset_days=10)
    assert period.due_date == datetime(2024, 3, 9)


@pytest.mark.parametrize("closing_day", [0, 29, 31, -1])
def test_invalid_closing_day(closing_day):
    with pytest.raises(InvalidConfig):
        get_bill_periods(closing_day, now=date(2024, 3, 20))


def test_invalid_count():
    with pytest.raises(InvalidConfig):
        get_bill_periods(13, now=date(2024, 3, 20), count=0)
