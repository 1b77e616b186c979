"""Calendar month arithmetic shared by the billing cycle, carryover and projection code.

All helpers take ``(year, month)`` with a 1-indexed month and are pure.
"""

from __future__ import annotations

import calendar
from datetime import date


MONTH_NAMES = (
    "Janeiro", "Fevereiro", "Marco", "Abril", "Maio", "Junho",
    "Julho", "Agosto", "Setembro", "Outubro", "Novembro", "Dezembro",
)

MONTH_ABBREVIATIONS = (
    "jan", "fev", "mar", "abr", "mai", "jun",
    "jul", "ago", "set", "out", "nov", "dez",
)


def add_months(year: int, month: int, delta: int) -> tuple[int, int]:
    total = year * 12 + (month - 1) + delta
    new_year = total // 12
    new_month = total % 12 + 1
    return new_year, new_month


def previous_month(year: int, month: int) -> tuple[int, int]:
    return add_months(year, month, -1)


def next_month(year: int, month: int) -> tuple[int, int]:
    return add_months(year, month, 1)


def clamp_day(year: int, month: int, day: int) -> date:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def shift_months(value: date, delta: int) -> date:
    """Move ``value`` by ``delta`` months keeping the day, clamped to month end.

    >>> shift_months(date(2024, 1, 31), 1)
    datetime.date(2024, 2, 29)
    """
    year, month = add_months(value.year, value.month, delta)
    return clamp_day(year, month, value.day)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def bill_label(month: int, year: int, separator: str = " ") -> str:
    """Human label of a bill, e.g. ``"Marco 2024"`` or ``"Marco/2024"``."""
    return f"{MONTH_NAMES[month - 1]}{separator}{year}"


def short_month_label(month: int, year: int) -> str:
    return f"{MONTH_ABBREVIATIONS[month - 1]}/{str(year)[-2:]}"
