"""
Utils package
"""

from .normalization import normalize_text, keyword_tokens, matches_keywords
from .months import (
    add_months,
    previous_month,
    next_month,
    clamp_day,
    shift_months,
    month_bounds,
    bill_label,
    short_month_label,
)

__all__ = [
    "normalize_text",
    "keyword_tokens",
    "matches_keywords",
    "add_months",
    "previous_month",
    "next_month",
    "clamp_day",
    "shift_months",
    "month_bounds",
    "bill_label",
    "short_month_label",
]
