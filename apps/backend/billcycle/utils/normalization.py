"""
Text normalization helpers

Statement descriptions arrive in mixed case, with accents and irregular
spacing; matching against recurring templates and category rules works on the
normalized form.
"""

import re
import unicodedata


def normalize_text(value: str | None) -> str:
    """
    Lowercase, strip accents and collapse whitespace.

    Example:
        >>> normalize_text("  Conta de ÁGUA  ")
        "conta de agua"
    """
    if not value:
        return ""

    # NFD splits accented letters into base letter + combining mark
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))

    return re.sub(r"\s+", " ", stripped.casefold()).strip()


def keyword_tokens(value: str | None, *, min_length: int = 3) -> list[str]:
    """
    Split a normalized description into keywords of at least ``min_length`` chars.

    Example:
        >>> keyword_tokens("Plano de Saúde Unimed")
        ["plano", "saude", "unimed"]
    """
    return [token for token in normalize_text(value).split(" ") if len(token) >= min_length]


def matches_keywords(description: str | None, reference: str | None) -> bool:
    """True when any keyword of ``reference`` appears inside ``description``."""
    haystack = normalize_text(description)
    if not haystack:
        return False
    return any(keyword in haystack for keyword in keyword_tokens(reference))
