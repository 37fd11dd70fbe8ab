"""Resolution of relative and day-first date expressions.

The grammar is deliberately small: ISO dates, a handful of relative tokens
in English and Spanish, and numeric day/month[/year] forms. Everything is
resolved against an explicit ``today``; there is no ambient clock here.
"""

import re
import unicodedata
from datetime import date, timedelta

RELATIVE_TOKENS: dict[str, int] = {
    "today": 0,
    "hoy": 0,
    "tomorrow": 1,
    "manana": 1,
    "day after tomorrow": 2,
    "the day after tomorrow": 2,
    "pasado manana": 2,
}

_ISO_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_DAY_MONTH_PATTERN = re.compile(r"^(\d{1,2})[/-](\d{1,2})(?:[/-](\d{2,4}))?$")


def _fold(text: str) -> str:
    """Lowercase, strip accents and collapse whitespace."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.split())


def _build_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_iso_date(value: str) -> date | None:
    """Parse a strict YYYY-MM-DD string, rejecting impossible calendar dates."""
    match = _ISO_PATTERN.match(value.strip())
    if not match:
        return None
    return _build_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))


def normalize_date_input(value: str | date | None, today: date) -> date | None:
    """Resolve a user-supplied date expression to a calendar date.

    Args:
        value: "2026-03-01", "today", "mañana", "pasado mañana", "5/3", "05-03-27"...
        today: Reference date the relative forms are resolved against

    Returns:
        The resolved date, or None when the expression is not understood
    """
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    iso = parse_iso_date(value)
    if iso is not None:
        return iso

    offset = RELATIVE_TOKENS.get(_fold(value))
    if offset is not None:
        return today + timedelta(days=offset)

    match = _DAY_MONTH_PATTERN.match(value.strip())
    if not match:
        return None

    day = int(match.group(1))
    month = int(match.group(2))
    year = int(match.group(3)) if match.group(3) else today.year
    if year < 100:
        year += 2000
    return _build_date(year, month, day)
