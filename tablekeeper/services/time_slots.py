"""Pure helpers for HH:MM values and slot arithmetic.

Times of day are handled as integer minutes since midnight. Parsing never
raises: malformed input yields ``None`` and callers decide what to do.
"""

import math
import re

MINUTES_PER_DAY = 24 * 60

_TIME_PATTERN = re.compile(r"^(\d{1,2})(?::(\d{1,2}))?$")


def parse_time_to_minutes(value: str | None) -> int | None:
    """Parse "21", "21:0", "21:00", "9" or "9:15" into minutes since midnight.

    Args:
        value: Raw time-of-day text

    Returns:
        Minutes since midnight, or None if the text is not a valid time
    """
    if not isinstance(value, str):
        return None

    match = _TIME_PATTERN.match(value.strip())
    if not match:
        return None

    hours = int(match.group(1))
    minutes = int(match.group(2)) if match.group(2) is not None else 0
    if not 0 <= hours <= 23 or not 0 <= minutes <= 59:
        return None

    return hours * 60 + minutes


def minutes_to_hhmm(minutes: float | None) -> str:
    """Format minutes since midnight as zero-padded "HH:MM".

    Values are rounded to the nearest minute and clamped into the day.
    """
    if minutes is None or not math.isfinite(minutes):
        return "00:00"

    clamped = max(0, min(MINUTES_PER_DAY - 1, round(minutes)))
    return f"{clamped // 60:02d}:{clamped % 60:02d}"


def round_to_slot(minutes: int | None, interval: int, mode: str) -> int | None:
    """Snap ``minutes`` onto the ``interval`` grid.

    Args:
        minutes: Minutes since midnight (None passes through)
        interval: Slot length in minutes; non-positive disables rounding
        mode: "floor", "ceil" or "nearest"

    Returns:
        The aligned minute value
    """
    if minutes is None:
        return None
    if interval <= 0:
        return minutes

    if mode == "floor":
        slots = math.floor(minutes / interval)
    elif mode == "ceil":
        slots = math.ceil(minutes / interval)
    else:
        # Half-up, not banker's rounding
        slots = math.floor(minutes / interval + 0.5)

    return slots * interval


def normalize_time(value: str | None, interval: int, mode: str) -> tuple[int | None, str | None]:
    """Parse and slot-round a raw time.

    Returns:
        (rounded minutes, "HH:MM" of the rounded value only if rounding changed it)
    """
    raw = parse_time_to_minutes(value)
    rounded = round_to_slot(raw, interval, mode)
    if raw is None or rounded is None:
        return None, None

    raw_hhmm = minutes_to_hhmm(raw)
    rounded_hhmm = minutes_to_hhmm(rounded)
    return rounded, rounded_hhmm if rounded_hhmm != raw_hhmm else None


def windows_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open interval overlap: [start_a, end_a) vs [start_b, end_b)."""
    return start_a < end_b and end_a > start_b
