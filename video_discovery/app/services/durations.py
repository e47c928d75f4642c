from __future__ import annotations

import math
import re

# Searched anywhere in the string; a missing component contributes zero.
ISO8601_DURATION_PATTERN = re.compile(
    r"PT(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?"
)
_DIGITS_ONLY_PATTERN = re.compile(r"^\d+$")


def parse_iso8601_duration(raw_value: object) -> int:
    """Return whole seconds for a `PT#H#M#S` duration, or 0 when it cannot be read."""
    if not isinstance(raw_value, str) or not raw_value:
        return 0
    matched = ISO8601_DURATION_PATTERN.search(raw_value)
    if matched is None:
        return 0

    try:
        hours = int(matched.group("hours") or 0)
        minutes = int(matched.group("minutes") or 0)
        seconds = int(matched.group("seconds") or 0)
    except ValueError:
        # Digit runs past the interpreter's int conversion limit.
        return 0
    return hours * 3_600 + minutes * 60 + seconds


def coerce_duration_seconds(raw_value: object) -> int:
    """Accept seconds as a number, a digit string or an ISO-8601 duration.

    Never raises: anything unreadable becomes 0 ("duration unknown").
    """
    if isinstance(raw_value, bool):
        return 0
    if isinstance(raw_value, int):
        return max(0, raw_value)
    if isinstance(raw_value, float):
        if math.isnan(raw_value) or math.isinf(raw_value):
            return 0
        return max(0, math.floor(raw_value))
    if isinstance(raw_value, str):
        stripped = raw_value.strip()
        if _DIGITS_ONLY_PATTERN.match(stripped):
            try:
                return int(stripped)
            except ValueError:
                return 0
        return parse_iso8601_duration(stripped)
    return 0


def format_duration(seconds: int) -> str:
    if seconds <= 0:
        return "0:00"
    minutes, remainder = divmod(seconds, 60)
    return f"{minutes}:{remainder:02d}"
