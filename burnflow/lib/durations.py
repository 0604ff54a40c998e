"""
Duration parsing and formatting.

Durations are written the way users type them on the board: "1h 30m",
"45m", "2h 0m 10s". Hours are the largest unit; days are never used.
"""

import re
from datetime import timedelta

SECONDS_PER_UNIT = {
    "d": 60 * 60 * 24,
    "h": 60 * 60,
    "m": 60,
    "s": 1,
}

SEGMENT_PATTERN = re.compile(r'^(-?\d+(?:\.\d+)?)([dhms])$', re.IGNORECASE)

UNIT_SECONDS = {
    "hours": 3600.0,
    "minutes": 60.0,
    "seconds": 1.0,
}


def parse_duration(text: str) -> timedelta:
    """
    Parse a duration string like "1h 30m" into a timedelta.

    Each space separated segment is a number followed by a unit
    (d, h, m or s). Segments are summed.

    Raises:
        ValueError: if a segment is malformed or the string is empty
    """
    total = 0.0
    segments = [s for s in text.split(" ") if s]
    if not segments:
        raise ValueError(f"Empty duration: {text!r}")

    for segment in segments:
        match = SEGMENT_PATTERN.match(segment)
        if not match:
            raise ValueError(f"Invalid duration segment {segment!r} in {text!r}")
        quantity, unit = match.groups()
        total += round(float(quantity) * SECONDS_PER_UNIT[unit.lower()])

    return timedelta(seconds=round(total))


def format_duration(duration: timedelta) -> str:
    """Format a timedelta as "1h 30m", "45m 10s" or "0s"."""
    seconds = int(duration.total_seconds())
    sign = "-" if seconds < 0 else ""
    seconds = abs(seconds)

    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)

    pieces = []
    if hours:
        pieces.append(f"{sign}{hours}h")
    if minutes:
        pieces.append(f"{sign}{minutes}m")
    if seconds or not pieces:
        pieces.append(f"{sign}{seconds}s")
    return " ".join(pieces)


def to_unit(duration: timedelta, unit: str = "hours") -> float:
    """Convert a timedelta into a float count of hours, minutes or seconds."""
    return duration.total_seconds() / UNIT_SECONDS[unit]
