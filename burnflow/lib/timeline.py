"""
Terminal and JSON formatting of burndown points.

Used by: bf deltas, bf series, bf flow, bf explain
"""

from datetime import timedelta
from typing import Any, Optional

from burnflow.lib.durations import format_duration
from burnflow.lib.types import DeltaPoint, PointKind


# ANSI color codes
COLORS = {
    "reset": "\033[0m",
    "dim": "\033[2m",
    "bold": "\033[1m",
    "green": "\033[32m",
    "red": "\033[31m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "cyan": "\033[36m",
}

POINT_COLORS = {
    PointKind.NONE: "dim",
    PointKind.NEW_TASK: "cyan",
    PointKind.SCOPE_CHANGE: "yellow",
    PointKind.STAGE_CHANGE: "blue",
    PointKind.WORKLOG: "green",
}

POINT_SYMBOLS = {
    PointKind.NONE: "=",
    PointKind.NEW_TASK: "+",
    PointKind.SCOPE_CHANGE: "~",
    PointKind.STAGE_CHANGE: ">",
    PointKind.WORKLOG: "*",
}

UNIT_SUFFIXES = {
    "hours": "h",
    "minutes": "m",
    "seconds": "s",
}


def format_amount(value: Any, unit: str = "hours") -> str:
    """Durations as "1h 30m"; series values as "1.50h"."""
    if isinstance(value, timedelta):
        return format_duration(value)
    return f"{value:.2f}{UNIT_SUFFIXES.get(unit, '')}"


def format_point_oneline(
    point: DeltaPoint,
    amount: str,
    summary: Optional[str] = None,
    colorize: bool = True,
) -> str:
    """Format a point as a one-line string (like git log --oneline)."""
    ts_str = point.moment.strftime("%Y-%m-%d %H:%M")
    symbol = POINT_SYMBOLS.get(point.kind, "?")
    summary = summary or _default_summary(point)

    if colorize:
        color = COLORS.get(POINT_COLORS.get(point.kind, "reset"), "")
        reset = COLORS["reset"]
        dim = COLORS["dim"]
        bold = COLORS["bold"]
        return f"{dim}{ts_str}{reset} {color}[{symbol}]{reset} {bold}{amount:>10}{reset}  {summary}"
    else:
        return f"{ts_str} [{symbol}] {amount:>10}  {summary}"


def _default_summary(point: DeltaPoint) -> str:
    if point.kind == PointKind.NONE:
        return "start"
    return f"{point.kind.value} {point.subject_id}"


def point_to_dict(point: DeltaPoint) -> dict:
    """JSON-ready form of a point. Durations become strings like "1h 30m"."""
    value = point.value
    if isinstance(value, timedelta):
        value = format_duration(value)
    return {
        "moment": point.moment.isoformat(),
        "value": value,
        "kind": point.kind.value,
        "subject_id": point.subject_id,
    }
