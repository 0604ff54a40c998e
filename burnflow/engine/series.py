"""
Merging per-task deltas into chart series.

Three outputs share one pipeline:

    per-task streams -> k-way merge by moment -> fold points before the
    anchor into one initial point -> running total -> unit conversion

- burndown: remaining estimate (reconstructed deltas, see deltas.py)
- burnup:   completed work (positive worklog durations, never clamped)
- flow:     one line per stage holding the estimate currently in that stage
"""

import heapq
import logging
from datetime import datetime, timedelta
from typing import Iterable

from burnflow.engine.deltas import build_events, compute_task_deltas
from burnflow.lib.durations import to_unit
from burnflow.lib.types import (
    DeltaPoint,
    PointKind,
    Stage,
    TaskHistory,
    is_stopped,
)

logger = logging.getLogger(__name__)

ZERO = timedelta()

BURNDOWN = "burndown"
BURNUP = "burnup"
VALID_MODES = (BURNDOWN, BURNUP)


def merge_streams(streams: Iterable[list[DeltaPoint]]) -> list[DeltaPoint]:
    """Merge time-ordered streams into one, stable on stream order for ties."""
    return list(heapq.merge(*streams, key=lambda point: point.moment))


def fold_before_anchor(
    points: list[DeltaPoint],
    anchor: datetime,
) -> tuple[DeltaPoint, list[DeltaPoint]]:
    """Collapse every point strictly before the anchor into one initial point.

    Returns:
        (initial, remaining) where initial is a NONE point at the anchor holding
        the net sum of the folded points, and remaining are the points at or
        after the anchor in their original order.
    """
    folded = ZERO
    remaining = []
    for point in points:
        if point.moment < anchor:
            folded += point.value
        else:
            remaining.append(point)
    return DeltaPoint.initial(anchor, folded), remaining


def accumulate(initial: DeltaPoint, points: list[DeltaPoint], label: str = "") -> list[DeltaPoint]:
    """Turn deltas into running totals, starting from the initial point.

    A running total below zero is never valid; it is clamped and logged.
    """
    total = initial.value
    if total < ZERO:
        logger.warning(f"[SERIES] {label}: negative total {total} before anchor, clamping")
        total = ZERO
    result = [initial.with_value(total)]
    for point in points:
        total += point.value
        if total < ZERO:
            logger.warning(
                f"[SERIES] {label}: {point.kind.value} {point.subject_id} drove total to {total}, clamping"
            )
            total = ZERO
        result.append(point.with_value(total))
    return result


def merge_series(
    streams: Iterable[list[DeltaPoint]],
    anchor: datetime,
    unit: str = "hours",
    label: str = "series",
) -> list[DeltaPoint]:
    """
    Merge per-task delta streams into one cumulative series.

    Args:
        streams: Per-task delta points, each in time order
        anchor: Sprint or project start; nothing is reported before it
        unit: "hours", "minutes" or "seconds" for the output values
        label: Name used in log messages

    Returns:
        Running-total points, starting with a NONE point at the anchor.
        There is one entry per merged point, so events that share a moment
        give several entries with that moment, in merge order.
    """
    merged = merge_streams(streams)
    initial, rest = fold_before_anchor(merged, anchor)
    series = accumulate(initial, rest, label)
    logger.debug(f"[SERIES] {label}: {len(merged)} point(s) merged, {len(merged) - len(rest)} folded")
    return [point.with_value(to_unit(point.value, unit)) for point in series]


def burndown_points(history: TaskHistory) -> list[DeltaPoint]:
    """Task deltas as they contribute to a burndown.

    A task created in a stopped stage adds nothing when created; it is
    credited with its remaining estimate when moved to an active stage.
    """
    points = compute_task_deltas(history)
    if is_stopped(history.initial_stage):
        points[0] = points[0].with_value(ZERO)
    return points


def burnup_points(history: TaskHistory) -> list[DeltaPoint]:
    """One positive point per worklog entry of the task."""
    worklog = sorted(history.worklog, key=lambda entry: entry.occurred)
    return [
        DeltaPoint(
            moment=entry.occurred,
            value=entry.total_time_spent,
            kind=PointKind.WORKLOG,
            subject_id=entry.id,
        )
        for entry in worklog
    ]


def burndown_series(histories: Iterable[TaskHistory], anchor: datetime, unit: str = "hours") -> list[DeltaPoint]:
    """Remaining estimate over time."""
    return merge_series((burndown_points(h) for h in histories), anchor, unit, label=BURNDOWN)


def burnup_series(histories: Iterable[TaskHistory], anchor: datetime, unit: str = "hours") -> list[DeltaPoint]:
    """Work logged over time."""
    return merge_series((burnup_points(h) for h in histories), anchor, unit, label=BURNUP)


def compute_series(
    histories: Iterable[TaskHistory],
    anchor: datetime,
    mode: str = BURNDOWN,
    unit: str = "hours",
) -> list[DeltaPoint]:
    """Dispatch to burndown_series or burnup_series.

    Raises:
        ValueError: if mode is unknown
    """
    if mode == BURNDOWN:
        return burndown_series(histories, anchor, unit)
    if mode == BURNUP:
        return burnup_series(histories, anchor, unit)
    raise ValueError(f"Unknown series mode '{mode}' (expected one of {', '.join(VALID_MODES)})")


def flow_points(history: TaskHistory) -> list[DeltaPoint]:
    """
    Per-stage estimate changes for one task.

    Each point's value maps stages to the estimate moving into (positive) or
    out of (negative) them. Worklog does not affect flow.
    """
    points = []
    stage = None
    estimate = ZERO

    for event in build_events(history):
        if event.kind == PointKind.NEW_TASK:
            stage = event.stage
            estimate = event.estimate
            change = {stage: estimate}
        elif event.kind == PointKind.SCOPE_CHANGE:
            change = {stage: event.estimate - estimate}
            estimate = event.estimate
        elif event.kind == PointKind.STAGE_CHANGE:
            if event.stage == stage:
                change = {}
            else:
                change = {stage: -estimate, event.stage: estimate}
                stage = event.stage
        else:
            continue

        points.append(DeltaPoint(
            moment=event.moment,
            value=change,
            kind=event.kind,
            subject_id=event.subject_id,
        ))

    return points


def flow_series(
    histories: Iterable[TaskHistory],
    anchor: datetime,
    unit: str = "hours",
) -> dict[Stage, list[DeltaPoint]]:
    """
    Cumulative flow: for every stage, the estimate sitting in it over time.

    Every line has one point per flow event across all tasks, so lines share
    moments and indexes and can be stacked directly. Events at the same
    moment are not collapsed; a moment can repeat within a line.

    Returns:
        Mapping of every Stage to its line, each starting with a NONE point
        at the anchor
    """
    merged = merge_streams(flow_points(h) for h in histories)

    lines = {}
    for stage in Stage:
        stage_points = [point.with_value(point.value.get(stage, ZERO)) for point in merged]
        initial, rest = fold_before_anchor(stage_points, anchor)
        line = accumulate(initial, rest, label=f"flow:{stage.value}")
        lines[stage] = [point.with_value(to_unit(point.value, unit)) for point in line]

    logger.debug(f"[SERIES] flow: {len(merged)} event(s) across {len(lines)} stage line(s)")
    return lines
