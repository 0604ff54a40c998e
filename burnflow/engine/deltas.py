"""
Per-task remaining-estimate reconstruction.

The remaining estimate of a task is never stored. It is derived by replaying
the task's creation, estimate changes, stage changes and worklog in time order
through a single reducer, apply_event(), which threads an immutable
ReplayState and returns the delta to emit for each event.

Rules:
- The running total of emitted deltas never drops below zero.
- While a task sits in a stopped stage (Done, Deferred) its visible total is
  zero. Scope changes and work logged in that period are tracked internally
  and settle when the task is moved back to an active stage.
"""

import heapq
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Iterable

from burnflow.lib.types import (
    DeltaPoint,
    PointKind,
    Stage,
    TaskHistory,
    is_stopped,
)

logger = logging.getLogger(__name__)

ZERO = timedelta()


@dataclass(frozen=True)
class ReplayEvent:
    """One source event of a task, tagged by kind.

    Which optional fields are set depends on kind:
        NEW_TASK:     estimate (original), stage (initial)
        SCOPE_CHANGE: old_estimate, estimate
        STAGE_CHANGE: old_stage, stage
        WORKLOG:      duration
    """
    kind: PointKind
    moment: datetime
    subject_id: int
    estimate: timedelta | None = None
    old_estimate: timedelta | None = None
    stage: Stage | None = None
    old_stage: Stage | None = None
    duration: timedelta | None = None


@dataclass(frozen=True)
class ReplayState:
    """Replay bookkeeping for a single task."""
    remaining: timedelta
    estimate: timedelta
    zeroed: bool


def apply_event(
    state: ReplayState | None,
    event: ReplayEvent,
) -> tuple[ReplayState, timedelta | None]:
    """Fold one event into the replay state.

    Args:
        state: State before the event, None before the task exists
        event: The event to apply

    Returns:
        (new_state, delta) where delta is the change to emit, or None when
        the event produces no point.

    Raises:
        ValueError: if the first event is not NEW_TASK or a second NEW_TASK arrives
    """
    if event.kind == PointKind.NEW_TASK:
        if state is not None:
            raise ValueError(f"Task {event.subject_id} created twice")
        new_state = ReplayState(
            remaining=event.estimate,
            estimate=event.estimate,
            zeroed=is_stopped(event.stage),
        )
        return new_state, event.estimate

    if state is None:
        raise ValueError(f"{event.kind.value} event {event.subject_id} before task creation")

    if event.kind == PointKind.SCOPE_CHANGE:
        delta = event.estimate - event.old_estimate
        if state.zeroed:
            remaining = max(state.remaining + delta, ZERO)
            return replace(state, remaining=remaining, estimate=event.estimate), ZERO
        emitted = max(delta, -state.remaining)
        return replace(state, remaining=state.remaining + emitted, estimate=event.estimate), emitted

    if event.kind == PointKind.STAGE_CHANGE:
        stopping = is_stopped(event.stage)
        if stopping == state.zeroed:
            # Active -> active or Done <-> Deferred
            return state, None
        if stopping:
            return replace(state, zeroed=True), -state.remaining
        return replace(state, zeroed=False), state.remaining

    if event.kind == PointKind.WORKLOG:
        if state.zeroed:
            remaining = max(state.remaining - event.duration, ZERO)
            return replace(state, remaining=remaining), ZERO
        emitted = max(-event.duration, -state.remaining)
        return replace(state, remaining=state.remaining + emitted), emitted

    raise ValueError(f"Cannot replay event of kind {event.kind.value}")


def build_events(history: TaskHistory) -> list[ReplayEvent]:
    """Merge a task's event streams into one time-ordered list.

    Ties on moment keep creation first, then scope changes, stage changes and
    worklog, each in the order supplied.
    """
    task = history.task
    created = task.created

    creation = [ReplayEvent(
        kind=PointKind.NEW_TASK,
        moment=created,
        subject_id=task.id,
        estimate=task.original_estimate,
        stage=history.initial_stage,
    )]
    scope_changes = [
        ReplayEvent(
            kind=PointKind.SCOPE_CHANGE,
            moment=_not_before(change.created, created, task.id, change.id),
            subject_id=change.id,
            old_estimate=change.from_value,
            estimate=change.to_value,
        )
        for change in _in_time_order(history.estimate_changes, "estimate changes", task.id)
    ]
    stage_changes = [
        ReplayEvent(
            kind=PointKind.STAGE_CHANGE,
            moment=_not_before(change.created, created, task.id, change.id),
            subject_id=change.id,
            old_stage=change.from_value,
            stage=change.to_value,
        )
        for change in _in_time_order(history.stage_changes, "stage changes", task.id)
    ]
    worklog = [
        ReplayEvent(
            kind=PointKind.WORKLOG,
            moment=_not_before(entry.occurred, created, task.id, entry.id),
            subject_id=entry.id,
            duration=entry.total_time_spent,
        )
        for entry in _in_time_order(history.worklog, "worklog", task.id, key=lambda e: e.occurred)
    ]

    return list(heapq.merge(creation, scope_changes, stage_changes, worklog, key=lambda e: e.moment))


def compute_task_deltas(history: TaskHistory) -> list[DeltaPoint]:
    """
    Replay a task's history into signed remaining-estimate deltas.

    The first point is always NEW_TASK at the creation moment carrying the
    original estimate. Worklog during a stopped period still yields a
    zero-valued point so every worklog entry has a point.

    Args:
        history: Snapshot of the task and its events

    Returns:
        Delta points in non-decreasing moment order
    """
    points = []
    state = None
    total = ZERO

    for event in build_events(history):
        state, delta = apply_event(state, event)
        if delta is None:
            continue
        if total + delta < ZERO:
            logger.warning(
                f"[DELTAS] task {history.task.id}: {event.kind.value} {event.subject_id} "
                f"would drive total below zero ({total + delta}), clamping"
            )
            delta = -total
        total += delta
        points.append(DeltaPoint(
            moment=event.moment,
            value=delta,
            kind=event.kind,
            subject_id=event.subject_id,
        ))

    logger.debug(f"[DELTAS] task {history.task.id}: {len(points)} point(s), final remaining {total}")
    return points


def _in_time_order(entries: Iterable, label: str, task_id: int, key=lambda e: e.created) -> list:
    """Return entries sorted by moment, warning when the caller's order was wrong."""
    entries = list(entries)
    ordered = sorted(entries, key=key)
    if ordered != entries:
        logger.warning(f"[DELTAS] task {task_id}: {label} not in time order, re-sorting")
    return ordered


def _not_before(moment: datetime, created: datetime, task_id: int, subject_id: int) -> datetime:
    """Move events that predate the task's creation onto the creation moment."""
    if moment < created:
        logger.warning(
            f"[DELTAS] task {task_id}: event {subject_id} at {moment.isoformat()} "
            f"precedes creation, moving to {created.isoformat()}"
        )
        return created
    return moment
