"""
Human-readable descriptions of burndown points.

A point only carries the id of the entity that produced it, so rendering
re-fetches that entity through the collaborators. A deleted entity is a
NotFoundError, never an empty message.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from burnflow.lib.durations import format_duration
from burnflow.lib.sources import ChangelogRepository, TaskRepository, WorklogRepository
from burnflow.lib.types import (
    ESTIMATE_FIELD,
    STAGE_FIELD,
    ChangelogEntry,
    DeltaPoint,
    PointKind,
    Stage,
    Task,
    User,
    WorklogEntry,
)

logger = logging.getLogger(__name__)


class NotFoundError(Exception):
    """Raised when the entity behind a point no longer exists."""

    def __init__(self, kind: PointKind, subject_id: int | None):
        self.kind = kind
        self.subject_id = subject_id
        super().__init__(f"No entity found for {kind.value} point (id: {subject_id})")


@dataclass(frozen=True)
class MessageToken:
    """A piece of a message: plain text, a value, or the change arrow."""
    type: str  # "text", "value", "arrow"
    value: Any = None

    def __str__(self) -> str:
        if self.type == "arrow":
            return "->"
        if self.type == "value":
            return format_value(self.value)
        return str(self.value)


@dataclass
class PointMessage:
    created: datetime
    tokens: list[MessageToken] = field(default_factory=list)

    @property
    def text(self) -> str:
        return " ".join(str(token) for token in self.tokens)


def format_value(value: Any) -> str:
    """Render a message value for display."""
    if isinstance(value, timedelta):
        return format_duration(value)
    if isinstance(value, Stage):
        return value.label
    if isinstance(value, Task):
        return value.name
    if isinstance(value, User):
        return value.full_name
    return str(value)


def _text(value: str) -> MessageToken:
    return MessageToken("text", value)


def _value(value: Any) -> MessageToken:
    return MessageToken("value", value)


def new_task_message(created: datetime, task: Task) -> PointMessage:
    return PointMessage(created, [
        _text("Added task"),
        _value(task),
        _text("with estimate"),
        _value(task.original_estimate),
    ])


def change_message(created: datetime, change: ChangelogEntry) -> PointMessage:
    """Estimate or stage change of a task.

    Raises:
        ValueError: if the change is for any other field
    """
    if change.field == ESTIMATE_FIELD:
        prefix = "Estimate of"
    elif change.field == STAGE_FIELD:
        prefix = "Stage of"
    else:
        raise ValueError(f"Unexpected changed field '{change.field}'")

    return PointMessage(created, [
        _text(prefix),
        _value(change.task),
        _text("changed"),
        _value(change.from_value),
        MessageToken("arrow"),
        _value(change.to_value),
    ])


def worklog_message(created: datetime, entry: WorklogEntry) -> PointMessage:
    tokens = [_value(entry.user)]
    if entry.pair_user is not None:
        tokens.append(_text(f"and {entry.pair_user.full_name}"))
    tokens.extend([
        _text("logged"),
        _value(entry.total_time_spent),
        _text("on"),
        _value(entry.task),
    ])
    return PointMessage(created, tokens)


async def render_message(
    point: DeltaPoint,
    tasks: TaskRepository,
    changelogs: ChangelogRepository,
    worklogs: WorklogRepository,
) -> PointMessage | None:
    """
    Describe what produced a point.

    Args:
        point: Point from a task delta list or a merged series
        tasks, changelogs, worklogs: Collaborators used to re-fetch the entity

    Returns:
        The message, or None for NONE (anchor) points

    Raises:
        NotFoundError: if the entity behind the point is gone
    """
    if point.kind == PointKind.NONE:
        return None

    logger.debug(f"[MESSAGES] rendering {point.kind.value} point {point.subject_id}")

    if point.kind == PointKind.NEW_TASK:
        task = await tasks.get_by_id(point.subject_id)
        if task is None:
            raise NotFoundError(point.kind, point.subject_id)
        return new_task_message(point.moment, task)

    if point.kind in (PointKind.SCOPE_CHANGE, PointKind.STAGE_CHANGE):
        change = await changelogs.get_by_id(point.subject_id, include_task=True)
        if change is None or change.task is None:
            raise NotFoundError(point.kind, point.subject_id)
        return change_message(point.moment, change)

    if point.kind == PointKind.WORKLOG:
        entry = await worklogs.get_by_id(point.subject_id, include_users=True)
        if entry is None or entry.task is None or entry.user is None:
            raise NotFoundError(point.kind, point.subject_id)
        return worklog_message(point.moment, entry)

    raise ValueError(f"Cannot render point of kind {point.kind.value}")
