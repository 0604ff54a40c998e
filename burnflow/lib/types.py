"""
Shared data types for burnflow.

This module contains the enums and dataclasses used across the engine,
the store and the CLI to avoid circular imports.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any


class Stage(Enum):
    """Task lifecycle stages, in board order."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    UNDER_REVIEW = "under_review"
    DONE = "done"
    DEFERRED = "deferred"

    @property
    def label(self) -> str:
        return STAGE_LABELS[self]


STAGE_LABELS = {
    Stage.TODO: "Todo",
    Stage.IN_PROGRESS: "In Progress",
    Stage.UNDER_REVIEW: "Under Review",
    Stage.DONE: "Done",
    Stage.DEFERRED: "Deferred",
}

# Stopped stages zero a task's burndown contribution
STOPPED_STAGES = frozenset({Stage.DONE, Stage.DEFERRED})


def is_stopped(stage: Stage) -> bool:
    return stage in STOPPED_STAGES


def parse_stage(value: str | None) -> Stage | None:
    """Parse a stage string into Stage enum.

    Returns None if the stage is unknown.
    """
    if value is None:
        return None
    for stage in Stage:
        if stage.value == value:
            return stage
    return None


class PointKind(Enum):
    """Why a burndown point moved."""

    NONE = "none"
    NEW_TASK = "new_task"
    SCOPE_CHANGE = "scope_change"
    STAGE_CHANGE = "stage_change"
    WORKLOG = "worklog"


ESTIMATE_FIELD = "estimate"
STAGE_FIELD = "stage"


@dataclass(frozen=True)
class DeltaPoint:
    """A value at a moment, tagged with the event that produced it.

    For per-task deltas the value is a signed timedelta. For merged series
    it is the running total in the configured unit.
    """
    moment: datetime
    value: Any
    kind: PointKind = PointKind.NONE
    subject_id: int | None = None  # Task, changelog or worklog id; None for anchors

    def with_value(self, value: Any) -> "DeltaPoint":
        return replace(self, value=value)

    @classmethod
    def initial(cls, moment: datetime, value: Any) -> "DeltaPoint":
        """Anchor point with no originating entity."""
        return cls(moment=moment, value=value)


@dataclass(frozen=True)
class User:
    id: int
    first_name: str
    last_name: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True)
class Task:
    """Current state of a task as returned by the task lookup."""
    id: int
    name: str
    created: datetime
    original_estimate: timedelta
    estimate: timedelta
    stage: Stage
    project_id: int
    sprint_id: int | None = None  # None while in the backlog


@dataclass(frozen=True)
class ChangelogEntry:
    """An immutable old -> new change of one task field."""
    id: int
    task_id: int
    field: str  # "estimate" or "stage"
    created: datetime
    from_value: Any  # timedelta for estimate, Stage for stage
    to_value: Any
    creator: User | None = None
    task: Task | None = None  # Populated when the lookup includes the task


@dataclass(frozen=True)
class WorklogEntry:
    """Time spent on a task, split across tagged work instances."""
    id: int
    task_id: int
    occurred: datetime
    durations: tuple[timedelta, ...] = ()
    user: User | None = None
    pair_user: User | None = None
    task: Task | None = None

    @property
    def total_time_spent(self) -> timedelta:
        return sum(self.durations, timedelta())


@dataclass(frozen=True)
class Sprint:
    id: int
    name: str
    project_id: int
    time_started: datetime | None = None


@dataclass(frozen=True)
class Project:
    id: int
    name: str
    start_date: date

    @property
    def start(self) -> datetime:
        return datetime.combine(self.start_date, datetime.min.time())


@dataclass(frozen=True)
class TaskHistory:
    """Snapshot of everything that ever happened to one task.

    Each stream is expected in time order; the reconstructor re-sorts
    defensively.
    """
    task: Task
    estimate_changes: tuple[ChangelogEntry, ...] = ()
    stage_changes: tuple[ChangelogEntry, ...] = ()
    worklog: tuple[WorklogEntry, ...] = ()

    @property
    def initial_stage(self) -> Stage:
        """Stage the task was created in."""
        if self.stage_changes:
            return min(self.stage_changes, key=lambda change: change.created).from_value
        return self.task.stage

