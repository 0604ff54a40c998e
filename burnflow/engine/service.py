"""
Async facade over the burndown engine.

Fetches task history through the collaborators, then hands it to the pure
engine functions in deltas.py, series.py and messages.py. Fetches for one
task run concurrently; tasks of a scope are fetched concurrently up to
EngineConfig.fetch_concurrency at a time. Collaborator errors propagate.
"""

import asyncio
import logging
from datetime import datetime

from burnflow.engine import deltas, messages, series
from burnflow.lib.config import EngineConfig
from burnflow.lib.sources import ChangelogRepository, TaskRepository, WorklogRepository
from burnflow.lib.types import (
    ESTIMATE_FIELD,
    STAGE_FIELD,
    DeltaPoint,
    Project,
    Sprint,
    Stage,
    Task,
    TaskHistory,
)
from burnflow.workflow.fsm import audit_stage_history

logger = logging.getLogger(__name__)


class ScopeError(Exception):
    """The requested sprint or project cannot be charted."""
    pass


def in_sprint(task: Task) -> bool:
    return task.sprint_id is not None


class BurndownService:
    """Computes burndown, burnup and flow for tasks, sprints and projects."""

    def __init__(
        self,
        tasks: TaskRepository,
        changelogs: ChangelogRepository,
        worklogs: WorklogRepository,
        config: EngineConfig | None = None,
    ):
        self.tasks = tasks
        self.changelogs = changelogs
        self.worklogs = worklogs
        self.config = config or EngineConfig()

    async def fetch_history(self, task: Task) -> TaskHistory:
        """Fetch the estimate changes, stage changes and worklog of a task."""
        estimate_changes, stage_changes, worklog = await asyncio.gather(
            self.changelogs.get_by_task_and_field(task, ESTIMATE_FIELD),
            self.changelogs.get_by_task_and_field(task, STAGE_FIELD),
            self.worklogs.get_for_task(task.id),
        )
        history = TaskHistory(
            task=task,
            estimate_changes=tuple(estimate_changes),
            stage_changes=tuple(stage_changes),
            worklog=tuple(worklog),
        )
        audit_stage_history(history)
        return history

    async def fetch_histories(self, tasks: list[Task]) -> list[TaskHistory]:
        """Fetch history for many tasks, bounded by fetch_concurrency."""
        semaphore = asyncio.Semaphore(self.config.fetch_concurrency)

        async def fetch(task: Task) -> TaskHistory:
            async with semaphore:
                return await self.fetch_history(task)

        return list(await asyncio.gather(*(fetch(task) for task in tasks)))

    async def compute_task_deltas(self, task: Task) -> list[DeltaPoint]:
        """Signed remaining-estimate deltas of one task."""
        history = await self.fetch_history(task)
        return deltas.compute_task_deltas(history)

    async def compute_series(self, scope: Sprint | Project, mode: str = series.BURNDOWN) -> list[DeltaPoint]:
        """
        Burndown or burnup series for a sprint or project.

        Raises:
            ValueError: if mode is unknown
            ScopeError: if the sprint has not started
        """
        if mode not in series.VALID_MODES:
            raise ValueError(f"Unknown series mode '{mode}' (expected one of {', '.join(series.VALID_MODES)})")

        anchor = self._anchor(scope)
        tasks = await self._scope_tasks(scope)
        histories = await self.fetch_histories(tasks)
        logger.info(f"[SERVICE] {mode} for {self._describe(scope)}: {len(tasks)} task(s) from {anchor}")
        return series.compute_series(histories, anchor, mode, self.config.value_unit)

    async def compute_flow(self, scope: Sprint | Project) -> dict[Stage, list[DeltaPoint]]:
        """
        Cumulative flow for a sprint or project.

        At project level only tasks that belong to a sprint are included.

        Raises:
            ScopeError: if the sprint has not started
        """
        anchor = self._anchor(scope)
        tasks = await self._scope_tasks(scope, predicate=in_sprint)
        histories = await self.fetch_histories(tasks)
        logger.info(f"[SERVICE] flow for {self._describe(scope)}: {len(tasks)} task(s) from {anchor}")
        return series.flow_series(histories, anchor, self.config.value_unit)

    async def render_message(self, point: DeltaPoint) -> messages.PointMessage | None:
        """Describe the event behind a point (None for anchor points)."""
        return await messages.render_message(point, self.tasks, self.changelogs, self.worklogs)

    async def _scope_tasks(self, scope: Sprint | Project, predicate=None) -> list[Task]:
        # Sprint tasks all belong to a sprint already
        if isinstance(scope, Sprint):
            return await self.tasks.get_by_sprint(scope)
        return await self.tasks.get_by_project(scope, predicate)

    @staticmethod
    def _anchor(scope: Sprint | Project) -> datetime:
        if isinstance(scope, Sprint):
            if scope.time_started is None:
                raise ScopeError(f"Sprint '{scope.name}' has not started")
            return scope.time_started
        return scope.start

    @staticmethod
    def _describe(scope: Sprint | Project) -> str:
        kind = "sprint" if isinstance(scope, Sprint) else "project"
        return f"{kind} '{scope.name}'"
