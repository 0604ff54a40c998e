"""
Collaborator interfaces for fetching task history.

The engine never owns the event store. Whatever backs these lookups (the
snapshot store in store.py, a database layer, a test double) only needs to
provide the coroutines below. Lookups by id return None for missing entities;
raising is left to the caller.
"""

from typing import Callable, Protocol

from burnflow.lib.types import (
    ChangelogEntry,
    Project,
    Sprint,
    Task,
    WorklogEntry,
)

TaskPredicate = Callable[[Task], bool]


class TaskRepository(Protocol):
    async def get_by_sprint(self, sprint: Sprint) -> list[Task]:
        """Tasks that belong directly to the sprint."""
        ...

    async def get_by_project(self, project: Project, predicate: TaskPredicate | None = None) -> list[Task]:
        """Tasks across all sprints and the backlog of a project, optionally filtered."""
        ...

    async def get_by_id(self, task_id: int) -> Task | None:
        ...


class ChangelogRepository(Protocol):
    async def get_by_task_and_field(self, task: Task, field: str) -> list[ChangelogEntry]:
        """Changes of one field ("estimate" or "stage") of a task, oldest first."""
        ...

    async def get_by_id(self, entry_id: int, include_task: bool = False) -> ChangelogEntry | None:
        ...


class WorklogRepository(Protocol):
    async def get_for_task(self, task_id: int) -> list[WorklogEntry]:
        """Worklog entries of a task, oldest first."""
        ...

    async def get_by_id(self, entry_id: int, include_users: bool = False) -> WorklogEntry | None:
        """Single worklog entry; include_users also loads the task and users."""
        ...
