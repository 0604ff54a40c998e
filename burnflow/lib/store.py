"""
File-backed task history for the CLI.

Reads every project snapshot under <data_dir>/projects/ (JSON or YAML),
validates it against the snapshot schema and keeps the resulting entities in
memory. SnapshotStore is the task lookup; SnapshotChangelog and
SnapshotWorklog are views over it for the other two collaborators in
sources.py, so the engine runs against files unchanged.
"""

import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from pathlib import Path

from burnflow.lib.durations import parse_duration
from burnflow.lib.sources import TaskPredicate
from burnflow.lib.types import (
    ESTIMATE_FIELD,
    STAGE_FIELD,
    ChangelogEntry,
    Project,
    Sprint,
    Task,
    User,
    WorklogEntry,
    parse_stage,
)
from burnflow.lib.validate import YAML_SUFFIXES, load_document

logger = logging.getLogger(__name__)

PROJECTS_DIR = "projects"
SNAPSHOT_SCHEMA = "snapshot"
SNAPSHOT_SUFFIXES = (".json",) + YAML_SUFFIXES


class StoreError(Exception):
    """Snapshot data is unreadable or inconsistent."""
    pass


def _timestamp(value: str, where: str) -> datetime:
    """Parse an ISO timestamp. Offsets are converted to naive UTC."""
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        raise StoreError(f"{where}: invalid timestamp '{value}'") from None
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def _duration(value: str, where: str):
    try:
        return parse_duration(value)
    except ValueError as e:
        raise StoreError(f"{where}: {e}") from None


class SnapshotStore:
    """In-memory projects, sprints, users and task history.

    Entities are kept without back-references; lookups that ask for the task
    or users get a copy with those filled in.
    """

    def __init__(self):
        self.projects: dict[int, Project] = {}
        self.sprints: dict[int, Sprint] = {}
        self.users: dict[int, User] = {}
        self.tasks: dict[int, Task] = {}
        self._changelog: dict[int, ChangelogEntry] = {}
        self._worklog: dict[int, WorklogEntry] = {}

    @classmethod
    def load(cls, data_dir: Path) -> "SnapshotStore":
        """
        Load every snapshot file under data_dir/projects.

        Raises:
            StoreError: if the projects directory is missing or data is inconsistent
            ValidationError: if a file doesn't match the snapshot schema
        """
        projects_dir = Path(data_dir) / PROJECTS_DIR
        if not projects_dir.is_dir():
            raise StoreError(f"No projects directory at {projects_dir}")

        store = cls()
        for path in sorted(projects_dir.iterdir()):
            if path.suffix.lower() not in SNAPSHOT_SUFFIXES:
                continue
            data = load_document(path, SNAPSHOT_SCHEMA)
            store.add_snapshot(data, source=path.name)
            logger.debug(f"[STORE] Loaded {path.name}")

        logger.info(
            f"[STORE] {len(store.projects)} project(s), {len(store.tasks)} task(s) "
            f"from {projects_dir}"
        )
        return store

    def add_snapshot(self, data: dict, source: str = "<snapshot>") -> Project:
        """Add one validated snapshot document.

        Raises:
            StoreError: on duplicate ids, unknown references or bad values
        """
        raw_project = data["project"]
        project = Project(
            id=raw_project["id"],
            name=raw_project["name"],
            start_date=date.fromisoformat(raw_project["start_date"]),
        )
        self._claim(self.projects, project.id, project, f"{source}: project")

        for raw in data.get("sprints", []):
            time_started = raw.get("time_started")
            sprint = Sprint(
                id=raw["id"],
                name=raw["name"],
                project_id=project.id,
                time_started=_timestamp(time_started, f"{source}: sprint {raw['id']}") if time_started else None,
            )
            self._claim(self.sprints, sprint.id, sprint, f"{source}: sprint")

        for raw in data.get("users", []):
            user = User(id=raw["id"], first_name=raw["first_name"], last_name=raw["last_name"])
            self._claim(self.users, user.id, user, f"{source}: user")

        for raw in data["tasks"]:
            self._add_task(raw, project, source)

        return project

    def _add_task(self, raw: dict, project: Project, source: str) -> None:
        where = f"{source}: task {raw['id']}"
        sprint_id = raw.get("sprint_id")
        if sprint_id is not None and sprint_id not in self.sprints:
            raise StoreError(f"{where}: unknown sprint {sprint_id}")

        task = Task(
            id=raw["id"],
            name=raw["name"],
            created=_timestamp(raw["created"], where),
            original_estimate=_duration(raw["original_estimate"], where),
            estimate=_duration(raw["estimate"], where),
            stage=parse_stage(raw["stage"]),
            project_id=project.id,
            sprint_id=sprint_id,
        )
        self._claim(self.tasks, task.id, task, f"{source}: task")

        for change in raw.get("changelog", []):
            entry = self._changelog_entry(change, task.id, f"{where} change {change['id']}")
            self._claim(self._changelog, entry.id, entry, f"{source}: changelog entry")

        for log in raw.get("worklog", []):
            entry = self._worklog_entry(log, task.id, f"{where} worklog {log['id']}")
            self._claim(self._worklog, entry.id, entry, f"{source}: worklog entry")

    def _changelog_entry(self, raw: dict, task_id: int, where: str) -> ChangelogEntry:
        field = raw["field"]
        if field == ESTIMATE_FIELD:
            from_value = _duration(raw["from"], where)
            to_value = _duration(raw["to"], where)
        elif field == STAGE_FIELD:
            from_value = parse_stage(raw["from"])
            to_value = parse_stage(raw["to"])
            if from_value is None or to_value is None:
                raise StoreError(f"{where}: unknown stage '{raw['from']}' -> '{raw['to']}'")
        else:
            raise StoreError(f"{where}: unknown field '{field}'")

        return ChangelogEntry(
            id=raw["id"],
            task_id=task_id,
            field=field,
            created=_timestamp(raw["created"], where),
            from_value=from_value,
            to_value=to_value,
            creator=self._user(raw.get("creator_id"), where),
        )

    def _worklog_entry(self, raw: dict, task_id: int, where: str) -> WorklogEntry:
        user = self._user(raw["user_id"], where)
        return WorklogEntry(
            id=raw["id"],
            task_id=task_id,
            occurred=_timestamp(raw["occurred"], where),
            durations=tuple(_duration(d, where) for d in raw["durations"]),
            user=user,
            pair_user=self._user(raw.get("pair_user_id"), where),
        )

    def _user(self, user_id: int | None, where: str) -> User | None:
        if user_id is None:
            return None
        user = self.users.get(user_id)
        if user is None:
            raise StoreError(f"{where}: unknown user {user_id}")
        return user

    @staticmethod
    def _claim(table: dict, key: int, value, what: str) -> None:
        if key in table:
            raise StoreError(f"{what} id {key} is defined twice")
        table[key] = value

    # Scope lookups for the CLI

    def find_project(self, key: str) -> Project | None:
        """Project by id or by name (case-insensitive)."""
        if key.isdigit() and int(key) in self.projects:
            return self.projects[int(key)]
        for project in self.projects.values():
            if project.name.lower() == key.lower():
                return project
        return None

    def find_sprint(self, project: Project, sprint_id: int) -> Sprint | None:
        sprint = self.sprints.get(sprint_id)
        if sprint is None or sprint.project_id != project.id:
            return None
        return sprint

    # Raw history, without back-references

    def changelog_of(self, task_id: int) -> list[ChangelogEntry]:
        return [entry for entry in self._changelog.values() if entry.task_id == task_id]

    def changelog_entry(self, entry_id: int) -> ChangelogEntry | None:
        return self._changelog.get(entry_id)

    def worklog_of(self, task_id: int) -> list[WorklogEntry]:
        return [entry for entry in self._worklog.values() if entry.task_id == task_id]

    def worklog_entry(self, entry_id: int) -> WorklogEntry | None:
        return self._worklog.get(entry_id)

    # TaskRepository

    async def get_by_sprint(self, sprint: Sprint) -> list[Task]:
        return [task for task in self.tasks.values() if task.sprint_id == sprint.id]

    async def get_by_project(self, project: Project, predicate: TaskPredicate | None = None) -> list[Task]:
        tasks = [task for task in self.tasks.values() if task.project_id == project.id]
        if predicate is not None:
            tasks = [task for task in tasks if predicate(task)]
        return tasks

    async def get_by_id(self, task_id: int) -> Task | None:
        return self.tasks.get(task_id)


class SnapshotChangelog:
    """ChangelogRepository view of a SnapshotStore."""

    def __init__(self, store: SnapshotStore):
        self.store = store

    async def get_by_task_and_field(self, task: Task, field: str) -> list[ChangelogEntry]:
        entries = [entry for entry in self.store.changelog_of(task.id) if entry.field == field]
        return sorted(entries, key=lambda entry: entry.created)

    async def get_by_id(self, entry_id: int, include_task: bool = False) -> ChangelogEntry | None:
        entry = self.store.changelog_entry(entry_id)
        if entry is None or not include_task:
            return entry
        return replace(entry, task=self.store.tasks.get(entry.task_id))


class SnapshotWorklog:
    """WorklogRepository view of a SnapshotStore."""

    def __init__(self, store: SnapshotStore):
        self.store = store

    async def get_for_task(self, task_id: int) -> list[WorklogEntry]:
        return sorted(self.store.worklog_of(task_id), key=lambda entry: entry.occurred)

    async def get_by_id(self, entry_id: int, include_users: bool = False) -> WorklogEntry | None:
        entry = self.store.worklog_entry(entry_id)
        if entry is None:
            return None
        if not include_users:
            return replace(entry, user=None, pair_user=None)
        return replace(entry, task=self.store.tasks.get(entry.task_id))
