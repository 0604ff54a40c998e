"""Tests for burnflow.lib.store and burnflow.lib.validate modules."""

import asyncio
import json
from datetime import date, datetime, timedelta

import pytest
import yaml

from burnflow.lib.store import (
    SnapshotChangelog,
    SnapshotStore,
    SnapshotWorklog,
    StoreError,
)
from burnflow.lib.types import Stage
from burnflow.lib.validate import ValidationError, load_document, validate


def snapshot(**overrides) -> dict:
    """Small but complete project snapshot."""
    data = {
        "project": {"id": 1, "name": "Board", "start_date": "2024-03-01"},
        "sprints": [
            {"id": 1, "name": "Sprint 1", "time_started": "2024-03-04T08:00:00"},
            {"id": 2, "name": "Sprint 2", "time_started": None},
        ],
        "users": [
            {"id": 5, "first_name": "Tim", "last_name": "Tam"},
            {"id": 6, "first_name": "Ada", "last_name": "Lovelace"},
        ],
        "tasks": [
            {
                "id": 1,
                "name": "Login page",
                "created": "2024-03-04T09:00:00",
                "original_estimate": "2h",
                "estimate": "3h",
                "stage": "done",
                "sprint_id": 1,
                "changelog": [
                    {"id": 20, "field": "estimate", "created": "2024-03-04T10:00:00", "from": "2h", "to": "3h"},
                    {"id": 30, "field": "stage", "created": "2024-03-04T11:00:00",
                     "from": "todo", "to": "done", "creator_id": 5},
                ],
                "worklog": [
                    {"id": 10, "occurred": "2024-03-04T10:30:00", "durations": ["1h", "30m"],
                     "user_id": 5, "pair_user_id": 6},
                ],
            },
            {
                "id": 2,
                "name": "Backlog item",
                "created": "2024-03-02T09:00:00",
                "original_estimate": "1h",
                "estimate": "1h",
                "stage": "todo",
            },
        ],
    }
    data.update(overrides)
    return data


def write_projects(tmp_path, name="board.json", data=None):
    projects = tmp_path / "projects"
    projects.mkdir(exist_ok=True)
    path = projects / name
    path.write_text(json.dumps(data or snapshot()))
    return path


class TestValidate:
    """Tests for snapshot schema validation."""

    def test_valid_snapshot(self):
        """A complete snapshot passes validation."""
        validate(snapshot(), "snapshot")

    def test_missing_tasks(self):
        """tasks is required."""
        data = snapshot()
        del data["tasks"]
        with pytest.raises(ValidationError, match="'tasks' is a required property"):
            validate(data, "snapshot")

    def test_bad_stage_reports_path(self):
        """Errors name the failing path."""
        data = snapshot()
        data["tasks"][0]["stage"] = "shipped"
        with pytest.raises(ValidationError) as exc:
            validate(data, "snapshot")
        assert exc.value.path == "tasks.0.stage"

    def test_bad_duration(self):
        """Durations must look like "1h 30m"."""
        data = snapshot()
        data["tasks"][1]["estimate"] = "one hour"
        with pytest.raises(ValidationError):
            validate(data, "snapshot")

    def test_unknown_schema(self):
        """Unknown schema names fail clearly."""
        with pytest.raises(ValidationError, match="Schema file not found"):
            validate({}, "nope")

    def test_load_yaml_with_timestamps(self, tmp_path):
        """Unquoted YAML timestamps validate like JSON strings."""
        path = tmp_path / "board.yaml"
        path.write_text(
            "project: {id: 1, name: Board, start_date: 2024-03-01}\n"
            "tasks:\n"
            "  - id: 1\n"
            "    name: Login page\n"
            "    created: 2024-03-04 09:00:00\n"
            "    original_estimate: 2h\n"
            "    estimate: 2h\n"
            "    stage: todo\n"
        )
        data = load_document(path, "snapshot")
        assert data["project"]["start_date"] == "2024-03-01"
        assert data["tasks"][0]["created"].startswith("2024-03-04")

    def test_load_unparsable(self, tmp_path):
        """Broken JSON is a ValidationError."""
        path = tmp_path / "board.json"
        path.write_text("{not json")
        with pytest.raises(ValidationError, match="Cannot parse"):
            load_document(path, "snapshot")


class TestSnapshotStore:
    """Tests for loading snapshots."""

    def test_load_json(self, tmp_path):
        """Entities are built from a JSON snapshot."""
        write_projects(tmp_path)
        store = SnapshotStore.load(tmp_path)

        project = store.projects[1]
        assert project.start_date == date(2024, 3, 1)
        task = store.tasks[1]
        assert task.estimate == timedelta(hours=3)
        assert task.original_estimate == timedelta(hours=2)
        assert task.stage == Stage.DONE
        assert task.project_id == 1
        assert store.sprints[1].time_started == datetime(2024, 3, 4, 8, 0)
        assert store.sprints[2].time_started is None

    def test_load_yaml(self, tmp_path):
        """YAML snapshots load like JSON ones."""
        projects = tmp_path / "projects"
        projects.mkdir()
        (projects / "board.yaml").write_text(yaml.safe_dump(snapshot()))
        store = SnapshotStore.load(tmp_path)
        assert store.tasks[1].name == "Login page"

    def test_ignores_other_files(self, tmp_path):
        """Only .json/.yaml/.yml files are read."""
        write_projects(tmp_path)
        (tmp_path / "projects" / "README.md").write_text("notes")
        store = SnapshotStore.load(tmp_path)
        assert len(store.projects) == 1

    def test_missing_projects_dir(self, tmp_path):
        """A data directory without projects/ is a StoreError."""
        with pytest.raises(StoreError, match="No projects directory"):
            SnapshotStore.load(tmp_path)

    def test_duplicate_task_ids(self, tmp_path):
        """Task ids must be unique across snapshots."""
        write_projects(tmp_path)
        other = snapshot(project={"id": 2, "name": "Other", "start_date": "2024-03-01"}, sprints=[], users=[])
        other["tasks"] = [other["tasks"][1]]
        write_projects(tmp_path, "other.json", other)
        with pytest.raises(StoreError, match="task id 2 is defined twice"):
            SnapshotStore.load(tmp_path)

    def test_unknown_user(self):
        """Worklog users must exist."""
        data = snapshot(users=[])
        with pytest.raises(StoreError, match="unknown user 5"):
            SnapshotStore().add_snapshot(data)

    def test_unknown_sprint(self):
        """Tasks may only reference sprints that exist."""
        data = snapshot()
        data["tasks"][1]["sprint_id"] = 9
        with pytest.raises(StoreError, match="unknown sprint 9"):
            SnapshotStore().add_snapshot(data)

    def test_unknown_stage_in_changelog(self):
        """Stage changes must name real stages."""
        data = snapshot()
        data["tasks"][0]["changelog"][1]["to"] = "shipped"
        with pytest.raises(StoreError, match="unknown stage"):
            SnapshotStore().add_snapshot(data)

    def test_find_project(self):
        """Projects are found by id or case-insensitive name."""
        store = SnapshotStore()
        store.add_snapshot(snapshot())
        assert store.find_project("1").name == "Board"
        assert store.find_project("board").id == 1
        assert store.find_project("missing") is None

    def test_find_sprint(self):
        """Sprints are only found within their project."""
        store = SnapshotStore()
        project = store.add_snapshot(snapshot())
        assert store.find_sprint(project, 1).name == "Sprint 1"
        assert store.find_sprint(project, 7) is None


class TestRepositories:
    """Tests for the collaborator lookups backed by the store."""

    @pytest.fixture
    def store(self):
        store = SnapshotStore()
        store.add_snapshot(snapshot())
        return store

    def test_tasks_by_sprint_and_project(self, store):
        """Sprint lookup excludes backlog tasks; project lookup filters by predicate."""
        sprint = store.sprints[1]
        project = store.projects[1]
        assert [t.id for t in asyncio.run(store.get_by_sprint(sprint))] == [1]
        assert sorted(t.id for t in asyncio.run(store.get_by_project(project))) == [1, 2]
        in_sprint = asyncio.run(store.get_by_project(project, lambda t: t.sprint_id is not None))
        assert [t.id for t in in_sprint] == [1]

    def test_changelog_by_field(self, store):
        """Changes are returned per field, oldest first."""
        changelogs = SnapshotChangelog(store)
        task = store.tasks[1]
        estimates = asyncio.run(changelogs.get_by_task_and_field(task, "estimate"))
        stages = asyncio.run(changelogs.get_by_task_and_field(task, "stage"))
        assert [(c.from_value, c.to_value) for c in estimates] == [(timedelta(hours=2), timedelta(hours=3))]
        assert [(c.from_value, c.to_value) for c in stages] == [(Stage.TODO, Stage.DONE)]
        assert stages[0].creator.full_name == "Tim Tam"

    def test_changelog_include_task(self, store):
        """include_task fills in the task."""
        changelogs = SnapshotChangelog(store)
        assert asyncio.run(changelogs.get_by_id(20)).task is None
        assert asyncio.run(changelogs.get_by_id(20, include_task=True)).task.name == "Login page"
        assert asyncio.run(changelogs.get_by_id(99)) is None

    def test_worklog(self, store):
        """Worklog entries carry durations and, on request, users and task."""
        worklogs = SnapshotWorklog(store)
        [entry] = asyncio.run(worklogs.get_for_task(1))
        assert entry.total_time_spent == timedelta(hours=1, minutes=30)

        bare = asyncio.run(worklogs.get_by_id(10))
        assert bare.user is None and bare.task is None
        full = asyncio.run(worklogs.get_by_id(10, include_users=True))
        assert full.user.full_name == "Tim Tam"
        assert full.pair_user.full_name == "Ada Lovelace"
        assert full.task.id == 1
        assert asyncio.run(worklogs.get_for_task(2)) == []

    def test_history_accessors(self, store):
        """Raw changelog and worklog are reachable per task and by id."""
        assert sorted(entry.id for entry in store.changelog_of(1)) == [20, 30]
        assert store.changelog_of(2) == []
        assert store.changelog_entry(30).to_value == Stage.DONE
        assert store.changelog_entry(99) is None
        assert [entry.id for entry in store.worklog_of(1)] == [10]
        assert store.worklog_entry(10).user.full_name == "Tim Tam"
        assert store.worklog_entry(99) is None


class TestTimestamps:
    """Tests for timestamp normalization."""

    def test_offsets_become_naive_utc(self):
        """Offset timestamps are converted to naive UTC."""
        data = snapshot()
        data["tasks"][0]["created"] = "2024-03-04T10:00:00+01:00"
        data["sprints"][0]["time_started"] = "2024-03-04T08:00:00Z"
        data["tasks"][0]["worklog"][0]["occurred"] = "2024-03-04T05:30:00-05:00"
        store = SnapshotStore()
        store.add_snapshot(data)

        assert store.tasks[1].created == datetime(2024, 3, 4, 9, 0)
        assert store.tasks[1].created.tzinfo is None
        assert store.sprints[1].time_started == datetime(2024, 3, 4, 8, 0)
        assert store.worklog_entry(10).occurred == datetime(2024, 3, 4, 10, 30)

    def test_mixed_forms_compare(self):
        """Naive and offset timestamps in one file can be ordered together."""
        data = snapshot()
        data["tasks"][1]["created"] = "2024-03-02T09:00:00Z"
        store = SnapshotStore()
        store.add_snapshot(data)
        moments = sorted(task.created for task in store.tasks.values())
        assert moments == [datetime(2024, 3, 2, 9, 0), datetime(2024, 3, 4, 9, 0)]

    def test_yaml_offset_timestamp(self, tmp_path):
        """YAML timestamps with a zone load as naive UTC."""
        data = snapshot()
        data["tasks"][1]["created"] = "2024-03-02T09:00:00Z"
        projects = tmp_path / "projects"
        projects.mkdir()
        text = yaml.safe_dump(data).replace("'2024-03-02T09:00:00Z'", "2024-03-02T09:00:00Z")
        (projects / "board.yaml").write_text(text)
        store = SnapshotStore.load(tmp_path)
        assert store.tasks[2].created == datetime(2024, 3, 2, 9, 0)

    def test_invalid_timestamp(self):
        """Unparsable timestamps are a StoreError."""
        data = snapshot()
        data["tasks"][0]["created"] = "2024-03-04T99:00:00"
        with pytest.raises(StoreError, match="invalid timestamp"):
            SnapshotStore().add_snapshot(data)
