"""Tests for burnflow.engine.messages module."""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from burnflow.engine.messages import (
    MessageToken,
    NotFoundError,
    change_message,
    render_message,
)
from burnflow.lib.types import (
    ChangelogEntry,
    DeltaPoint,
    PointKind,
    Stage,
    Task,
    User,
    WorklogEntry,
)

T0 = datetime(2024, 3, 4, 9, 0)

TASK = Task(1, "Login page", T0, timedelta(hours=2), timedelta(hours=3), Stage.IN_PROGRESS, project_id=1)
TIM = User(5, "Tim", "Tam")
ADA = User(6, "Ada", "Lovelace")


def make_repos(task=None, change=None, entry=None):
    tasks = AsyncMock()
    tasks.get_by_id.return_value = task
    changelogs = AsyncMock()
    changelogs.get_by_id.return_value = change
    worklogs = AsyncMock()
    worklogs.get_by_id.return_value = entry
    return tasks, changelogs, worklogs


def render(point, repos):
    return asyncio.run(render_message(point, *repos))


class TestRenderMessage:
    """Tests for render_message."""

    def test_new_task(self):
        """NEW_TASK names the task and its original estimate."""
        repos = make_repos(task=TASK)
        message = render(DeltaPoint(T0, timedelta(hours=2), PointKind.NEW_TASK, 1), repos)
        assert message.text == "Added task Login page with estimate 2h"
        assert message.created == T0
        repos[0].get_by_id.assert_awaited_once_with(1)

    def test_estimate_change(self):
        """SCOPE_CHANGE shows old and new estimate."""
        change = ChangelogEntry(20, 1, "estimate", T0, timedelta(hours=2), timedelta(hours=3), task=TASK)
        repos = make_repos(change=change)
        message = render(DeltaPoint(T0, timedelta(hours=1), PointKind.SCOPE_CHANGE, 20), repos)
        assert message.text == "Estimate of Login page changed 2h -> 3h"
        repos[1].get_by_id.assert_awaited_once_with(20, include_task=True)

    def test_stage_change(self):
        """STAGE_CHANGE shows stage labels."""
        change = ChangelogEntry(30, 1, "stage", T0, Stage.TODO, Stage.IN_PROGRESS, task=TASK)
        repos = make_repos(change=change)
        message = render(DeltaPoint(T0, timedelta(), PointKind.STAGE_CHANGE, 30), repos)
        assert message.text == "Stage of Login page changed Todo -> In Progress"

    def test_worklog(self):
        """WORKLOG names the user, time spent and task."""
        entry = WorklogEntry(10, 1, T0, (timedelta(hours=1), timedelta(minutes=30)), user=TIM, task=TASK)
        repos = make_repos(entry=entry)
        message = render(DeltaPoint(T0, -timedelta(hours=1), PointKind.WORKLOG, 10), repos)
        assert message.text == "Tim Tam logged 1h 30m on Login page"
        repos[2].get_by_id.assert_awaited_once_with(10, include_users=True)

    def test_worklog_with_pair(self):
        """A pair user is named after the user."""
        entry = WorklogEntry(10, 1, T0, (timedelta(hours=5),), user=TIM, pair_user=ADA, task=TASK)
        message = render(DeltaPoint(T0, -timedelta(hours=2), PointKind.WORKLOG, 10), make_repos(entry=entry))
        assert message.text == "Tim Tam and Ada Lovelace logged 5h on Login page"

    def test_none_point(self):
        """Anchor points have no message and fetch nothing."""
        repos = make_repos()
        assert render(DeltaPoint(T0, 0.0), repos) is None
        for repo in repos:
            repo.get_by_id.assert_not_called()

    def test_missing_task(self):
        """A deleted task raises NotFoundError."""
        with pytest.raises(NotFoundError) as exc:
            render(DeltaPoint(T0, timedelta(hours=2), PointKind.NEW_TASK, 99), make_repos())
        assert exc.value.kind == PointKind.NEW_TASK
        assert exc.value.subject_id == 99

    def test_missing_changelog_entry(self):
        """A deleted changelog entry raises NotFoundError."""
        with pytest.raises(NotFoundError):
            render(DeltaPoint(T0, timedelta(), PointKind.STAGE_CHANGE, 30), make_repos())

    def test_changelog_entry_without_task(self):
        """A changelog entry whose task is gone raises NotFoundError."""
        change = ChangelogEntry(30, 1, "stage", T0, Stage.TODO, Stage.DONE)
        with pytest.raises(NotFoundError):
            render(DeltaPoint(T0, timedelta(), PointKind.STAGE_CHANGE, 30), make_repos(change=change))

    def test_worklog_without_user(self):
        """A worklog entry without its user raises NotFoundError."""
        entry = WorklogEntry(10, 1, T0, (timedelta(hours=1),), task=TASK)
        with pytest.raises(NotFoundError):
            render(DeltaPoint(T0, -timedelta(hours=1), PointKind.WORKLOG, 10), make_repos(entry=entry))


class TestTokens:
    """Tests for message tokens."""

    def test_arrow_renders(self):
        """The arrow token renders as ->."""
        assert str(MessageToken("arrow")) == "->"

    def test_value_tokens_keep_raw_values(self):
        """Value tokens hold the typed value for structured rendering."""
        change = ChangelogEntry(20, 1, "estimate", T0, timedelta(hours=2), timedelta(hours=3), task=TASK)
        message = change_message(T0, change)
        assert [t.type for t in message.tokens] == ["text", "value", "text", "value", "arrow", "value"]
        assert message.tokens[3].value == timedelta(hours=2)

    def test_unexpected_field(self):
        """Changes of other fields cannot be rendered."""
        change = ChangelogEntry(40, 1, "name", T0, "a", "b", task=TASK)
        with pytest.raises(ValueError, match="Unexpected changed field"):
            change_message(T0, change)
