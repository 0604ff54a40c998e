"""Helpers shared by the bf commands."""

from burnflow.engine.service import BurndownService
from burnflow.lib.config import EngineConfig
from burnflow.lib.store import SnapshotChangelog, SnapshotStore, SnapshotWorklog
from burnflow.lib.types import Project, Sprint


def make_service(store: SnapshotStore, config: EngineConfig) -> BurndownService:
    return BurndownService(store, SnapshotChangelog(store), SnapshotWorklog(store), config)


def resolve_scope(args, store: SnapshotStore) -> Sprint | Project | None:
    """Project from args.project, narrowed to args.sprint if given.

    Prints an error and returns None when either is not found.
    """
    project = store.find_project(args.project)
    if project is None:
        print(f"ERROR: Project '{args.project}' not found")
        return None

    if args.sprint is None:
        return project

    sprint = store.find_sprint(project, args.sprint)
    if sprint is None:
        print(f"ERROR: Sprint {args.sprint} not found in project '{project.name}'")
        return None
    return sprint


def scope_header(scope: Sprint | Project) -> str:
    if isinstance(scope, Sprint):
        return f"Sprint {scope.id}: {scope.name}"
    return f"Project {scope.id}: {scope.name}"
