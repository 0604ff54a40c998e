"""
bf explain - Describe the event behind a point.

Looks up the entity a point was produced from and renders the same message
`bf series --explain` shows, e.g. "Estimate of Login page changed 2h -> 3h".
"""

import asyncio

from burnflow.commands.common import make_service
from burnflow.engine.messages import NotFoundError
from burnflow.lib.config import EngineConfig
from burnflow.lib.store import SnapshotChangelog, SnapshotStore, SnapshotWorklog
from burnflow.lib.timeline import COLORS
from burnflow.lib.types import ESTIMATE_FIELD, STAGE_FIELD, DeltaPoint, PointKind

EXPLAINABLE_KINDS = [
    PointKind.NEW_TASK.value,
    PointKind.SCOPE_CHANGE.value,
    PointKind.STAGE_CHANGE.value,
    PointKind.WORKLOG.value,
]


async def _find_point(kind: PointKind, subject_id: int, store: SnapshotStore) -> DeltaPoint | None:
    """Point for the entity, timed at the moment it happened."""
    if kind == PointKind.NEW_TASK:
        entity = await store.get_by_id(subject_id)
        moment = entity.created if entity else None
    elif kind == PointKind.WORKLOG:
        entity = await SnapshotWorklog(store).get_by_id(subject_id)
        moment = entity.occurred if entity else None
    else:
        field = ESTIMATE_FIELD if kind == PointKind.SCOPE_CHANGE else STAGE_FIELD
        entity = await SnapshotChangelog(store).get_by_id(subject_id)
        moment = entity.created if entity and entity.field == field else None

    if moment is None:
        return None
    return DeltaPoint(moment=moment, value=None, kind=kind, subject_id=subject_id)


def cmd_explain(args, store: SnapshotStore, config: EngineConfig) -> int:
    """Print the message for one point."""
    kind = PointKind(args.kind)
    point = asyncio.run(_find_point(kind, args.subject_id, store))
    if point is None:
        print(f"ERROR: No {kind.value} with id {args.subject_id}")
        return 1

    service = make_service(store, config)
    try:
        message = asyncio.run(service.render_message(point))
    except NotFoundError as e:
        print(f"ERROR: {e}")
        return 1

    dim = COLORS["dim"] if config.color else ""
    reset = COLORS["reset"] if config.color else ""
    print(f"{dim}{message.created.strftime('%Y-%m-%d %H:%M')}{reset} {message.text}")
    return 0
