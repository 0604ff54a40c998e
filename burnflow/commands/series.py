"""
bf series - Show the burndown or burnup of a project or sprint.

With --explain every point is followed by the event that produced it, e.g.:

    2024-03-04 09:00 [*]      3.00h  Tim Tam logged 1h on Login page
"""

import asyncio
import json

from burnflow.commands.common import make_service, resolve_scope, scope_header
from burnflow.engine.messages import NotFoundError
from burnflow.engine.series import BURNDOWN, BURNUP
from burnflow.engine.service import BurndownService, ScopeError
from burnflow.lib.config import EngineConfig
from burnflow.lib.store import SnapshotStore
from burnflow.lib.timeline import COLORS, format_amount, format_point_oneline, point_to_dict
from burnflow.lib.types import DeltaPoint


def cmd_series(args, store: SnapshotStore, config: EngineConfig) -> int:
    """Show a burndown or burnup series."""
    scope = resolve_scope(args, store)
    if scope is None:
        return 1

    mode = BURNUP if args.burnup else BURNDOWN
    service = make_service(store, config)

    try:
        points, summaries = asyncio.run(_compute(service, scope, mode, args.explain))
    except ScopeError as e:
        print(f"ERROR: {e}")
        return 2
    except NotFoundError as e:
        print(f"ERROR: {e}")
        return 1

    if args.json:
        rows = [point_to_dict(point) for point in points]
        if args.explain:
            for row, summary in zip(rows, summaries):
                row["message"] = summary
        print(json.dumps({
            "scope": scope_header(scope),
            "mode": mode,
            "unit": config.value_unit,
            "points": rows,
        }, indent=2))
        return 0

    colorize = config.color
    dim = COLORS["dim"] if colorize else ""
    reset = COLORS["reset"] if colorize else ""

    print(f"{dim}{mode.capitalize()}:{reset} {scope_header(scope)}")
    print()

    for point, summary in zip(points, summaries):
        amount = format_amount(point.value, config.value_unit)
        print(format_point_oneline(point, amount, summary, colorize=colorize))

    return 0


async def _compute(
    service: BurndownService,
    scope,
    mode: str,
    explain: bool,
) -> tuple[list[DeltaPoint], list[str | None]]:
    points = await service.compute_series(scope, mode)
    if not explain:
        return points, [None] * len(points)

    summaries = []
    for point in points:
        message = await service.render_message(point)
        summaries.append(message.text if message else None)
    return points, summaries
