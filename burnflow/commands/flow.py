"""
bf flow - Show cumulative flow of a project or sprint.

One row per flow event, one column per stage holding the estimate currently
in that stage. At project level only tasks assigned to a sprint count.
"""

import asyncio
import json

from rich.console import Console
from rich.table import Table

from burnflow.commands.common import make_service, resolve_scope, scope_header
from burnflow.engine.service import ScopeError
from burnflow.lib.config import EngineConfig
from burnflow.lib.store import SnapshotStore
from burnflow.lib.timeline import POINT_COLORS, format_amount, point_to_dict
from burnflow.lib.types import Stage


def cmd_flow(args, store: SnapshotStore, config: EngineConfig) -> int:
    """Show cumulative flow as a table."""
    scope = resolve_scope(args, store)
    if scope is None:
        return 1

    service = make_service(store, config)
    try:
        lines = asyncio.run(service.compute_flow(scope))
    except ScopeError as e:
        print(f"ERROR: {e}")
        return 2

    if args.json:
        print(json.dumps({
            "scope": scope_header(scope),
            "unit": config.value_unit,
            "stages": {
                stage.value: [point_to_dict(point) for point in points]
                for stage, points in lines.items()
            },
        }, indent=2))
        return 0

    table = Table(title=f"Cumulative flow ({scope_header(scope)})")
    table.add_column("Moment", style="cyan")
    table.add_column("Event")
    for stage in Stage:
        table.add_column(stage.label, justify="right")
    table.add_column("Total", justify="right", style="bold")

    # Lines are co-indexed: row i is the same event in every stage
    for row in zip(*(lines[stage] for stage in Stage)):
        event = row[0]
        label = "start" if event.subject_id is None else f"{event.kind.value} {event.subject_id}"
        values = [format_amount(point.value, config.value_unit) for point in row]
        total = format_amount(sum(point.value for point in row), config.value_unit)
        table.add_row(
            event.moment.strftime("%Y-%m-%d %H:%M"),
            f"[{POINT_COLORS[event.kind]}]{label}[/]",
            *values,
            total,
        )

    Console(no_color=not config.color).print(table)
    return 0
