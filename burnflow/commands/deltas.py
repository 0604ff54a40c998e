"""
bf deltas - Show how one task's remaining estimate changed.

Lists every delta in time order with the remaining estimate the burndown
counts after it. A task created in Done or Deferred counts as zero until it
is moved to an active stage, even though its creation delta carries the
original estimate.
"""

import asyncio
import json

from burnflow.commands.common import make_service
from burnflow.engine.deltas import compute_task_deltas
from burnflow.engine.series import burndown_points
from burnflow.lib.config import EngineConfig
from burnflow.lib.durations import format_duration
from burnflow.lib.store import SnapshotStore
from burnflow.lib.timeline import COLORS, format_point_oneline, point_to_dict
from burnflow.lib.types import is_stopped


def cmd_deltas(args, store: SnapshotStore, config: EngineConfig) -> int:
    """Show per-task deltas."""
    task = asyncio.run(store.get_by_id(args.task_id))
    if task is None:
        print(f"ERROR: Task {args.task_id} not found")
        return 1

    service = make_service(store, config)
    history = asyncio.run(service.fetch_history(task))
    points = compute_task_deltas(history)

    remaining = []
    total = None
    for credited in burndown_points(history):
        total = credited.value if total is None else total + credited.value
        remaining.append(total)

    if args.json:
        rows = [point_to_dict(point) for point in points]
        for row, value in zip(rows, remaining):
            row["remaining"] = format_duration(value)
        print(json.dumps({
            "task_id": task.id,
            "name": task.name,
            "deltas": rows,
        }, indent=2))
        return 0

    colorize = config.color
    dim = COLORS["dim"] if colorize else ""
    reset = COLORS["reset"] if colorize else ""

    print(f"{dim}Task:{reset}     {task.id} {task.name}")
    print(f"{dim}Stage:{reset}    {task.stage.label}")
    print(f"{dim}Estimate:{reset} {format_duration(task.estimate)}")
    if is_stopped(history.initial_stage):
        print(f"{dim}Note:{reset}     Created in {history.initial_stage.label}; counts as 0s until resumed")
    print()

    for point, value in zip(points, remaining):
        summary = f"{point.kind.value} {point.subject_id} {dim}(remaining {format_duration(value)}){reset}"
        print(format_point_oneline(point, format_duration(point.value), summary, colorize=colorize))

    return 0
