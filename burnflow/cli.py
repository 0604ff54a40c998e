#!/usr/bin/env python3
"""burnflow CLI entrypoint."""

import sys
import logging
import argparse

from burnflow.lib.config import EngineConfig, load_engine_config, resolve_data_dir
from burnflow.lib.store import SnapshotStore, StoreError
from burnflow.lib.validate import ValidationError
from burnflow.commands import deltas as cmd_deltas_module
from burnflow.commands import series as cmd_series_module
from burnflow.commands import flow as cmd_flow_module
from burnflow.commands import explain as cmd_explain_module

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def cmd_deltas(args, store: SnapshotStore, config: EngineConfig) -> int:
    return cmd_deltas_module.cmd_deltas(args, store, config)


def cmd_series(args, store: SnapshotStore, config: EngineConfig) -> int:
    return cmd_series_module.cmd_series(args, store, config)


def cmd_flow(args, store: SnapshotStore, config: EngineConfig) -> int:
    return cmd_flow_module.cmd_flow(args, store, config)


def cmd_explain(args, store: SnapshotStore, config: EngineConfig) -> int:
    return cmd_explain_module.cmd_explain(args, store, config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='bf', description='Burndown, burnup and cumulative flow from task history')
    parser.add_argument('--data-dir', '-d', help='Directory holding burnflow.env and projects/ (default: $BURNFLOW_DATA_DIR or cwd)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    parser.add_argument('--no-color', action='store_true', help='Disable colored output')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # bf deltas
    p_deltas = subparsers.add_parser('deltas', help='Show remaining-estimate deltas of one task')
    p_deltas.add_argument('task_id', type=int, help='Task ID')
    p_deltas.add_argument('--json', action='store_true', help='Output JSON')
    p_deltas.set_defaults(func=cmd_deltas)

    # bf series
    p_series = subparsers.add_parser('series', help='Show burndown (or burnup) of a project or sprint')
    p_series.add_argument('project', help='Project ID or name')
    p_series.add_argument('--sprint', '-s', type=int, help='Sprint ID (default: whole project)')
    p_series.add_argument('--burnup', action='store_true', help='Work logged instead of remaining estimate')
    p_series.add_argument('--explain', '-e', action='store_true', help='Describe the event behind each point')
    p_series.add_argument('--json', action='store_true', help='Output JSON')
    p_series.set_defaults(func=cmd_series)

    # bf flow
    p_flow = subparsers.add_parser('flow', help='Show cumulative flow per stage')
    p_flow.add_argument('project', help='Project ID or name')
    p_flow.add_argument('--sprint', '-s', type=int, help='Sprint ID (default: whole project)')
    p_flow.add_argument('--json', action='store_true', help='Output JSON')
    p_flow.set_defaults(func=cmd_flow)

    # bf explain
    p_explain = subparsers.add_parser('explain', help='Describe the event behind a point')
    p_explain.add_argument('kind', choices=cmd_explain_module.EXPLAINABLE_KINDS, help='Point kind')
    p_explain.add_argument('subject_id', type=int, help='Task, changelog or worklog ID')
    p_explain.set_defaults(func=cmd_explain)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    data_dir = resolve_data_dir(args.data_dir)
    try:
        config = load_engine_config(data_dir)
    except ValueError as e:
        print(f"ERROR: {e}")
        return 2

    level = logging.DEBUG if args.verbose else getattr(logging, config.log_level)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    if args.no_color:
        config.color = False

    try:
        store = SnapshotStore.load(data_dir)
    except (StoreError, ValidationError) as e:
        print(f"ERROR: {e}")
        return 2

    return args.func(args, store, config)


if __name__ == '__main__':
    sys.exit(main())
