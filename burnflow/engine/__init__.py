"""Burndown engine for burnflow.

Pure functions rebuild per-task deltas and merge them into series; the async
service fetches history through the collaborators in burnflow.lib.sources.

- deltas:   per-task remaining-estimate reconstruction
- series:   burndown, burnup and cumulative flow merging
- messages: human-readable descriptions of points
- service:  BurndownService, the async entry point
"""

from burnflow.engine.deltas import (
    apply_event,
    build_events,
    compute_task_deltas,
)
from burnflow.engine.series import (
    BURNDOWN,
    BURNUP,
    burndown_series,
    burnup_series,
    compute_series,
    flow_series,
    merge_series,
)
from burnflow.engine.messages import (
    MessageToken,
    NotFoundError,
    PointMessage,
    render_message,
)
from burnflow.engine.service import (
    BurndownService,
    ScopeError,
)
