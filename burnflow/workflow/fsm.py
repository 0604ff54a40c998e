"""Task stage state machine using transitions library.

Used to audit a task's stage changelog before it is replayed. Every stage can
move to every other stage on the board; the trigger names say what the move
means for burndown:

- advance: active -> active (no effect)
- stop:    active -> Done/Deferred (remaining drops to zero)
- resume:  Done/Deferred -> active (remaining is restored)
- shelve:  Done <-> Deferred (no effect)

Usage:
    from burnflow.workflow.fsm import audit_stage_history

    problems = audit_stage_history(history)
"""

import logging
from typing import Callable

from transitions import Machine

from burnflow.lib.types import Stage, TaskHistory, is_stopped

logger = logging.getLogger(__name__)


STATES = [stage.value for stage in Stage]


def _trigger_name(source: Stage, dest: Stage) -> str:
    if is_stopped(source):
        return "shelve" if is_stopped(dest) else "resume"
    return "stop" if is_stopped(dest) else "advance"


# One transition per ordered pair of distinct stages. Several transitions share
# a trigger and source, so the destination is passed to the trigger and checked
# by the is_destination condition.
TRANSITIONS = [
    {
        "trigger": _trigger_name(source, dest),
        "source": source.value,
        "dest": dest.value,
        "conditions": "is_destination",
    }
    for source in Stage
    for dest in Stage
    if source != dest
]


def _build_trigger_lookup() -> dict[tuple[str, str], str]:
    """Build lookup from (source, dest) -> trigger name."""
    return {(t["source"], t["dest"]): t["trigger"] for t in TRANSITIONS}


TRIGGER_FOR = _build_trigger_lookup()


class StageFSM:
    """Replays the stage of one task.

    Wraps the transitions library with task-specific logic:
    - Starts from the stage the task was created in
    - Logs every transition with the trigger that explains it
    """

    def __init__(self, task_id: int, initial: Stage, on_transition: Callable[[str, str, str], None] | None = None):
        """Initialize FSM for a task.

        Args:
            task_id: Task id, for log messages
            initial: Stage the task starts in
            on_transition: Optional callback(from_state, to_state, trigger) called after transitions
        """
        self.task_id = task_id
        self.on_transition = on_transition

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial=initial.value,
            auto_transitions=False,  # Only explicit transitions
            send_event=True,  # Pass EventData to callbacks
            after_state_change="on_state_change",
        )

    def is_destination(self, event) -> bool:
        """Condition: the transition goes where the caller asked."""
        return event.kwargs.get("dest") == event.transition.dest

    def on_state_change(self, event) -> None:
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name

        logger.debug(f"[STAGES] task {self.task_id}: {from_state} -> {to_state} ({trigger})")

        if self.on_transition:
            self.on_transition(from_state, to_state, trigger)

    @property
    def stage(self) -> Stage:
        return Stage(self.state)

    def move_to(self, stage: Stage) -> str | None:
        """Move to a stage, returning the trigger used (None if already there)."""
        if stage.value == self.state:
            return None
        trigger = TRIGGER_FOR[(self.state, stage.value)]
        getattr(self, trigger)(dest=stage.value)
        return trigger

    def force(self, stage: Stage) -> None:
        """Jump to a stage without a transition."""
        self.machine.set_state(stage.value)


def audit_stage_history(history: TaskHistory) -> list[str]:
    """
    Check a task's stage changelog for consistency.

    Each change should start from the stage the previous change ended in, and
    the last change should end in the task's current stage. Mismatches are
    logged and returned; replay continues from the changelog's own values.

    Returns:
        List of problem descriptions (empty when the history is consistent)
    """
    task = history.task
    changes = sorted(history.stage_changes, key=lambda change: change.created)
    fsm = StageFSM(task.id, history.initial_stage)
    problems = []

    for change in changes:
        if change.from_value != fsm.stage:
            problems.append(
                f"stage change {change.id} starts from {change.from_value.value} "
                f"but task was {fsm.state}"
            )
            fsm.force(change.from_value)
        if fsm.move_to(change.to_value) is None:
            problems.append(f"stage change {change.id} does not change stage ({fsm.state})")

    if fsm.stage != task.stage:
        problems.append(f"changelog ends in {fsm.state} but task is {task.stage.value}")

    for problem in problems:
        logger.warning(f"[STAGES] task {task.id}: {problem}")
    return problems
