# taskmarket/fsm/task_fsm.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from taskmarket.core.errors import ErrorKind, LifecycleError
from taskmarket.models.task import TERMINAL_STATUSES, TaskPhase, TaskStatus

"""Task FSM: coarse status + delivery phase.

  open --accept (one winner)--> accepted[phase=accepted]
  accepted[phase=accepted] --picked_up--> in_progress[picked_up]
      --on_the_way--> in_progress[on_the_way]
      --delivered--> in_progress[delivered]
      --completed--> completed[completed]
  open | accepted --cancel (poster)--> cancelled

Phases move forward one step at a time. completed and cancelled are absorbing.
Cancellation is refused once the task is in_progress (picked up or later).
Pure functions only: the service layer does I/O and locking.
"""


class TransitionNotAllowed(LifecycleError):
    def __init__(self, detail: str, kind: ErrorKind = ErrorKind.INVALID_TRANSITION):
        super().__init__(kind, detail)


@dataclass(frozen=True)
class SideEffect:
    """Declarative side effects for the service layer to execute."""

    kind: str
    payload: dict[str, Any]


EFFECT_OPEN_CHAT = "open_chat_room"
EFFECT_NOTIFY = "notify"
EFFECT_AWARD_COMPLETION = "award_completion_xp"

PHASE_SEQUENCE: tuple[TaskPhase, ...] = (
    TaskPhase.accepted,
    TaskPhase.picked_up,
    TaskPhase.on_the_way,
    TaskPhase.delivered,
    TaskPhase.completed,
)

# phase -> the only phase that may follow it
NEXT_PHASE: dict[TaskPhase, TaskPhase] = {
    a: b for a, b in zip(PHASE_SEQUENCE, PHASE_SEQUENCE[1:])
}

# phase -> coarse status it implies
STATUS_FOR_PHASE: dict[TaskPhase, TaskStatus] = {
    TaskPhase.accepted: TaskStatus.accepted,
    TaskPhase.picked_up: TaskStatus.in_progress,
    TaskPhase.on_the_way: TaskStatus.in_progress,
    TaskPhase.delivered: TaskStatus.in_progress,
    TaskPhase.completed: TaskStatus.completed,
}

# phases a caller can request through a status update (accepted only via accept)
ADVANCEABLE: frozenset[TaskPhase] = frozenset(PHASE_SEQUENCE[1:])

CANCELLABLE: frozenset[TaskStatus] = frozenset({TaskStatus.open, TaskStatus.accepted})


def ensure_not_terminal(status: TaskStatus) -> None:
    if status in TERMINAL_STATUSES:
        raise TransitionNotAllowed(f"Task is already '{status.value}'", kind=ErrorKind.TASK_CLOSED)


def parse_phase(raw: str) -> TaskPhase:
    """Parse a requested phase; only phases reachable through a status update are accepted."""
    value = (raw or "").strip().lower()
    try:
        phase = TaskPhase(value)
    except ValueError:
        allowed = ", ".join(p.value for p in PHASE_SEQUENCE[1:])
        raise TransitionNotAllowed(f"Unknown phase: '{raw}'. Allowed phases: {allowed}")
    if phase not in ADVANCEABLE:
        raise TransitionNotAllowed(f"Phase '{phase.value}' is only reachable by accepting the task")
    return phase


def accept(current: TaskStatus) -> tuple[TaskStatus, TaskPhase, list[SideEffect]]:
    """open -> accepted. The store enforces the single winner; this only validates the shape."""
    ensure_not_terminal(current)
    if current is not TaskStatus.open:
        raise TransitionNotAllowed(
            f"Task is '{current.value}', not open",
            kind=ErrorKind.TASK_ALREADY_ACCEPTED,
        )
    return (
        TaskStatus.accepted,
        TaskPhase.accepted,
        [
            SideEffect(kind=EFFECT_OPEN_CHAT, payload={}),
            SideEffect(kind=EFFECT_NOTIFY, payload={"event": "TASK_ACCEPTED"}),
        ],
    )


def advance(
    current_status: TaskStatus,
    current_phase: TaskPhase | None,
    target: TaskPhase,
) -> tuple[TaskStatus, TaskPhase, list[SideEffect]]:
    """Returns (new_status, new_phase, side_effects) for a forward phase step."""
    ensure_not_terminal(current_status)

    if current_status is TaskStatus.open or current_phase is None:
        raise TransitionNotAllowed("Task has not been accepted yet")

    expected = NEXT_PHASE.get(current_phase)
    if target is not expected:
        raise TransitionNotAllowed(
            f"Invalid transition: {current_phase.value} -> {target.value}. "
            f"Next allowed phase: {expected.value if expected else 'none'}."
        )

    new_status = STATUS_FOR_PHASE[target]
    side_effects = [SideEffect(kind=EFFECT_NOTIFY, payload={"event": "TASK_UPDATED"})]
    if new_status is TaskStatus.completed:
        side_effects.append(SideEffect(kind=EFFECT_AWARD_COMPLETION, payload={}))
    return new_status, target, side_effects


def cancel(current: TaskStatus) -> tuple[TaskStatus, list[SideEffect]]:
    ensure_not_terminal(current)
    if current not in CANCELLABLE:
        allowed = ", ".join(sorted(s.value for s in CANCELLABLE))
        raise TransitionNotAllowed(
            f"Cannot cancel a task in status '{current.value}'. Allowed from: {allowed}.",
            kind=ErrorKind.INVALID_STATE,
        )
    return TaskStatus.cancelled, [SideEffect(kind=EFFECT_NOTIFY, payload={"event": "TASK_UPDATED"})]
