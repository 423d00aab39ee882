# tests/test_task_fsm.py
"""Pure state machine: no DB."""

import pytest

from taskmarket.core.errors import ErrorKind
from taskmarket.fsm import task_fsm
from taskmarket.fsm.task_fsm import TransitionNotAllowed
from taskmarket.models.task import TaskPhase, TaskStatus


def test_accept_from_open_opens_chat_and_notifies():
    status, phase, effects = task_fsm.accept(TaskStatus.open)
    assert status is TaskStatus.accepted
    assert phase is TaskPhase.accepted
    kinds = [e.kind for e in effects]
    assert kinds == [task_fsm.EFFECT_OPEN_CHAT, task_fsm.EFFECT_NOTIFY]
    assert effects[1].payload == {"event": "TASK_ACCEPTED"}


@pytest.mark.parametrize("status", [TaskStatus.accepted, TaskStatus.in_progress])
def test_accept_from_taken_is_concurrency_loss(status):
    with pytest.raises(TransitionNotAllowed) as ei:
        task_fsm.accept(status)
    assert ei.value.kind is ErrorKind.TASK_ALREADY_ACCEPTED


@pytest.mark.parametrize("status", [TaskStatus.completed, TaskStatus.cancelled])
def test_accept_from_terminal_is_closed(status):
    with pytest.raises(TransitionNotAllowed) as ei:
        task_fsm.accept(status)
    assert ei.value.kind is ErrorKind.TASK_CLOSED


@pytest.mark.parametrize(
    "current_status, current_phase, target, new_status",
    [
        (TaskStatus.accepted, TaskPhase.accepted, TaskPhase.picked_up, TaskStatus.in_progress),
        (TaskStatus.in_progress, TaskPhase.picked_up, TaskPhase.on_the_way, TaskStatus.in_progress),
        (TaskStatus.in_progress, TaskPhase.on_the_way, TaskPhase.delivered, TaskStatus.in_progress),
        (TaskStatus.in_progress, TaskPhase.delivered, TaskPhase.completed, TaskStatus.completed),
    ],
)
def test_advance_forward_one_step(current_status, current_phase, target, new_status):
    status, phase, effects = task_fsm.advance(current_status, current_phase, target)
    assert status is new_status
    assert phase is target
    assert effects[0].kind == task_fsm.EFFECT_NOTIFY


def test_only_completion_awards_xp():
    _, _, effects = task_fsm.advance(TaskStatus.in_progress, TaskPhase.delivered, TaskPhase.completed)
    assert task_fsm.EFFECT_AWARD_COMPLETION in [e.kind for e in effects]

    _, _, effects = task_fsm.advance(TaskStatus.accepted, TaskPhase.accepted, TaskPhase.picked_up)
    assert task_fsm.EFFECT_AWARD_COMPLETION not in [e.kind for e in effects]


@pytest.mark.parametrize(
    "current_phase, target",
    [
        (TaskPhase.accepted, TaskPhase.completed),  # skip
        (TaskPhase.accepted, TaskPhase.delivered),  # skip
        (TaskPhase.on_the_way, TaskPhase.picked_up),  # backwards
        (TaskPhase.delivered, TaskPhase.delivered),  # repeat
    ],
)
def test_advance_rejects_skips_and_backwards(current_phase, target):
    status = TaskStatus.accepted if current_phase is TaskPhase.accepted else TaskStatus.in_progress
    with pytest.raises(TransitionNotAllowed) as ei:
        task_fsm.advance(status, current_phase, target)
    assert ei.value.kind is ErrorKind.INVALID_TRANSITION


def test_advance_open_task_is_invalid_transition():
    with pytest.raises(TransitionNotAllowed) as ei:
        task_fsm.advance(TaskStatus.open, None, TaskPhase.picked_up)
    assert ei.value.kind is ErrorKind.INVALID_TRANSITION


@pytest.mark.parametrize("status", [TaskStatus.completed, TaskStatus.cancelled])
def test_terminal_states_are_absorbing(status):
    with pytest.raises(TransitionNotAllowed) as ei:
        task_fsm.advance(status, TaskPhase.completed, TaskPhase.completed)
    assert ei.value.kind is ErrorKind.TASK_CLOSED

    with pytest.raises(TransitionNotAllowed) as ei:
        task_fsm.cancel(status)
    assert ei.value.kind is ErrorKind.TASK_CLOSED


@pytest.mark.parametrize("status", [TaskStatus.open, TaskStatus.accepted])
def test_cancel_allowed_before_pickup(status):
    new_status, effects = task_fsm.cancel(status)
    assert new_status is TaskStatus.cancelled
    assert effects[0].payload == {"event": "TASK_UPDATED"}


def test_cancel_refused_once_in_progress():
    with pytest.raises(TransitionNotAllowed) as ei:
        task_fsm.cancel(TaskStatus.in_progress)
    assert ei.value.kind is ErrorKind.INVALID_STATE


@pytest.mark.parametrize("raw, expected", [("picked_up", TaskPhase.picked_up), (" ON_THE_WAY ", TaskPhase.on_the_way)])
def test_parse_phase_normalizes(raw, expected):
    assert task_fsm.parse_phase(raw) is expected


@pytest.mark.parametrize("raw", ["accepted", "teleported", ""])
def test_parse_phase_rejects_unknown_and_accepted(raw):
    with pytest.raises(TransitionNotAllowed) as ei:
        task_fsm.parse_phase(raw)
    assert ei.value.kind is ErrorKind.INVALID_TRANSITION
