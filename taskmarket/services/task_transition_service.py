# taskmarket/services/task_transition_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from taskmarket.core import rbac
from taskmarket.core.errors import ErrorKind, LifecycleError
from taskmarket.core.logging import span
from taskmarket.fsm import task_fsm
from taskmarket.fsm.task_fsm import SideEffect, TransitionNotAllowed
from taskmarket.models.notification import NotificationType
from taskmarket.models.task import ModerationStatus, Task, TaskStatus
from taskmarket.models.task_status_history import TaskStatusHistory
from taskmarket.services import gamification_service
from taskmarket.services.notification_fanout import FanoutResult, NotificationFanout, TaskSnapshot

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    task: Task
    fanout: FanoutResult = field(default_factory=FanoutResult)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _lock_task(db: Session, task_id: UUID) -> Task:
    # FOR UPDATE is a no-op on SQLite; the conditional UPDATE below still guards it
    task = db.execute(
        select(Task)
        .where(Task.id == task_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if task is None or task.moderation_status == ModerationStatus.blocked.value:
        raise LifecycleError(ErrorKind.TASK_NOT_FOUND, f"Task {task_id} not found")
    return task


def _reload(db: Session, task_id: UUID) -> Task:
    return db.execute(
        select(Task).where(Task.id == task_id).execution_options(populate_existing=True)
    ).scalar_one()


def _run_side_effects(
    db: Session,
    task: Task,
    side_effects: list[SideEffect],
    *,
    fanout: NotificationFanout | None,
    snapshot: TaskSnapshot,
) -> FanoutResult:
    result = FanoutResult()
    for eff in side_effects:
        if eff.kind == task_fsm.EFFECT_AWARD_COMPLETION:
            gamification_service.award_completion_xp(db, task)
        elif eff.kind == task_fsm.EFFECT_NOTIFY:
            db.flush()
            result.extend(
                (fanout or NotificationFanout()).fan_out(db, NotificationType(eff.payload["event"]), snapshot)
            )
    return result


def advance_phase(
    db: Session,
    *,
    task_id: UUID,
    caller_id: UUID | None,
    new_phase: str,
    note: str | None = None,
    photo_url: str | None = None,
    fanout: NotificationFanout | None = None,
    now: datetime | None = None,
) -> TransitionResult:
    """Move an accepted task one phase forward.

    Check order: identity, existence, terminal state, phase name, authorization,
    then the forward-sequence rule. The caller commits.
    """
    if caller_id is None:
        raise LifecycleError(ErrorKind.USER_NOT_AUTHENTICATED)

    now = now or _now()

    with span("task.advance_phase", task_id=str(task_id), phase=new_phase):
        task = _lock_task(db, task_id)
        current_status = task.status_enum
        current_phase = task.phase_enum

        task_fsm.ensure_not_terminal(current_status)
        target = task_fsm.parse_phase(new_phase)
        if current_status is TaskStatus.open:
            raise TransitionNotAllowed("Task has not been accepted yet")

        role = rbac.relationship(caller_id=caller_id, created_by=task.created_by, accepted_by=task.accepted_by)
        rbac.ensure_allowed(f"phase.{target.value}", role)

        new_status, target, side_effects = task_fsm.advance(current_status, current_phase, target)

        res = db.execute(
            update(Task)
            .where(
                Task.id == task.id,
                Task.status == current_status.value,
                Task.task_current_status == current_phase.value,
            )
            .values(
                status=new_status.value,
                task_current_status=target.value,
                last_status_update=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            # lost to a concurrent update of the same task (double tap)
            raise TransitionNotAllowed(
                f"Task {task.id} moved from '{current_phase.value}' while updating"
            )

        task = _reload(db, task.id)
        db.add(
            TaskStatusHistory(
                task_id=task.id,
                from_status=current_phase.value,
                status=target.value,
                changed_by=caller_id,
                note=note,
                photo_url=photo_url,
                created_at=now,
            )
        )

        result = _run_side_effects(
            db, task, side_effects, fanout=fanout, snapshot=TaskSnapshot.from_task(task)
        )
        db.flush()

    logger.info("Task %s: %s -> %s by %s", task.id, current_phase.value, target.value, caller_id)
    return TransitionResult(task=task, fanout=result)


def cancel_task(
    db: Session,
    *,
    task_id: UUID,
    caller_id: UUID | None,
    note: str | None = None,
    fanout: NotificationFanout | None = None,
    now: datetime | None = None,
) -> TransitionResult:
    """Poster-only cancellation while open or accepted (not once picked up)."""
    if caller_id is None:
        raise LifecycleError(ErrorKind.USER_NOT_AUTHENTICATED)

    now = now or _now()

    with span("task.cancel", task_id=str(task_id)):
        task = _lock_task(db, task_id)
        current_status = task.status_enum
        current_phase = task.task_current_status
        prior_accepter = task.accepted_by

        task_fsm.ensure_not_terminal(current_status)

        role = rbac.relationship(caller_id=caller_id, created_by=task.created_by, accepted_by=task.accepted_by)
        rbac.ensure_allowed("task.cancel", role)

        new_status, side_effects = task_fsm.cancel(current_status)

        res = db.execute(
            update(Task)
            .where(
                Task.id == task.id,
                Task.status == current_status.value,
                Task.status.in_([s.value for s in task_fsm.CANCELLABLE]),
            )
            .values(
                status=new_status.value,
                accepted_by=None,
                accepted_at=None,
                last_status_update=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise TransitionNotAllowed(
                f"Task {task.id} changed while cancelling", kind=ErrorKind.INVALID_STATE
            )

        task = _reload(db, task.id)
        db.add(
            TaskStatusHistory(
                task_id=task.id,
                from_status=current_phase,
                status=new_status.value,
                changed_by=caller_id,
                note=note,
                created_at=now,
            )
        )

        # the accepter (if any) still hears about the cancellation
        snapshot = TaskSnapshot.from_task(task, accepted_by=prior_accepter)
        result = _run_side_effects(db, task, side_effects, fanout=fanout, snapshot=snapshot)
        db.flush()

    logger.info("Task %s cancelled by %s (was %s)", task.id, caller_id, current_status.value)
    return TransitionResult(task=task, fanout=result)
