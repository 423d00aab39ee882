# taskmarket/services/task_service.py
from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from taskmarket.core.errors import ErrorKind, LifecycleError
from taskmarket.core.logging import span
from taskmarket.models.notification import NotificationType
from taskmarket.models.task import ModerationStatus, Task, TaskStatus
from taskmarket.models.task_status_history import TaskStatusHistory
from taskmarket.schemas.task import TaskCreate
from taskmarket.services.moderation import ContentRejected, screen_text
from taskmarket.services.notification_fanout import FanoutResult, NotificationFanout, TaskSnapshot

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50


def create_task(
    db: Session,
    *,
    caller_id: UUID | None,
    payload: TaskCreate,
    fanout: NotificationFanout | None = None,
) -> tuple[Task, FanoutResult]:
    if caller_id is None:
        raise LifecycleError(ErrorKind.USER_NOT_AUTHENTICATED)

    verdict = screen_text(payload.title, payload.description, payload.dropoff_instructions)
    if not verdict.is_allowed:
        logger.info("Task from %s rejected by moderation: %s", caller_id, ", ".join(verdict.flagged))
        raise ContentRejected(verdict)

    with span("task.create", caller_id=str(caller_id)):
        task = Task(
            title=payload.title,
            description=payload.description,
            category=payload.category.value,
            urgency=payload.urgency.value,
            store=payload.store,
            dropoff_address=payload.dropoff_address,
            dropoff_instructions=payload.dropoff_instructions,
            reward_cents=payload.reward_cents,
            estimated_minutes=payload.estimated_minutes,
            status=TaskStatus.open.value,
            created_by=caller_id,
            moderation_status=ModerationStatus.approved.value,
        )
        db.add(task)
        db.flush()

        result = (fanout or NotificationFanout()).fan_out(
            db, NotificationType.TASK_POSTED, TaskSnapshot.from_task(task)
        )

    logger.info("Task %s posted by %s", task.id, caller_id)
    return task, result


def get_task(db: Session, task_id: UUID) -> Task:
    task = db.get(Task, task_id)
    if task is None or task.moderation_status == ModerationStatus.blocked.value:
        raise LifecycleError(ErrorKind.TASK_NOT_FOUND, f"Task {task_id} not found")
    return task


def list_open_tasks(db: Session, *, limit: int = DEFAULT_LIMIT, offset: int = 0) -> list[Task]:
    return list(
        db.execute(
            select(Task)
            .where(
                Task.status == TaskStatus.open.value,
                Task.moderation_status != ModerationStatus.blocked.value,
            )
            .order_by(Task.created_at.desc(), Task.id.desc())
            .limit(limit)
            .offset(offset)
        ).scalars()
    )


def list_user_posted_tasks(db: Session, user_id: UUID, *, limit: int = DEFAULT_LIMIT, offset: int = 0) -> list[Task]:
    return list(
        db.execute(
            select(Task)
            .where(Task.created_by == user_id)
            .order_by(Task.created_at.desc(), Task.id.desc())
            .limit(limit)
            .offset(offset)
        ).scalars()
    )


def list_user_accepted_tasks(
    db: Session, user_id: UUID, *, limit: int = DEFAULT_LIMIT, offset: int = 0
) -> list[Task]:
    """Tasks the user currently holds or finished. Cancelled tasks drop accepted_by."""
    return list(
        db.execute(
            select(Task)
            .where(Task.accepted_by == user_id)
            .order_by(Task.accepted_at.desc(), Task.id.desc())
            .limit(limit)
            .offset(offset)
        ).scalars()
    )


def list_status_history(db: Session, task_id: UUID) -> list[TaskStatusHistory]:
    get_task(db, task_id)
    return list(
        db.execute(
            select(TaskStatusHistory)
            .where(TaskStatusHistory.task_id == task_id)
            .order_by(TaskStatusHistory.created_at.asc(), TaskStatusHistory.id.asc())
        ).scalars()
    )
