# taskmarket/services/task_acceptance_service.py
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from taskmarket.core.config import settings
from taskmarket.core.errors import ErrorKind, LifecycleError
from taskmarket.core.logging import span
from taskmarket.fsm import task_fsm
from taskmarket.models.chat import ChatMember, ChatMessage, ChatRoom
from taskmarket.models.notification import NotificationType
from taskmarket.models.task import ModerationStatus, Task, TaskStatus
from taskmarket.models.task_status_history import TaskStatusHistory
from taskmarket.services.notification_fanout import FanoutResult, NotificationFanout, TaskSnapshot

logger = logging.getLogger(__name__)


@dataclass
class AcceptResult:
    task: Task
    acceptance_code: str
    chat_room_id: UUID
    fanout: FanoutResult = field(default_factory=FanoutResult)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_accept_code(digits: int | None = None) -> str:
    """Fixed-width decimal handoff code. Not a secret."""
    digits = digits or settings.accept_code_digits
    return f"{random.randrange(10 ** digits):0{digits}d}"


def _classify_lost_accept(db: Session, *, task_id: UUID, caller_id: UUID) -> LifecycleError:
    """The conditional UPDATE matched nothing: work out why from the current row."""
    task = db.execute(
        select(Task).where(Task.id == task_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()

    if task is None or task.moderation_status == ModerationStatus.blocked.value:
        return LifecycleError(ErrorKind.TASK_NOT_FOUND, f"Task {task_id} not found")
    if task.created_by == caller_id:
        return LifecycleError(ErrorKind.CANNOT_ACCEPT_OWN_TASK)
    try:
        task_fsm.accept(task.status_enum)
    except LifecycleError as e:
        return e
    # open, not ours, visible, yet nothing matched
    return LifecycleError(ErrorKind.UNKNOWN, f"Accept matched no rows for open task {task_id}")


def _open_chat_room(db: Session, *, task: Task, accepter_id: UUID, code: str, now: datetime) -> ChatRoom:
    text = f"Task accepted! Acceptance code: {code}"
    room = ChatRoom(task_id=task.id, last_message=text, last_message_at=now)
    db.add(room)
    db.flush()

    db.add_all(
        [
            ChatMember(room_id=room.id, user_id=task.created_by, unread_count=1),
            ChatMember(room_id=room.id, user_id=accepter_id, unread_count=0, last_read_at=now),
            ChatMessage(room_id=room.id, sender_id=accepter_id, text=text, created_at=now),
        ]
    )
    return room


def accept_task(
    db: Session,
    *,
    task_id: UUID,
    caller_id: UUID | None,
    fanout: NotificationFanout | None = None,
    code_factory: Callable[[], str] | None = None,
    now: datetime | None = None,
) -> AcceptResult:
    """open -> accepted for exactly one caller.

    The winner is decided by a single conditional UPDATE
    (WHERE status='open' AND created_by <> caller). Losers see zero rows and get
    a classified error. Chat room, members, history and notification rows are
    written in the same transaction; the caller commits.
    """
    if caller_id is None:
        raise LifecycleError(ErrorKind.USER_NOT_AUTHENTICATED)

    now = now or _now()
    code = (code_factory or generate_accept_code)()
    new_status, new_phase, side_effects = task_fsm.accept(TaskStatus.open)

    with span("task.accept", task_id=str(task_id), caller_id=str(caller_id)):
        res = db.execute(
            update(Task)
            .where(
                Task.id == task_id,
                Task.status == TaskStatus.open.value,
                Task.created_by != caller_id,
                Task.moderation_status != ModerationStatus.blocked.value,
            )
            .values(
                status=new_status.value,
                task_current_status=new_phase.value,
                accepted_by=caller_id,
                accepted_at=now,
                user_accept_code=code,
                last_status_update=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )

        if res.rowcount != 1:
            err = _classify_lost_accept(db, task_id=task_id, caller_id=caller_id)
            logger.info("Accept rejected task=%s caller=%s: %s", task_id, caller_id, err.kind.value)
            raise err

        task = db.execute(
            select(Task).where(Task.id == task_id).execution_options(populate_existing=True)
        ).scalar_one()

        db.add(
            TaskStatusHistory(
                task_id=task.id,
                from_status=None,
                status=new_phase.value,
                changed_by=caller_id,
                created_at=now,
            )
        )

        room: ChatRoom | None = None
        result_fanout = FanoutResult()
        for eff in side_effects:
            if eff.kind == task_fsm.EFFECT_OPEN_CHAT:
                room = _open_chat_room(db, task=task, accepter_id=caller_id, code=code, now=now)
            elif eff.kind == task_fsm.EFFECT_NOTIFY:
                db.flush()
                result_fanout.extend(
                    (fanout or NotificationFanout()).fan_out(
                        db, NotificationType(eff.payload["event"]), TaskSnapshot.from_task(task)
                    )
                )

        db.flush()

    logger.info("Task %s accepted by %s (room=%s)", task.id, caller_id, room.id if room else None)
    return AcceptResult(
        task=task,
        acceptance_code=code,
        chat_room_id=room.id,
        fanout=result_fanout,
    )
