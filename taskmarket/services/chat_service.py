# taskmarket/services/chat_service.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session, aliased

from taskmarket.models.chat import ChatMember, ChatMessage, ChatRoom
from taskmarket.models.gamification import Profile
from taskmarket.models.task import Task
from taskmarket.schemas.chat import ChatInboxItem

logger = logging.getLogger(__name__)


class ChatRoomNotFound(KeyError):
    """Missing room, or the caller is not a member of it."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_member(db: Session, user_id: UUID, room_id: UUID) -> None:
    member = db.get(ChatMember, (room_id, user_id))
    if member is None:
        raise ChatRoomNotFound(str(room_id))


def get_chat_inbox(db: Session, user_id: UUID) -> list[ChatInboxItem]:
    """The caller's rooms with the other participant and the caller's unread count, latest activity first."""
    me = aliased(ChatMember)
    other = aliased(ChatMember)
    rows = db.execute(
        select(
            ChatRoom.id,
            ChatRoom.task_id,
            Task.title,
            other.user_id,
            Profile.display_name,
            ChatRoom.last_message,
            ChatRoom.last_message_at,
            me.unread_count,
        )
        .join(me, (me.room_id == ChatRoom.id) & (me.user_id == user_id))
        .join(Task, Task.id == ChatRoom.task_id)
        .outerjoin(other, (other.room_id == ChatRoom.id) & (other.user_id != user_id))
        .outerjoin(Profile, Profile.id == other.user_id)
        .order_by(ChatRoom.last_message_at.desc(), ChatRoom.created_at.desc())
    ).all()

    return [
        ChatInboxItem(
            room_id=room_id,
            task_id=task_id,
            task_title=title,
            other_id=other_id,
            other_name=name or None,
            last_message=last_message,
            last_message_at=last_message_at,
            unread_count=unread,
        )
        for room_id, task_id, title, other_id, name, last_message, last_message_at, unread in rows
    ]


def mark_room_read(db: Session, user_id: UUID, room_id: UUID) -> None:
    res = db.execute(
        update(ChatMember)
        .where(ChatMember.room_id == room_id, ChatMember.user_id == user_id)
        .values(unread_count=0, last_read_at=_now())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise ChatRoomNotFound(str(room_id))


def list_messages(db: Session, user_id: UUID, room_id: UUID) -> list[ChatMessage]:
    _ensure_member(db, user_id, room_id)
    return list(
        db.execute(
            select(ChatMessage)
            .where(ChatMessage.room_id == room_id)
            .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
        ).scalars()
    )


def send_message(db: Session, user_id: UUID, room_id: UUID, text: str) -> ChatMessage:
    """Append a message, move the room's preview and bump everyone else's unread count."""
    _ensure_member(db, user_id, room_id)
    now = _now()

    msg = ChatMessage(room_id=room_id, sender_id=user_id, text=text, created_at=now)
    db.add(msg)
    db.execute(
        update(ChatRoom)
        .where(ChatRoom.id == room_id)
        .values(last_message=text, last_message_at=now)
        .execution_options(synchronize_session=False)
    )
    db.execute(
        update(ChatMember)
        .where(ChatMember.room_id == room_id, ChatMember.user_id != user_id)
        .values(unread_count=ChatMember.unread_count + 1)
        .execution_options(synchronize_session=False)
    )
    db.execute(
        update(ChatMember)
        .where(ChatMember.room_id == room_id, ChatMember.user_id == user_id)
        .values(unread_count=0, last_read_at=now)
        .execution_options(synchronize_session=False)
    )
    db.flush()
    logger.info("Message in room %s from %s", room_id, user_id)
    return msg
