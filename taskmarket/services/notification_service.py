# taskmarket/services/notification_service.py
"""Per-user notification inbox, preferences and device registration."""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from taskmarket.models.notification import (
    Notification,
    NotificationPreference,
    NotificationType,
    PushSubscription,
)
from taskmarket.schemas.notification import (
    NotificationPage,
    NotificationRead,
    PreferencesRead,
    PreferencesUpdate,
    PushSubscriptionCreate,
)

logger = logging.getLogger(__name__)

MAX_PAGE = 100


class NotificationNotFound(KeyError):
    pass


def list_notifications(
    db: Session,
    user_id: UUID,
    *,
    limit: int = 20,
    cursor: datetime | None = None,
    type: NotificationType | None = None,
    is_read: bool | None = None,
) -> NotificationPage:
    """Newest first. ``cursor`` is the created_at of the last item of the previous page."""
    limit = max(1, min(limit, MAX_PAGE))

    stmt = select(Notification).where(Notification.user_id == user_id)
    if cursor is not None:
        stmt = stmt.where(Notification.created_at < cursor)
    if type is not None:
        stmt = stmt.where(Notification.type == type.value)
    if is_read is not None:
        stmt = stmt.where(Notification.is_read == is_read)

    rows = list(
        db.execute(stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit + 1)).scalars()
    )
    has_more = len(rows) > limit
    rows = rows[:limit]
    return NotificationPage(
        items=[NotificationRead.model_validate(r) for r in rows],
        has_more=has_more,
        next_cursor=rows[-1].created_at if has_more and rows else None,
    )


def unread_count(db: Session, user_id: UUID) -> int:
    return db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
    ).scalar_one()


def mark_read(db: Session, user_id: UUID, notification_id: UUID) -> Notification:
    row = db.execute(
        select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
    ).scalar_one_or_none()
    # another user's row looks the same as a missing one
    if row is None:
        raise NotificationNotFound(str(notification_id))
    row.is_read = True
    db.flush()
    return row


def mark_all_read(db: Session, user_id: UUID) -> int:
    res = db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount or 0


def get_preferences(db: Session, user_id: UUID) -> PreferencesRead:
    pref = db.get(NotificationPreference, user_id)
    if pref is None:
        return PreferencesRead(user_id=user_id)
    return PreferencesRead.model_validate(pref)


def update_preferences(db: Session, user_id: UUID, patch: PreferencesUpdate) -> PreferencesRead:
    pref = db.get(NotificationPreference, user_id)
    if pref is None:
        pref = NotificationPreference(user_id=user_id, new_tasks=True, task_accepted=True, task_updates=True)
        db.add(pref)
    for key, value in patch.model_dump(exclude_none=True).items():
        setattr(pref, key, value)
    db.flush()
    return PreferencesRead.model_validate(pref)


def register_push_token(db: Session, user_id: UUID, data: PushSubscriptionCreate) -> PushSubscription:
    sub = db.get(PushSubscription, (user_id, data.device_id))
    if sub is None:
        sub = PushSubscription(user_id=user_id, device_id=data.device_id)
        db.add(sub)
    sub.expo_token = data.expo_token
    sub.platform = data.platform.value
    db.flush()
    logger.info("Registered %s push token for user=%s device=%s", data.platform.value, user_id, data.device_id)
    return sub


def unregister_push_token(db: Session, user_id: UUID, device_id: str) -> bool:
    sub = db.get(PushSubscription, (user_id, device_id))
    if sub is None:
        return False
    db.delete(sub)
    db.flush()
    return True
