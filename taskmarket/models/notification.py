from __future__ import annotations

import enum
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from taskmarket.models.base import Base, JSONType, utcnow


class NotificationType(str, enum.Enum):
    TASK_POSTED = "TASK_POSTED"
    TASK_ACCEPTED = "TASK_ACCEPTED"
    TASK_UPDATED = "TASK_UPDATED"


class PushPlatform(str, enum.Enum):
    ios = "ios"
    android = "android"
    web = "web"


class Notification(Base):
    """One row per (event, recipient). Only is_read changes after insert."""

    __tablename__ = "notifications"
    __table_args__ = (
        CheckConstraint(
            "type IN ('TASK_POSTED', 'TASK_ACCEPTED', 'TASK_UPDATED')",
            name="type_domain",
        ),
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)

    task_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=True
    )
    meta: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )


class NotificationPreference(Base):
    """Absent row means every flag is on."""

    __tablename__ = "notification_preferences"

    user_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)

    new_tasks: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    task_accepted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    task_updates: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow
    )


# event type -> preference flag that gates it
PREFERENCE_FLAG: dict[NotificationType, str] = {
    NotificationType.TASK_POSTED: "new_tasks",
    NotificationType.TASK_ACCEPTED: "task_accepted",
    NotificationType.TASK_UPDATED: "task_updates",
}


class PushSubscription(Base):
    __tablename__ = "push_subscriptions"
    __table_args__ = (
        CheckConstraint("platform IN ('ios', 'android', 'web')", name="platform_domain"),
    )

    user_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    device_id: Mapped[str] = mapped_column(String(200), primary_key=True)

    expo_token: Mapped[str] = mapped_column(Text, nullable=False)
    platform: Mapped[str] = mapped_column(String(16), nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow
    )
