# taskmarket/models/task_status_history.py

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from taskmarket.models.base import Base, utcnow


class TaskStatusHistory(Base):
    """Append-only log of every lifecycle write (accept, phase change, cancel)."""

    __tablename__ = "task_status_history"
    __table_args__ = (Index("ix_task_status_history_task_time", "task_id", "created_at"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    task_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
    )

    from_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    # phase name, or 'cancelled'
    status: Mapped[str] = mapped_column(String(32), nullable=False)

    changed_by: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    photo_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )
