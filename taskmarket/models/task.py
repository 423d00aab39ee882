# taskmarket/models/task.py
from __future__ import annotations

import enum
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from taskmarket.models.base import Base, utcnow


class TaskStatus(str, enum.Enum):
    """Coarse lifecycle status."""
    open = "open"
    accepted = "accepted"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class TaskPhase(str, enum.Enum):
    """Fine-grained delivery phase (tasks.task_current_status)."""
    accepted = "accepted"
    picked_up = "picked_up"
    on_the_way = "on_the_way"
    delivered = "delivered"
    completed = "completed"


class TaskCategory(str, enum.Enum):
    food = "food"
    grocery = "grocery"
    coffee = "coffee"


class TaskUrgency(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


class ModerationStatus(str, enum.Enum):
    approved = "approved"
    needs_review = "needs_review"
    blocked = "blocked"


# statuses that require accepted_by (and only these)
ASSIGNED_STATUSES = (TaskStatus.accepted, TaskStatus.in_progress, TaskStatus.completed)
TERMINAL_STATUSES = (TaskStatus.completed, TaskStatus.cancelled)


def _in(values) -> str:
    return ", ".join(f"'{v.value}'" for v in values)


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint(f"status IN ({_in(TaskStatus)})", name="status_domain"),
        CheckConstraint(
            f"task_current_status IS NULL OR task_current_status IN ({_in(TaskPhase)})",
            name="phase_domain",
        ),
        CheckConstraint(f"category IN ({_in(TaskCategory)})", name="category_domain"),
        CheckConstraint(f"urgency IN ({_in(TaskUrgency)})", name="urgency_domain"),
        CheckConstraint(f"moderation_status IN ({_in(ModerationStatus)})", name="moderation_domain"),
        # accepted_by is set iff the task has been won and not cancelled
        CheckConstraint(
            f"(status IN ({_in(ASSIGNED_STATUSES)}) AND accepted_by IS NOT NULL AND accepted_at IS NOT NULL)"
            f" OR (status NOT IN ({_in(ASSIGNED_STATUSES)}) AND accepted_by IS NULL)",
            name="accepted_by_matches_status",
        ),
        CheckConstraint("accepted_by IS NULL OR accepted_by <> created_by", name="not_self_accepted"),
        CheckConstraint("reward_cents > 0", name="reward_positive"),
        CheckConstraint("estimated_minutes > 0", name="estimated_minutes_positive"),
        Index("ix_tasks_status_created_at", "status", "created_at"),
        Index("ix_tasks_created_by", "created_by"),
        Index("ix_tasks_accepted_by", "accepted_by"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(32), nullable=False, default=TaskCategory.food.value)
    urgency: Mapped[str] = mapped_column(String(16), nullable=False, default=TaskUrgency.medium.value)

    store: Mapped[str] = mapped_column(Text, nullable=False, default="")
    dropoff_address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    dropoff_instructions: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # minor currency units
    reward_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default=TaskStatus.open.value)
    # NULL while open
    task_current_status: Mapped[str | None] = mapped_column(String(32), nullable=True)

    created_by: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    accepted_by: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # handoff code shown to both sides, not a secret
    user_accept_code: Mapped[str | None] = mapped_column(String(16), nullable=True)

    last_status_update: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    moderation_status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=ModerationStatus.approved.value
    )
    moderation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    moderated_by: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    moderated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    @property
    def status_enum(self) -> TaskStatus:
        return TaskStatus(self.status)

    @property
    def phase_enum(self) -> TaskPhase | None:
        return TaskPhase(self.task_current_status) if self.task_current_status else None
