# taskmarket/models/review.py

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from taskmarket.models.base import Base, utcnow

MIN_RATING = 1
MAX_RATING = 5


class Review(Base):
    """A 1-5 star rating one participant of a completed task leaves for the other."""

    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint(f"rating >= {MIN_RATING} AND rating <= {MAX_RATING}", name="rating_range"),
        CheckConstraint("reviewer_id <> reviewee_id", name="not_self_review"),
        UniqueConstraint("task_id", "reviewer_id", name="uq_reviews_task_reviewer"),
        Index("ix_reviews_reviewee_created", "reviewee_id", "created_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    task_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reviewer_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    reviewee_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)

    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
