# taskmarket/services/review_service.py
"""Ratings between the two participants of a completed task."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taskmarket.core import rbac
from taskmarket.core.errors import ErrorKind, LifecycleError
from taskmarket.core.logging import span
from taskmarket.models.review import MAX_RATING, MIN_RATING, Review
from taskmarket.models.task import TaskStatus
from taskmarket.schemas.review import ReviewCreate, UserRating
from taskmarket.services.task_service import get_task

logger = logging.getLogger(__name__)


def create_review(db: Session, *, task_id: UUID, caller_id: UUID | None, payload: ReviewCreate) -> Review:
    """The caller rates the other participant; one review per task and reviewer.

    Check order: identity, task visible, caller took part, task completed,
    not reviewed yet.
    """
    if caller_id is None:
        raise LifecycleError(ErrorKind.USER_NOT_AUTHENTICATED)

    task = get_task(db, task_id)
    role = rbac.relationship(caller_id=caller_id, created_by=task.created_by, accepted_by=task.accepted_by)
    rbac.ensure_allowed("task.review", role)

    if task.status != TaskStatus.completed.value:
        raise LifecycleError(ErrorKind.INVALID_STATE, f"Task {task_id} is '{task.status}', not completed")

    reviewee_id = task.accepted_by if role == rbac.POSTER else task.created_by

    existing = db.execute(
        select(Review.id).where(Review.task_id == task_id, Review.reviewer_id == caller_id)
    ).first()
    if existing is not None:
        raise LifecycleError(ErrorKind.REVIEW_ALREADY_SUBMITTED)

    with span("review.create", task_id=str(task_id), reviewer_id=str(caller_id)):
        review = Review(
            task_id=task_id,
            reviewer_id=caller_id,
            reviewee_id=reviewee_id,
            rating=payload.rating,
            comment=payload.comment.strip(),
        )
        try:
            with db.begin_nested():
                db.add(review)
                db.flush()
        except IntegrityError:
            # a concurrent double submit won the unique (task_id, reviewer_id)
            raise LifecycleError(ErrorKind.REVIEW_ALREADY_SUBMITTED)

    logger.info("User %s rated %s %d/5 for task %s", caller_id, reviewee_id, payload.rating, task_id)
    return review


def list_task_reviews(db: Session, task_id: UUID) -> list[Review]:
    get_task(db, task_id)
    return list(
        db.execute(
            select(Review).where(Review.task_id == task_id).order_by(Review.created_at.desc(), Review.id.desc())
        ).scalars()
    )


def list_user_reviews(
    db: Session,
    user_id: UUID,
    *,
    limit: int = 20,
    offset: int = 0,
    rating: int | None = None,
) -> list[Review]:
    """Reviews received by the user, newest first."""
    stmt = select(Review).where(Review.reviewee_id == user_id)
    if rating is not None:
        stmt = stmt.where(Review.rating == rating)
    return list(
        db.execute(
            stmt.order_by(Review.created_at.desc(), Review.id.desc()).limit(limit).offset(offset)
        ).scalars()
    )


def get_user_rating(db: Session, user_id: UUID) -> UserRating:
    rows = db.execute(
        select(Review.rating, func.count())
        .where(Review.reviewee_id == user_id)
        .group_by(Review.rating)
    ).all()

    breakdown = {str(r): 0 for r in range(MIN_RATING, MAX_RATING + 1)}
    for rating, n in rows:
        breakdown[str(rating)] = n

    count = sum(breakdown.values())
    total = sum(int(r) * n for r, n in breakdown.items())
    return UserRating(
        user_id=user_id,
        average_rating=round(total / count, 2) if count else 0.0,
        ratings_count=count,
        ratings_breakdown=breakdown,
    )
