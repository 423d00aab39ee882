# tests/test_reviews.py
"""Reviews between the participants of a completed task."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import func, select

from taskmarket.core.errors import ErrorKind, LifecycleError
from taskmarket.models.review import Review
from taskmarket.schemas.review import ReviewCreate
from taskmarket.services import review_service as rs

from tests.factories import make_task


@pytest.fixture()
def completed(db):
    poster, accepter = uuid.uuid4(), uuid.uuid4()
    task = make_task(db, created_by=poster, status="completed", accepted_by=accepter)
    db.commit()
    return task.id, poster, accepter


def _error(db, **kwargs) -> ErrorKind:
    with pytest.raises(LifecycleError) as ei:
        rs.create_review(db, **kwargs)
    db.rollback()
    return ei.value.kind


def test_each_side_rates_the_other(db, completed):
    task_id, poster, accepter = completed

    by_poster = rs.create_review(db, task_id=task_id, caller_id=poster, payload=ReviewCreate(rating=5, comment=" Fast! "))
    by_accepter = rs.create_review(db, task_id=task_id, caller_id=accepter, payload=ReviewCreate(rating=4))
    db.commit()

    assert (by_poster.reviewee_id, by_poster.rating, by_poster.comment) == (accepter, 5, "Fast!")
    assert (by_accepter.reviewee_id, by_accepter.rating, by_accepter.comment) == (poster, 4, "")


def test_stranger_cannot_review(db, completed):
    task_id, _, _ = completed
    kind = _error(db, task_id=task_id, caller_id=uuid.uuid4(), payload=ReviewCreate(rating=1))
    assert kind is ErrorKind.NOT_AUTHORIZED


@pytest.mark.parametrize("status", ["open", "accepted", "in_progress", "cancelled"])
def test_only_completed_tasks_can_be_reviewed(db, status):
    poster = uuid.uuid4()
    accepter = uuid.uuid4() if status in ("accepted", "in_progress") else None
    task = make_task(db, created_by=poster, status=status, accepted_by=accepter)
    db.commit()

    kind = _error(db, task_id=task.id, caller_id=poster, payload=ReviewCreate(rating=3))
    assert kind is ErrorKind.INVALID_STATE


def test_second_review_by_same_reviewer_is_refused(db, completed):
    task_id, poster, _ = completed
    rs.create_review(db, task_id=task_id, caller_id=poster, payload=ReviewCreate(rating=5))
    db.commit()

    kind = _error(db, task_id=task_id, caller_id=poster, payload=ReviewCreate(rating=1))
    assert kind is ErrorKind.REVIEW_ALREADY_SUBMITTED
    assert db.execute(select(func.count()).select_from(Review)).scalar_one() == 1


def test_review_requires_identity_and_visible_task(db, completed):
    task_id, _, _ = completed
    assert _error(db, task_id=task_id, caller_id=None, payload=ReviewCreate(rating=5)) is ErrorKind.USER_NOT_AUTHENTICATED
    assert _error(db, task_id=uuid.uuid4(), caller_id=uuid.uuid4(), payload=ReviewCreate(rating=5)) is ErrorKind.TASK_NOT_FOUND


def test_rating_aggregate_and_listing(db):
    courier = uuid.uuid4()
    for rating in (5, 5, 3):
        task = make_task(db, created_by=uuid.uuid4(), status="completed", accepted_by=courier)
        rs.create_review(db, task_id=task.id, caller_id=task.created_by, payload=ReviewCreate(rating=rating))
    db.commit()

    agg = rs.get_user_rating(db, courier)
    assert agg.ratings_count == 3
    assert agg.average_rating == 4.33
    assert agg.ratings_breakdown == {"1": 0, "2": 0, "3": 1, "4": 0, "5": 2}

    assert len(rs.list_user_reviews(db, courier)) == 3
    assert [r.rating for r in rs.list_user_reviews(db, courier, rating=5)] == [5, 5]


def test_rating_aggregate_without_reviews(db):
    agg = rs.get_user_rating(db, uuid.uuid4())
    assert (agg.average_rating, agg.ratings_count) == (0.0, 0)
    assert set(agg.ratings_breakdown.values()) == {0}
