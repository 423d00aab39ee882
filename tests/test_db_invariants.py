# tests/test_db_invariants.py
"""CHECK/UNIQUE constraints on tasks, chat rooms and reviews hold even if a service is bypassed."""

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from taskmarket.models.chat import ChatMember, ChatRoom
from taskmarket.models.review import Review

from tests.factories import make_task


def _now():
    return datetime.now(timezone.utc)


def test_accepted_status_requires_accepter(db):
    make_task(db, status="accepted", phase="accepted", flush=False)
    with pytest.raises(IntegrityError):
        db.flush()


def test_open_task_cannot_have_accepter(db):
    make_task(db, status="open", accepted_by=uuid.uuid4(), accepted_at=_now(), flush=False)
    with pytest.raises(IntegrityError):
        db.flush()


def test_cancelled_task_cannot_keep_accepter(db):
    make_task(db, status="cancelled", accepted_by=uuid.uuid4(), accepted_at=_now(), flush=False)
    with pytest.raises(IntegrityError):
        db.flush()


def test_accepter_cannot_be_poster(db):
    poster = uuid.uuid4()
    make_task(db, created_by=poster, status="accepted", accepted_by=poster, flush=False)
    with pytest.raises(IntegrityError):
        db.flush()


@pytest.mark.parametrize(
    "overrides",
    [
        {"status": "done"},
        {"phase": "teleported"},
        {"reward_cents": 0},
        {"estimated_minutes": -5},
        {"category": "laundry"},
        {"moderation_status": "maybe"},
    ],
)
def test_domain_checks(db, overrides):
    make_task(db, flush=False, **overrides)
    with pytest.raises(IntegrityError):
        db.flush()


def test_valid_accepted_task_passes(db):
    task = make_task(db, status="accepted", accepted_by=uuid.uuid4())
    assert task.id is not None


def test_one_chat_room_per_task(db):
    task = make_task(db, status="accepted", accepted_by=uuid.uuid4())
    db.add(ChatRoom(task_id=task.id))
    db.flush()

    db.add(ChatRoom(task_id=task.id))
    with pytest.raises(IntegrityError):
        db.flush()


def test_chat_member_unique_per_room(db):
    task = make_task(db, status="accepted", accepted_by=uuid.uuid4())
    room = ChatRoom(task_id=task.id)
    db.add(room)
    db.flush()

    db.add(ChatMember(room_id=room.id, user_id=task.created_by))
    db.flush()
    db.expunge_all()
    db.add(ChatMember(room_id=room.id, user_id=task.created_by))
    with pytest.raises(IntegrityError):
        db.flush()


def _completed(db):
    return make_task(db, status="completed", accepted_by=uuid.uuid4())


@pytest.mark.parametrize("rating", [0, 6])
def test_review_rating_range(db, rating):
    task = _completed(db)
    db.add(Review(task_id=task.id, reviewer_id=task.created_by, reviewee_id=task.accepted_by, rating=rating))
    with pytest.raises(IntegrityError):
        db.flush()


def test_review_cannot_target_reviewer(db):
    task = _completed(db)
    db.add(Review(task_id=task.id, reviewer_id=task.created_by, reviewee_id=task.created_by, rating=5))
    with pytest.raises(IntegrityError):
        db.flush()


def test_one_review_per_task_and_reviewer(db):
    task = _completed(db)
    db.add(Review(task_id=task.id, reviewer_id=task.created_by, reviewee_id=task.accepted_by, rating=5))
    db.flush()

    db.add(Review(task_id=task.id, reviewer_id=task.created_by, reviewee_id=task.accepted_by, rating=2))
    with pytest.raises(IntegrityError):
        db.flush()
