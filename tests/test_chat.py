# tests/test_chat.py
"""Task chat rooms: inbox, unread counters, messages."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select

from taskmarket.models.chat import ChatMember, ChatRoom
from taskmarket.services import chat_service as cs
from taskmarket.services.chat_service import ChatRoomNotFound
from taskmarket.services.task_acceptance_service import accept_task

from tests.factories import make_profile, make_task


@pytest.fixture()
def room(db, fanout):
    poster, accepter = uuid.uuid4(), uuid.uuid4()
    make_profile(db, user_id=accepter, display_name="Sam")
    task = make_task(db, created_by=poster, title="Bagel run")
    db.commit()
    result = accept_task(db, task_id=task.id, caller_id=accepter, fanout=fanout, code_factory=lambda: "55555")
    db.commit()
    return result.chat_room_id, poster, accepter


def _unread(db, room_id, user_id) -> int:
    db.expire_all()
    return db.get(ChatMember, (room_id, user_id)).unread_count


def test_inbox_shows_other_party_and_unread(db, room):
    room_id, poster, accepter = room

    (item,) = cs.get_chat_inbox(db, poster)
    assert item.room_id == room_id
    assert item.task_title == "Bagel run"
    assert item.other_id == accepter
    assert item.other_name == "Sam"
    assert item.unread_count == 1
    assert "55555" in item.last_message

    (mine,) = cs.get_chat_inbox(db, accepter)
    assert (mine.other_id, mine.other_name, mine.unread_count) == (poster, None, 0)

    assert cs.get_chat_inbox(db, uuid.uuid4()) == []


def test_mark_room_read_resets_counter(db, room):
    room_id, poster, _ = room

    cs.mark_room_read(db, poster, room_id)
    db.commit()

    assert _unread(db, room_id, poster) == 0
    assert db.get(ChatMember, (room_id, poster)).last_read_at is not None


def test_send_message_bumps_other_members(db, room):
    room_id, poster, accepter = room

    cs.send_message(db, accepter, room_id, "At the counter now")
    cs.send_message(db, accepter, room_id, "Plain or sesame?")
    db.commit()

    assert _unread(db, room_id, poster) == 3
    assert _unread(db, room_id, accepter) == 0
    assert db.get(ChatRoom, room_id).last_message == "Plain or sesame?"

    cs.send_message(db, poster, room_id, "Sesame")
    db.commit()
    assert _unread(db, room_id, poster) == 0
    assert _unread(db, room_id, accepter) == 1

    texts = [m.text for m in cs.list_messages(db, poster, room_id)]
    assert texts[1:] == ["At the counter now", "Plain or sesame?", "Sesame"]
    assert texts[0].startswith("Task accepted!")


def test_non_member_cannot_use_room(db, room):
    room_id, _, _ = room
    stranger = uuid.uuid4()

    with pytest.raises(ChatRoomNotFound):
        cs.list_messages(db, stranger, room_id)
    with pytest.raises(ChatRoomNotFound):
        cs.send_message(db, stranger, room_id, "hi")
    with pytest.raises(ChatRoomNotFound):
        cs.mark_room_read(db, stranger, room_id)
    db.rollback()

    members = set(db.execute(select(ChatMember.user_id).where(ChatMember.room_id == room_id)).scalars())
    assert stranger not in members
