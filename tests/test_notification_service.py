# tests/test_notification_service.py
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from taskmarket.models.notification import Notification, NotificationType, PushSubscription
from taskmarket.schemas.notification import PreferencesUpdate, PushSubscriptionCreate
from taskmarket.services import notification_service as ns

BASE = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _seed(db, user_id, n, *, type="TASK_UPDATED", is_read=False):
    rows = [
        Notification(
            user_id=user_id,
            type=type,
            title="Task update",
            body=f"#{i}",
            meta={},
            is_read=is_read,
            created_at=BASE + timedelta(minutes=i),
        )
        for i in range(n)
    ]
    db.add_all(rows)
    db.flush()
    return rows


def test_list_is_newest_first_with_cursor(db):
    me = uuid.uuid4()
    _seed(db, me, 5)
    _seed(db, uuid.uuid4(), 2)

    first = ns.list_notifications(db, me, limit=2)
    assert [n.body for n in first.items] == ["#4", "#3"]
    assert first.has_more

    second = ns.list_notifications(db, me, limit=2, cursor=first.next_cursor)
    assert [n.body for n in second.items] == ["#2", "#1"]

    last = ns.list_notifications(db, me, limit=2, cursor=second.next_cursor)
    assert [n.body for n in last.items] == ["#0"]
    assert not last.has_more and last.next_cursor is None


def test_list_filters(db):
    me = uuid.uuid4()
    _seed(db, me, 2, type="TASK_ACCEPTED")
    _seed(db, me, 1, is_read=True)

    assert len(ns.list_notifications(db, me, type=NotificationType.TASK_ACCEPTED).items) == 2
    assert len(ns.list_notifications(db, me, is_read=True).items) == 1


def test_mark_read_is_scoped_to_owner(db):
    me, other = uuid.uuid4(), uuid.uuid4()
    (theirs,) = _seed(db, other, 1)
    (mine,) = _seed(db, me, 1)

    with pytest.raises(ns.NotificationNotFound):
        ns.mark_read(db, me, theirs.id)

    assert ns.mark_read(db, me, mine.id).is_read
    assert ns.unread_count(db, me) == 0
    assert ns.unread_count(db, other) == 1


def test_mark_all_read(db):
    me = uuid.uuid4()
    _seed(db, me, 3)
    _seed(db, me, 1, is_read=True)

    assert ns.mark_all_read(db, me) == 3
    assert ns.unread_count(db, me) == 0


def test_preferences_default_then_partial_upsert(db):
    me = uuid.uuid4()
    assert ns.get_preferences(db, me).model_dump() == {
        "user_id": me,
        "new_tasks": True,
        "task_accepted": True,
        "task_updates": True,
    }

    ns.update_preferences(db, me, PreferencesUpdate(task_updates=False))
    updated = ns.update_preferences(db, me, PreferencesUpdate(new_tasks=False))
    assert (updated.new_tasks, updated.task_accepted, updated.task_updates) == (False, True, False)


def test_push_token_upsert_and_unregister(db):
    me = uuid.uuid4()
    ns.register_push_token(db, me, PushSubscriptionCreate(device_id="d1", expo_token="ExponentPushToken[a]", platform="ios"))
    ns.register_push_token(db, me, PushSubscriptionCreate(device_id="d1", expo_token="ExponentPushToken[b]", platform="ios"))

    sub = db.get(PushSubscription, (me, "d1"))
    assert sub.expo_token == "ExponentPushToken[b]"

    assert ns.unregister_push_token(db, me, "d1") is True
    assert ns.unregister_push_token(db, me, "d1") is False
