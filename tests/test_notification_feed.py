# tests/test_notification_feed.py
import threading
import time
import uuid
from datetime import datetime, timezone

from taskmarket.models.notification import NotificationType
from taskmarket.services.notification_feed import NotificationEvent, NotificationFeed


def _event(user_id, title="Task update") -> NotificationEvent:
    return NotificationEvent(
        id=uuid.uuid4(),
        user_id=user_id,
        type=NotificationType.TASK_UPDATED,
        title=title,
        body="Tacos • Picked up",
        is_read=False,
        created_at=datetime.now(timezone.utc),
    )


def test_subscriber_receives_only_own_events():
    feed = NotificationFeed()
    me, other = uuid.uuid4(), uuid.uuid4()
    sub = feed.subscribe(me)

    assert feed.publish(_event(other)) == 0
    assert feed.publish(_event(me, "mine")) == 1

    got = sub.get(timeout=0.1)
    assert got is not None and got.title == "mine"
    assert sub.get(timeout=0.01) is None


def test_every_subscription_of_a_user_gets_a_copy():
    feed = NotificationFeed()
    me = uuid.uuid4()
    phone, tablet = feed.subscribe(me), feed.subscribe(me)

    assert feed.publish_many([_event(me), _event(me)]) == 4
    assert len(phone.drain()) == 2
    assert len(tablet.drain()) == 2


def test_cancel_detaches():
    feed = NotificationFeed()
    me = uuid.uuid4()
    with feed.subscribe(me) as sub:
        assert feed.subscriber_count(me) == 1
    assert sub.cancelled
    assert feed.subscriber_count(me) == 0
    assert feed.publish(_event(me)) == 0
    assert sub.get(timeout=0.01) is None

    sub.cancel()  # idempotent


def test_full_queue_drops_instead_of_blocking(caplog):
    feed = NotificationFeed(max_queue=2)
    me = uuid.uuid4()
    sub = feed.subscribe(me)

    delivered = feed.publish_many([_event(me) for _ in range(3)])

    assert delivered == 2
    assert len(sub.drain()) == 2
    assert "queue full" in caplog.text


def test_cancel_wakes_a_blocked_reader():
    feed = NotificationFeed()
    sub = feed.subscribe(uuid.uuid4())
    got: list = []

    def reader():
        started = time.monotonic()
        got.append(sub.get(timeout=2.0))
        got.append(time.monotonic() - started)

    t = threading.Thread(target=reader)
    t.start()
    time.sleep(0.05)
    sub.cancel()
    t.join(timeout=1.0)

    assert not t.is_alive()
    assert got[0] is None
    assert got[1] < 0.5
