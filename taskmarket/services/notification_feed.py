"""In-process realtime feed of newly created notification rows.

Each subscriber holds an explicit Subscription handle; cancelling it detaches
the handle. Rows are published only after the writing transaction commits.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import defaultdict
from collections.abc import Iterable
from uuid import UUID

from taskmarket.schemas.notification import NotificationRead

logger = logging.getLogger(__name__)

NotificationEvent = NotificationRead


# wakes a reader blocked in Subscription.get once the handle is cancelled
_CLOSED = object()


class Subscription:
    def __init__(self, feed: "NotificationFeed", user_id: UUID, maxsize: int) -> None:
        self.user_id = user_id
        self._feed = feed
        self._maxsize = maxsize
        # unbounded so the close marker always fits; _offer enforces maxsize
        self._queue: queue.Queue[NotificationEvent | object] = queue.Queue()
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def get(self, timeout: float | None = None) -> NotificationEvent | None:
        """Next event, or None on timeout / after cancel.

        A reader already blocked here returns None as soon as cancel() runs.
        """
        if self.cancelled:
            return None
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            return None
        return item

    def drain(self) -> list[NotificationEvent]:
        items: list[NotificationEvent] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return items
            if item is not _CLOSED:
                items.append(item)

    def cancel(self) -> None:
        if not self._cancelled.is_set():
            self._cancelled.set()
            self._feed._detach(self)
            self._queue.put_nowait(_CLOSED)

    def _offer(self, event: NotificationEvent) -> bool:
        if self.cancelled or self._queue.qsize() >= self._maxsize:
            return False
        self._queue.put_nowait(event)
        return True

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.cancel()


class NotificationFeed:
    def __init__(self, *, max_queue: int = 256) -> None:
        self._max_queue = max_queue
        self._subs: dict[UUID, set[Subscription]] = defaultdict(set)
        self._lock = threading.Lock()

    def subscribe(self, user_id: UUID) -> Subscription:
        sub = Subscription(self, user_id, self._max_queue)
        with self._lock:
            self._subs[user_id].add(sub)
        return sub

    def subscriber_count(self, user_id: UUID) -> int:
        with self._lock:
            return len(self._subs.get(user_id, ()))

    def publish(self, event: NotificationEvent) -> int:
        """Deliver to every live subscription of the recipient; returns deliveries."""
        with self._lock:
            targets = list(self._subs.get(event.user_id, ()))
        delivered = 0
        for sub in targets:
            if sub._offer(event):
                delivered += 1
            else:
                # slow consumer; the client falls back to polling the inbox
                logger.warning("Dropping realtime notification %s for user %s: queue full", event.id, event.user_id)
        return delivered

    def publish_many(self, events: Iterable[NotificationEvent]) -> int:
        return sum(self.publish(e) for e in events)

    def _detach(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subs.get(sub.user_id)
            if subs is not None:
                subs.discard(sub)
                if not subs:
                    del self._subs[sub.user_id]
