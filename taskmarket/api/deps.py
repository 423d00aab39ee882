# taskmarket/api/deps.py
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from fastapi import BackgroundTasks, Header, Request
from sqlalchemy.orm import Session

from taskmarket.core.errors import ErrorKind, LifecycleError
from taskmarket.services.notification_fanout import FanoutResult, NotificationFanout
from taskmarket.services.notification_feed import NotificationFeed
from taskmarket.services.push_sender import PushSender

# -----------------------------------------------------------------------------
# Identity: X-User-Id header stands in for the identity provider
# -----------------------------------------------------------------------------

ANONYMOUS_IDS = {"anonymous", "guest"}


def parse_user_id(raw: str | None) -> UUID | None:
    """None for a missing, anonymous/guest or malformed identity."""
    if not raw or not raw.strip():
        return None
    value = raw.strip()
    if value.lower() in ANONYMOUS_IDS:
        return None
    try:
        return UUID(value)
    except ValueError:
        return None


def get_optional_user_id(
    x_user_id: str | None = Header(
        default=None,
        alias="X-User-Id",
        description="Authenticated user id (UUID).",
        examples=["33333333-3333-3333-3333-333333333333"],
    ),
) -> UUID | None:
    return parse_user_id(x_user_id)


def get_current_user_id(
    x_user_id: str | None = Header(
        default=None,
        alias="X-User-Id",
        description="Authenticated user id (UUID). Required for mutations.",
        examples=["33333333-3333-3333-3333-333333333333"],
    ),
) -> UUID:
    user_id = parse_user_id(x_user_id)
    if user_id is None:
        raise LifecycleError(ErrorKind.USER_NOT_AUTHENTICATED)
    return user_id


# -----------------------------------------------------------------------------
# Process-wide collaborators, owned by the app (see taskmarket.main.create_app)
# -----------------------------------------------------------------------------


def get_fanout(request: Request) -> NotificationFanout:
    return request.app.state.fanout


def get_push_sender(request: Request) -> PushSender:
    return request.app.state.push_sender


def get_feed(request: Request) -> NotificationFeed:
    return request.app.state.feed


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """Commit on success; roll back and re-raise otherwise."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def dispatch_committed(
    result: FanoutResult,
    *,
    background: BackgroundTasks,
    push_sender: PushSender,
    feed: NotificationFeed,
) -> None:
    """Realtime + push for rows that are now durable. Call only after commit."""
    if result.notifications:
        feed.publish_many(result.notifications)
    if result.push_messages:
        background.add_task(push_sender.send, list(result.push_messages))
