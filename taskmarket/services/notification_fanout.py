# taskmarket/services/notification_fanout.py
"""Notification fan-out for task lifecycle events.

Recipient derivation and message content are pure functions of the event and a
task snapshot. Persisting rows runs inside a SAVEPOINT of the lifecycle
transaction, so a failure here is logged and rolled back on its own without
failing the transition. Push delivery happens after commit (see PushSender).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from taskmarket.core.cache import TTLCache
from taskmarket.core.logging import span
from taskmarket.models.gamification import Profile
from taskmarket.models.notification import (
    PREFERENCE_FLAG,
    Notification,
    NotificationPreference,
    NotificationType,
    PushPlatform,
    PushSubscription,
)
from taskmarket.models.task import Task
from taskmarket.schemas.notification import NotificationRead, PushMessage

logger = logging.getLogger(__name__)

PHASE_LABELS: dict[str, str] = {
    "accepted": "Accepted",
    "picked_up": "Picked up",
    "on_the_way": "On the way",
    "delivered": "Delivered",
    "completed": "Completed",
    "cancelled": "Cancelled",
}


@dataclass(frozen=True)
class TaskSnapshot:
    id: UUID
    title: str
    store: str
    status: str
    phase: str | None
    created_by: UUID
    accepted_by: UUID | None

    @classmethod
    def from_task(cls, task: Task, **overrides) -> "TaskSnapshot":
        snap = cls(
            id=task.id,
            title=task.title,
            store=task.store,
            status=task.status,
            phase=task.task_current_status,
            created_by=task.created_by,
            accepted_by=task.accepted_by,
        )
        return replace(snap, **overrides) if overrides else snap

    @property
    def display_status(self) -> str:
        # cancellation is reported as such even though the phase column keeps the last phase
        return self.status if self.status == "cancelled" else (self.phase or self.status)


@dataclass
class FanoutResult:
    notifications: list[NotificationRead] = field(default_factory=list)
    push_messages: list[PushMessage] = field(default_factory=list)

    @property
    def recipients(self) -> list[UUID]:
        return [n.user_id for n in self.notifications]

    def extend(self, other: "FanoutResult") -> None:
        self.notifications.extend(other.notifications)
        self.push_messages.extend(other.push_messages)


# ---------------------------------------------------------------------------
# TASK_POSTED audience
# ---------------------------------------------------------------------------


class PostedAudiencePolicy(Protocol):
    def candidates(self, db: Session, task: TaskSnapshot) -> list[UUID]: ...


class NoAudience:
    """Broadcast disabled (the mobile app's current behaviour)."""

    def candidates(self, db: Session, task: TaskSnapshot) -> list[UUID]:
        return []


class AllUsersAudience:
    """Every known profile except the poster."""

    def __init__(self, limit: int = 1000) -> None:
        self.limit = limit

    def candidates(self, db: Session, task: TaskSnapshot) -> list[UUID]:
        return list(
            db.execute(
                select(Profile.id)
                .where(Profile.id != task.created_by)
                .order_by(Profile.created_at.asc())
                .limit(self.limit)
            ).scalars()
        )


def audience_from_name(name: str) -> PostedAudiencePolicy:
    if name == "none":
        return NoAudience()
    if name == "all_users":
        return AllUsersAudience()
    raise ValueError(f"Unknown posted audience policy: '{name}'")


# ---------------------------------------------------------------------------
# Pure policy
# ---------------------------------------------------------------------------


def _dedupe(ids: Iterable[UUID | None]) -> list[UUID]:
    out: list[UUID] = []
    for i in ids:
        if i is not None and i not in out:
            out.append(i)
    return out


def derive_recipients(
    event: NotificationType,
    task: TaskSnapshot,
    *,
    posted_candidates: Sequence[UUID] = (),
) -> list[UUID]:
    if event is NotificationType.TASK_POSTED:
        return [u for u in _dedupe(posted_candidates) if u != task.created_by]
    if event is NotificationType.TASK_ACCEPTED:
        return [task.created_by]
    if event is NotificationType.TASK_UPDATED:
        return _dedupe([task.created_by, task.accepted_by])
    raise ValueError(f"Unsupported event: {event}")


def notification_content(
    event: NotificationType,
    task: TaskSnapshot,
    *,
    accepter_name: str | None = None,
) -> tuple[str, str]:
    if event is NotificationType.TASK_POSTED:
        body = f"{task.title} • {task.store}" if task.store else task.title
        return "New task near you", body
    if event is NotificationType.TASK_ACCEPTED:
        who = accepter_name or "Someone"
        return "Your task was accepted!", f"{who} picked up your task: {task.title}"
    if event is NotificationType.TASK_UPDATED:
        status = task.display_status
        return "Task update", f"{task.title} • {PHASE_LABELS.get(status, status)}"
    raise ValueError(f"Unsupported event: {event}")


def filter_by_preferences(db: Session, user_ids: Sequence[UUID], event: NotificationType) -> list[UUID]:
    """Drop users whose preference flag for this event is off. No row = all on."""
    if not user_ids:
        return []
    flag = PREFERENCE_FLAG[event]
    prefs = {
        p.user_id: p
        for p in db.execute(
            select(NotificationPreference).where(NotificationPreference.user_id.in_(list(user_ids)))
        ).scalars()
    }
    return [u for u in user_ids if u not in prefs or getattr(prefs[u], flag)]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class NotificationFanout:
    def __init__(
        self,
        *,
        posted_audience: PostedAudiencePolicy | None = None,
        profile_cache: TTLCache[UUID, str] | None = None,
    ) -> None:
        self.posted_audience = posted_audience or NoAudience()
        self.profile_cache = profile_cache if profile_cache is not None else TTLCache(300.0)

    def _display_name(self, db: Session, user_id: UUID | None) -> str | None:
        if user_id is None:
            return None

        def load(uid: UUID) -> str | None:
            name = db.execute(select(Profile.display_name).where(Profile.id == uid)).scalar_one_or_none()
            return name or None

        return self.profile_cache.get_or_load(user_id, load)

    def fan_out(self, db: Session, event: NotificationType, task: TaskSnapshot) -> FanoutResult:
        """Persist one row per eligible recipient and build push messages.

        Never raises on store errors: the savepoint is rolled back and an empty
        result returned, leaving the surrounding lifecycle write intact.
        """
        with span("notification_fanout.fan_out", event=event.value, task_id=str(task.id)):
            try:
                with db.begin_nested():
                    result = self._fan_out(db, event, task)
            except SQLAlchemyError:
                logger.exception("Notification fan-out failed for task=%s event=%s", task.id, event.value)
                return FanoutResult()

        logger.info(
            "Fan-out task=%s event=%s: %d notifications, %d push messages",
            task.id,
            event.value,
            len(result.notifications),
            len(result.push_messages),
        )
        return result

    def _fan_out(self, db: Session, event: NotificationType, task: TaskSnapshot) -> FanoutResult:
        posted = self.posted_audience.candidates(db, task) if event is NotificationType.TASK_POSTED else ()
        candidates = derive_recipients(event, task, posted_candidates=posted)
        recipients = filter_by_preferences(db, candidates, event)
        if not recipients:
            return FanoutResult()

        accepter_name = (
            self._display_name(db, task.accepted_by) if event is NotificationType.TASK_ACCEPTED else None
        )
        title, body = notification_content(event, task, accepter_name=accepter_name)
        meta = {"task_id": str(task.id), "status": task.status, "phase": task.phase}

        rows = [
            Notification(
                user_id=user_id,
                type=event.value,
                title=title,
                body=body,
                task_id=task.id,
                meta=dict(meta),
                is_read=False,
            )
            for user_id in recipients
        ]
        db.add_all(rows)
        db.flush()

        subscriptions = db.execute(
            select(PushSubscription).where(PushSubscription.user_id.in_(recipients))
        ).scalars()
        messages = [
            PushMessage(
                to=sub.expo_token,
                title=title,
                body=body,
                data={"taskId": str(task.id), "type": event.value, "status": task.display_status},
                channel_id="default" if sub.platform == PushPlatform.android.value else None,
            )
            for sub in subscriptions
        ]

        return FanoutResult(
            notifications=[NotificationRead.model_validate(r) for r in rows],
            push_messages=messages,
        )
