# taskmarket/services/gamification_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from taskmarket.models.gamification import CreditTransaction, CreditTransactionType, Profile, XpTransaction
from taskmarket.models.task import Task
from taskmarket.schemas.gamification import ProfileProgressRead, XpProgress

logger = logging.getLogger(__name__)

# xp needed to reach level (index + 1)
LEVEL_THRESHOLDS: tuple[int, ...] = (0, 100, 250, 500, 1000, 2000, 3500, 5500, 8000, 12000)
MAX_LEVEL = len(LEVEL_THRESHOLDS)
LEVEL_UP_CREDITS = 500

ACCEPTER_MIN_XP = 10
POSTER_MIN_XP = 5


@dataclass(frozen=True)
class XpAward:
    user_id: UUID
    amount: int
    old_level: int
    new_level: int
    new_xp: int
    credits_awarded: int

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


def level_for_xp(xp: int) -> int:
    level = 1
    for i, threshold in enumerate(LEVEL_THRESHOLDS):
        if xp >= threshold:
            level = i + 1
    return level


def xp_progress(xp: int, level: int) -> XpProgress:
    level = max(1, min(level, MAX_LEVEL))
    current = LEVEL_THRESHOLDS[level - 1]
    if level >= MAX_LEVEL:
        return XpProgress(current_level_xp=current, next_level_xp=current, progress=1.0, xp_to_next=0)

    nxt = LEVEL_THRESHOLDS[level]
    progress = min(1.0, max(0.0, (xp - current) / (nxt - current)))
    return XpProgress(
        current_level_xp=current,
        next_level_xp=nxt,
        progress=progress,
        xp_to_next=max(0, nxt - xp),
    )


def completion_xp(reward_cents: int) -> tuple[int, int]:
    """(accepter_xp, poster_xp) for a completed task."""
    return max(ACCEPTER_MIN_XP, reward_cents // 10), max(POSTER_MIN_XP, reward_cents // 20)


def get_or_create_profile(db: Session, user_id: UUID, *, for_update: bool = False) -> Profile:
    stmt = select(Profile).where(Profile.id == user_id)
    if for_update:
        stmt = stmt.with_for_update()
    profile = db.execute(stmt).scalar_one_or_none()
    if profile is None:
        profile = Profile(id=user_id, display_name="", xp=0, level=1, credits=0)
        db.add(profile)
        db.flush()
    return profile


def award_xp(
    db: Session,
    *,
    user_id: UUID,
    amount: int,
    reason: str,
    task_id: UUID | None = None,
) -> XpAward:
    """Append an XP ledger row and bump the running total (+ level-up credits)."""
    if amount <= 0:
        raise ValueError("XP amount must be positive")

    profile = get_or_create_profile(db, user_id, for_update=True)
    old_level = profile.level
    new_xp = profile.xp + amount
    new_level = level_for_xp(new_xp)
    bonus = (new_level - old_level) * LEVEL_UP_CREDITS if new_level > old_level else 0

    profile.xp = new_xp
    profile.level = new_level
    profile.credits += bonus

    db.add(XpTransaction(user_id=user_id, amount=amount, reason=reason, task_id=task_id))
    if bonus:
        db.add(
            CreditTransaction(
                user_id=user_id,
                amount=bonus,
                transaction_type=CreditTransactionType.earned.value,
                reason="Level up bonus",
            )
        )
        logger.info("User %s leveled up %d -> %d (+%d credits)", user_id, old_level, new_level, bonus)
    db.flush()

    return XpAward(
        user_id=user_id,
        amount=amount,
        old_level=old_level,
        new_level=new_level,
        new_xp=new_xp,
        credits_awarded=bonus,
    )


def award_completion_xp(db: Session, task: Task) -> list[XpAward]:
    """Reward both sides of a completed task. Runs inside the completing transaction."""
    accepter_xp, poster_xp = completion_xp(task.reward_cents)
    awards: list[XpAward] = []
    if task.accepted_by is not None:
        awards.append(
            award_xp(
                db,
                user_id=task.accepted_by,
                amount=accepter_xp,
                reason=f"Completed task: {task.title}",
                task_id=task.id,
            )
        )
    awards.append(
        award_xp(
            db,
            user_id=task.created_by,
            amount=poster_xp,
            reason=f"Task completed: {task.title}",
            task_id=task.id,
        )
    )
    return awards


def list_xp_transactions(db: Session, user_id: UUID, *, limit: int = 20, offset: int = 0) -> list[XpTransaction]:
    return list(
        db.execute(
            select(XpTransaction)
            .where(XpTransaction.user_id == user_id)
            .order_by(XpTransaction.created_at.desc())
            .limit(limit)
            .offset(offset)
        ).scalars()
    )


def list_credit_transactions(
    db: Session, user_id: UUID, *, limit: int = 20, offset: int = 0
) -> list[CreditTransaction]:
    return list(
        db.execute(
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)
            .order_by(CreditTransaction.created_at.desc())
            .limit(limit)
            .offset(offset)
        ).scalars()
    )


def get_profile_progress(db: Session, user_id: UUID) -> ProfileProgressRead:
    profile = db.get(Profile, user_id)
    if profile is None:
        # no ledger activity yet
        return ProfileProgressRead(
            user_id=user_id, display_name="", xp=0, level=1, credits=0, progress=xp_progress(0, 1)
        )
    return ProfileProgressRead(
        user_id=profile.id,
        display_name=profile.display_name,
        xp=profile.xp,
        level=profile.level,
        credits=profile.credits,
        progress=xp_progress(profile.xp, profile.level),
    )


def set_display_name(db: Session, user_id: UUID, display_name: str) -> Profile:
    profile = get_or_create_profile(db, user_id, for_update=True)
    profile.display_name = display_name.strip()
    db.flush()
    return profile
