# taskmarket/api/gamification.py

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from taskmarket.api.deps import get_current_user_id, get_fanout, unit_of_work
from taskmarket.core.db import get_db
from taskmarket.schemas.gamification import (
    CreditTransactionRead,
    ProfileProgressRead,
    ProfileUpdate,
    XpTransactionRead,
)
from taskmarket.services import gamification_service
from taskmarket.services.notification_fanout import NotificationFanout

router = APIRouter()


@router.get("/users/{user_id}/progress", response_model=ProfileProgressRead)
def get_profile_progress(user_id: UUID, db: Session = Depends(get_db)):
    return gamification_service.get_profile_progress(db, user_id)


@router.put("/users/me/profile", response_model=ProfileProgressRead)
def update_profile(
    data: ProfileUpdate,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
    fanout: NotificationFanout = Depends(get_fanout),
):
    with unit_of_work(db):
        gamification_service.set_display_name(db, user_id, data.display_name)
    # display names are cached for notification text
    fanout.profile_cache.invalidate(user_id)
    return gamification_service.get_profile_progress(db, user_id)


@router.get("/users/me/xp-transactions", response_model=list[XpTransactionRead])
def list_xp_transactions(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    return gamification_service.list_xp_transactions(db, user_id, limit=limit, offset=offset)


@router.get("/users/me/credit-transactions", response_model=list[CreditTransactionRead])
def list_credit_transactions(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    return gamification_service.list_credit_transactions(db, user_id, limit=limit, offset=offset)
