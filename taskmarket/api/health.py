# taskmarket/api/health.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.orm import Session

from taskmarket.core.db import get_db

router = APIRouter()


@router.get("/health")
def health(request: Request, db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    sender = request.app.state.push_sender
    return {
        "status": "ok",
        "push": {"sent_total": sender.sent_total, "failed_total": sender.failed_total},
    }
