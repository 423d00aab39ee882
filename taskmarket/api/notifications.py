# taskmarket/api/notifications.py

import asyncio
import logging
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from taskmarket.api.deps import get_current_user_id, parse_user_id, unit_of_work
from taskmarket.core.db import get_db
from taskmarket.models.notification import NotificationType
from taskmarket.schemas.notification import (
    MarkAllReadResponse,
    NotificationPage,
    NotificationRead,
    PreferencesRead,
    PreferencesUpdate,
    PushSubscriptionCreate,
    PushSubscriptionRead,
    UnreadCount,
)
from taskmarket.services import notification_service
from taskmarket.services.notification_feed import Subscription
from taskmarket.services.notification_service import NotificationNotFound

logger = logging.getLogger(__name__)

router = APIRouter()

# how long one blocking wait on the feed may hold a worker thread
STREAM_POLL_SECONDS = 0.5
WS_POLICY_VIOLATION = 1008


@router.get("/notifications", response_model=NotificationPage)
def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    cursor: datetime | None = Query(None, description="created_at of the last item already seen"),
    type: NotificationType | None = Query(None),
    is_read: bool | None = Query(None),
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    return notification_service.list_notifications(
        db, user_id, limit=limit, cursor=cursor, type=type, is_read=is_read
    )


@router.get("/notifications/unread-count", response_model=UnreadCount)
def unread_count(db: Session = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
    return UnreadCount(unread=notification_service.unread_count(db, user_id))


@router.post("/notifications/read-all", response_model=MarkAllReadResponse)
def mark_all_read(db: Session = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
    with unit_of_work(db):
        updated = notification_service.mark_all_read(db, user_id)
    return MarkAllReadResponse(updated=updated)


@router.post("/notifications/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    try:
        with unit_of_work(db):
            row = notification_service.mark_read(db, user_id, notification_id)
    except NotificationNotFound:
        raise HTTPException(status_code=404, detail="Notification not found")
    return row


@router.get("/notification-preferences", response_model=PreferencesRead)
def get_preferences(db: Session = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
    return notification_service.get_preferences(db, user_id)


@router.patch("/notification-preferences", response_model=PreferencesRead)
def update_preferences(
    data: PreferencesUpdate,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    with unit_of_work(db):
        prefs = notification_service.update_preferences(db, user_id, data)
    return prefs


@router.put("/push-subscriptions", response_model=PushSubscriptionRead)
def register_push_token(
    data: PushSubscriptionCreate,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    with unit_of_work(db):
        sub = notification_service.register_push_token(db, user_id, data)
    return sub


@router.delete("/push-subscriptions/{device_id}", status_code=status.HTTP_204_NO_CONTENT)
def unregister_push_token(
    device_id: str,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    with unit_of_work(db):
        removed = notification_service.unregister_push_token(db, user_id, device_id)
    if not removed:
        raise HTTPException(status_code=404, detail="Push subscription not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# -----------------------------------------------------------------------------
# Realtime stream
# -----------------------------------------------------------------------------


async def _pump(websocket: WebSocket, sub: Subscription) -> None:
    while not sub.cancelled:
        event = await run_in_threadpool(sub.get, STREAM_POLL_SECONDS)
        if event is not None:
            await websocket.send_json(event.model_dump(mode="json"))


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/notifications/stream")
async def notifications_stream(websocket: WebSocket):
    """Newly created notification rows for the caller, one JSON object per message.

    Identity comes from the X-User-Id header or the ``user_id`` query parameter.
    Best effort: clients still poll /notifications as a fallback.
    """
    user_id = parse_user_id(websocket.headers.get("x-user-id") or websocket.query_params.get("user_id"))
    if user_id is None:
        await websocket.close(code=WS_POLICY_VIOLATION)
        return

    await websocket.accept()
    feed = websocket.app.state.feed
    with feed.subscribe(user_id) as sub:
        logger.info("Realtime subscriber attached for user %s", user_id)
        pump = asyncio.create_task(_pump(websocket, sub))
        try:
            await _wait_for_disconnect(websocket)
        finally:
            # releases the pump's pending read so it returns on its own
            sub.cancel()
            try:
                await pump
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.warning("Realtime stream for user %s ended: %s", user_id, e)
    logger.info("Realtime subscriber detached for user %s", user_id)
