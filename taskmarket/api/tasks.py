# taskmarket/api/tasks.py

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from taskmarket.api.deps import (
    dispatch_committed,
    get_current_user_id,
    get_fanout,
    get_feed,
    get_optional_user_id,
    get_push_sender,
    unit_of_work,
)
from taskmarket.core.db import get_db
from taskmarket.models.task import Task
from taskmarket.schemas.error import ErrorResponse
from taskmarket.schemas.task import (
    AcceptTaskResponse,
    CancelTaskRequest,
    StatusHistoryItem,
    StatusUpdateRequest,
    TaskCreate,
    TaskRead,
)
from taskmarket.services import task_service
from taskmarket.services.moderation import ContentRejected
from taskmarket.services.notification_fanout import NotificationFanout
from taskmarket.services.notification_feed import NotificationFeed
from taskmarket.services.push_sender import PushSender
from taskmarket.services.task_acceptance_service import accept_task
from taskmarket.services.task_transition_service import advance_phase, cancel_task

router = APIRouter()

LIFECYCLE_ERRORS = {
    401: {"model": ErrorResponse, "description": "Caller is not authenticated"},
    403: {"model": ErrorResponse, "description": "Caller may not perform this operation"},
    404: {"model": ErrorResponse, "description": "Task not found"},
    409: {"model": ErrorResponse, "description": "Lost the race, invalid transition or task closed"},
    503: {"model": ErrorResponse, "description": "Store unavailable, safe to retry"},
}


def to_read(task: Task, viewer_id: UUID | None) -> TaskRead:
    """The handoff code is only shown to the two participants."""
    read = TaskRead.model_validate(task)
    if viewer_id is None or viewer_id not in (task.created_by, task.accepted_by):
        read = read.model_copy(update={"user_accept_code": None})
    return read


@router.post("/tasks", response_model=TaskRead, status_code=status.HTTP_201_CREATED, responses=LIFECYCLE_ERRORS)
def create_task(
    data: TaskCreate,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    caller_id: UUID = Depends(get_current_user_id),
    fanout: NotificationFanout = Depends(get_fanout),
    push_sender: PushSender = Depends(get_push_sender),
    feed: NotificationFeed = Depends(get_feed),
):
    try:
        with unit_of_work(db):
            task, result = task_service.create_task(db, caller_id=caller_id, payload=data, fanout=fanout)
    except ContentRejected as e:
        raise HTTPException(
            status_code=422,
            detail={"message": e.result.message, "flagged": e.result.flagged},
        )

    dispatch_committed(result, background=background, push_sender=push_sender, feed=feed)
    return to_read(task, caller_id)


@router.get("/tasks/open", response_model=list[TaskRead])
def list_open_tasks(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    viewer_id: UUID | None = Depends(get_optional_user_id),
):
    return [to_read(t, viewer_id) for t in task_service.list_open_tasks(db, limit=limit, offset=offset)]


@router.get("/users/{user_id}/tasks/posted", response_model=list[TaskRead])
def list_user_posted_tasks(
    user_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    viewer_id: UUID | None = Depends(get_optional_user_id),
):
    tasks = task_service.list_user_posted_tasks(db, user_id, limit=limit, offset=offset)
    return [to_read(t, viewer_id) for t in tasks]


@router.get("/users/{user_id}/tasks/accepted", response_model=list[TaskRead])
def list_user_accepted_tasks(
    user_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    viewer_id: UUID | None = Depends(get_optional_user_id),
):
    tasks = task_service.list_user_accepted_tasks(db, user_id, limit=limit, offset=offset)
    return [to_read(t, viewer_id) for t in tasks]


@router.get("/tasks/{task_id}", response_model=TaskRead, responses={404: LIFECYCLE_ERRORS[404]})
def get_task(
    task_id: UUID,
    db: Session = Depends(get_db),
    viewer_id: UUID | None = Depends(get_optional_user_id),
):
    return to_read(task_service.get_task(db, task_id), viewer_id)


@router.get(
    "/tasks/{task_id}/status-history",
    response_model=list[StatusHistoryItem],
    responses={404: LIFECYCLE_ERRORS[404]},
)
def list_status_history(task_id: UUID, db: Session = Depends(get_db)):
    """Timeline of lifecycle writes, oldest first."""
    return task_service.list_status_history(db, task_id)


@router.post("/tasks/{task_id}/accept", response_model=AcceptTaskResponse, responses=LIFECYCLE_ERRORS)
def accept(
    task_id: UUID,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    caller_id: UUID = Depends(get_current_user_id),
    fanout: NotificationFanout = Depends(get_fanout),
    push_sender: PushSender = Depends(get_push_sender),
    feed: NotificationFeed = Depends(get_feed),
):
    """Exactly one caller wins an open task.

    A timed-out request has an unknown outcome: re-fetch the task instead of
    retrying.
    """
    with unit_of_work(db):
        result = accept_task(db, task_id=task_id, caller_id=caller_id, fanout=fanout)

    dispatch_committed(result.fanout, background=background, push_sender=push_sender, feed=feed)
    return AcceptTaskResponse(
        task=to_read(result.task, caller_id),
        acceptance_code=result.acceptance_code,
        chat_room_id=result.chat_room_id,
    )


@router.post("/tasks/{task_id}/status", response_model=TaskRead, responses=LIFECYCLE_ERRORS)
def update_task_status(
    task_id: UUID,
    data: StatusUpdateRequest,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    caller_id: UUID = Depends(get_current_user_id),
    fanout: NotificationFanout = Depends(get_fanout),
    push_sender: PushSender = Depends(get_push_sender),
    feed: NotificationFeed = Depends(get_feed),
):
    with unit_of_work(db):
        result = advance_phase(
            db,
            task_id=task_id,
            caller_id=caller_id,
            new_phase=data.phase,
            note=data.note,
            photo_url=data.photo_url,
            fanout=fanout,
        )

    dispatch_committed(result.fanout, background=background, push_sender=push_sender, feed=feed)
    return to_read(result.task, caller_id)


@router.post("/tasks/{task_id}/cancel", response_model=TaskRead, responses=LIFECYCLE_ERRORS)
def cancel(
    task_id: UUID,
    background: BackgroundTasks,
    data: CancelTaskRequest | None = None,
    db: Session = Depends(get_db),
    caller_id: UUID = Depends(get_current_user_id),
    fanout: NotificationFanout = Depends(get_fanout),
    push_sender: PushSender = Depends(get_push_sender),
    feed: NotificationFeed = Depends(get_feed),
):
    with unit_of_work(db):
        result = cancel_task(
            db,
            task_id=task_id,
            caller_id=caller_id,
            note=data.note if data else None,
            fanout=fanout,
        )

    dispatch_committed(result.fanout, background=background, push_sender=push_sender, feed=feed)
    return to_read(result.task, caller_id)
