# taskmarket/api/reviews.py

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from taskmarket.api.deps import get_current_user_id, unit_of_work
from taskmarket.api.tasks import LIFECYCLE_ERRORS
from taskmarket.core.db import get_db
from taskmarket.models.review import MAX_RATING, MIN_RATING
from taskmarket.schemas.review import ReviewCreate, ReviewRead, UserRating
from taskmarket.services import review_service

router = APIRouter()


@router.post(
    "/tasks/{task_id}/reviews",
    response_model=ReviewRead,
    status_code=status.HTTP_201_CREATED,
    responses=LIFECYCLE_ERRORS,
)
def create_review(
    task_id: UUID,
    data: ReviewCreate,
    db: Session = Depends(get_db),
    caller_id: UUID = Depends(get_current_user_id),
):
    """Rate the other participant of a completed task. Once per task."""
    with unit_of_work(db):
        review = review_service.create_review(db, task_id=task_id, caller_id=caller_id, payload=data)
    return review


@router.get("/tasks/{task_id}/reviews", response_model=list[ReviewRead], responses={404: LIFECYCLE_ERRORS[404]})
def list_task_reviews(task_id: UUID, db: Session = Depends(get_db)):
    return review_service.list_task_reviews(db, task_id)


@router.get("/users/{user_id}/reviews", response_model=list[ReviewRead])
def list_user_reviews(
    user_id: UUID,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    rating: int | None = Query(None, ge=MIN_RATING, le=MAX_RATING),
    db: Session = Depends(get_db),
):
    return review_service.list_user_reviews(db, user_id, limit=limit, offset=offset, rating=rating)


@router.get("/users/{user_id}/rating", response_model=UserRating)
def get_user_rating(user_id: UUID, db: Session = Depends(get_db)):
    return review_service.get_user_rating(db, user_id)
