from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from taskmarket.models.review import MAX_RATING, MIN_RATING


class ReviewCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rating: int = Field(ge=MIN_RATING, le=MAX_RATING, examples=[5])
    comment: str = Field(default="", max_length=1000)


class ReviewRead(BaseModel):
    id: UUID
    task_id: UUID
    reviewer_id: UUID
    reviewee_id: UUID
    rating: int
    comment: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserRating(BaseModel):
    user_id: UUID
    average_rating: float
    ratings_count: int
    # "1".."5" -> count
    ratings_breakdown: dict[str, int]
