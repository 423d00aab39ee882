# taskmarket/schemas/task.py

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from taskmarket.models.task import ModerationStatus, TaskCategory, TaskPhase, TaskStatus, TaskUrgency


class StrictBaseModel(BaseModel):
    """Request models reject unknown fields."""

    model_config = ConfigDict(extra="forbid")


class TaskCreate(StrictBaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    category: TaskCategory = TaskCategory.food
    urgency: TaskUrgency = TaskUrgency.medium
    store: str = Field(min_length=1, max_length=200)
    dropoff_address: str = Field(min_length=1, max_length=500)
    dropoff_instructions: str = Field(default="", max_length=1000)
    reward_cents: int = Field(gt=0, description="Reward in minor currency units", examples=[500])
    estimated_minutes: int = Field(gt=0, examples=[20])

    @field_validator("title", "store", "dropoff_address")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class TaskRead(BaseModel):
    id: UUID
    title: str
    description: str
    category: TaskCategory
    urgency: TaskUrgency
    store: str
    dropoff_address: str
    dropoff_instructions: str
    reward_cents: int
    estimated_minutes: int

    status: TaskStatus
    task_current_status: TaskPhase | None = None

    created_by: UUID
    accepted_by: UUID | None = None
    accepted_at: datetime | None = None
    # only filled in for the poster and the accepter
    user_accept_code: str | None = None

    last_status_update: datetime | None = None
    moderation_status: ModerationStatus

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AcceptTaskResponse(BaseModel):
    task: TaskRead
    acceptance_code: str = Field(..., description="Fixed-width code for in-person handoff", examples=["48213"])
    chat_room_id: UUID


class StatusUpdateRequest(StrictBaseModel):
    phase: str = Field(
        ...,
        description="Next delivery phase: picked_up, on_the_way, delivered, completed",
        examples=["picked_up"],
    )
    note: str | None = Field(default=None, max_length=1000)
    photo_url: str | None = Field(default=None, max_length=2000)


class StatusHistoryItem(BaseModel):
    id: UUID
    task_id: UUID
    from_status: str | None = None
    status: str
    changed_by: UUID
    note: str | None = None
    photo_url: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CancelTaskRequest(StrictBaseModel):
    note: str | None = Field(default=None, max_length=1000)
