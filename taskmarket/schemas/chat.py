from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatInboxItem(BaseModel):
    room_id: UUID
    task_id: UUID
    task_title: str
    other_id: UUID | None = None
    other_name: str | None = None
    last_message: str | None = None
    last_message_at: datetime | None = None
    unread_count: int


class ChatMessageCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str = Field(min_length=1, max_length=2000)

    @field_validator("text")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class ChatMessageRead(BaseModel):
    id: UUID
    room_id: UUID
    sender_id: UUID
    text: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
