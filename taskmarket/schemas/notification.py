from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from taskmarket.models.notification import NotificationType, PushPlatform


class NotificationRead(BaseModel):
    """Also the payload delivered on the realtime stream."""

    id: UUID
    user_id: UUID
    type: NotificationType
    title: str
    body: str
    task_id: UUID | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationPage(BaseModel):
    items: list[NotificationRead]
    has_more: bool
    next_cursor: datetime | None = None


class UnreadCount(BaseModel):
    unread: int


class MarkAllReadResponse(BaseModel):
    updated: int


class PreferencesRead(BaseModel):
    user_id: UUID
    new_tasks: bool = True
    task_accepted: bool = True
    task_updates: bool = True

    model_config = ConfigDict(from_attributes=True)


class PreferencesUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    new_tasks: bool | None = None
    task_accepted: bool | None = None
    task_updates: bool | None = None


class PushSubscriptionCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    device_id: str = Field(min_length=1, max_length=200)
    expo_token: str = Field(min_length=1, examples=["ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]"])
    platform: PushPlatform


class PushMessage(BaseModel):
    """One outbound message in the push relay's wire shape."""

    model_config = ConfigDict(populate_by_name=True)

    to: str
    title: str
    body: str
    data: dict[str, Any] = Field(default_factory=dict)
    sound: str = "default"
    channel_id: str | None = Field(default=None, alias="channelId")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PushSubscriptionRead(BaseModel):
    user_id: UUID
    device_id: str
    platform: PushPlatform
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
