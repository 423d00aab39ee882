from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class XpProgress(BaseModel):
    current_level_xp: int
    next_level_xp: int
    progress: float
    xp_to_next: int


class ProfileProgressRead(BaseModel):
    user_id: UUID
    display_name: str
    xp: int
    level: int
    credits: int
    progress: XpProgress


class XpTransactionRead(BaseModel):
    id: UUID
    user_id: UUID
    amount: int
    reason: str
    task_id: UUID | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreditTransactionRead(BaseModel):
    id: UUID
    user_id: UUID
    amount: int
    transaction_type: str
    reason: str
    task_id: UUID | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    display_name: str = Field(min_length=1, max_length=100)
