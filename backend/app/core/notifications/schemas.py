import uuid
from datetime import datetime
from typing import Literal
from pydantic import BaseModel, Field


class NotificationCreate(BaseModel):
    type: Literal["timesheet", "system"] = "timesheet"
    kind: str | None = None
    title: str = Field(..., min_length=1, max_length=500)
    message: str = Field(..., min_length=1)
    related_cycle_id: str | None = None


class NotificationRead(BaseModel):
    model_config = {"from_attributes": True}
    id: uuid.UUID
    type: str
    kind: str | None
    title: str
    message: str
    related_cycle_id: str | None
    is_read: bool
    created_at: datetime
