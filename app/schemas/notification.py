from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class NotificationOut(BaseModel):
    id: str
    traffic_job_id: Optional[str]
    type: str
    title: str
    message: str
    metadata: Optional[dict] = Field(default=None, validation_alias="metadata_")
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationInbox(BaseModel):
    notifications: list[NotificationOut]
    unread_count: int
