"""Pydantic schemas for the activity log and notifications."""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class ActivityLogOut(BaseModel):
    log_id: str
    user_id: str
    action: str
    entity_type: str
    entity_id: str
    details: Optional[dict[str, Any]] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationOut(BaseModel):
    notification_id: str
    title: str
    message: str
    notification_type: str
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class UnreadCountOut(BaseModel):
    unread_count: int
