"""Pydantic schemas for Events."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from clubflow.models.event import EventStatus


class EventCreate(BaseModel):
    club_id: str
    title: str
    description: Optional[str] = None
    event_type: Optional[str] = None
    location: Optional[str] = None
    start_datetime: datetime
    end_datetime: datetime
    registration_deadline: Optional[datetime] = None
    capacity: int = 0


class EventOut(BaseModel):
    event_id: str
    club_id: str
    created_by: str
    title: str
    description: Optional[str] = None
    event_type: Optional[str] = None
    location: Optional[str] = None
    start_datetime: datetime
    end_datetime: datetime
    registration_deadline: Optional[datetime] = None
    capacity: int
    is_registration_open: bool
    status: EventStatus
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class EventDetailOut(EventOut):
    confirmed_count: int = 0
    waitlist_count: int = 0
    average_rating: Optional[float] = None
    feedback_count: int = 0
