"""Pydantic schemas for registrations, attendance and feedback."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, StrictInt

from clubflow.models.registration import RegistrationStatus


class RegistrationOut(BaseModel):
    registration_id: str
    event_id: str
    user_id: str
    status: RegistrationStatus
    registered_at: datetime
    attendance_marked: bool
    feedback_submitted: bool

    model_config = {"from_attributes": True}


class RegistrantOut(RegistrationOut):
    student_id: str
    first_name: str
    last_name: str
    email: str


class AttendancePayload(BaseModel):
    user_id: str


class FeedbackCreate(BaseModel):
    # Strict so JSON true or "3" is not coerced; the range is checked by the registration engine.
    rating: StrictInt
    comment: Optional[str] = None


class FeedbackOut(BaseModel):
    feedback_id: str
    event_id: str
    user_id: str
    rating: int
    comment: Optional[str] = None
    submitted_at: datetime

    model_config = {"from_attributes": True}


class UserEventOut(BaseModel):
    """One of a user's active registrations, with the event and club it belongs to."""

    event_id: str
    title: str
    start_datetime: datetime
    location: Optional[str] = None
    club_name: str
    club_code: str
    status: RegistrationStatus
    registered_at: datetime
    attendance_marked: bool
