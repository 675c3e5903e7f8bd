"""Event ORM model.

``confirmed_count`` caches the number of confirmed registrations. It is only
ever changed by conditional UPDATE statements in the registration engine, so
the capacity check and the seat claim happen in one atomic write.
"""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from clubflow.database import Base


class EventStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    completed = "completed"
    cancelled = "cancelled"


class Event(Base):
    __tablename__ = "events"

    event_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    club_id = Column(String(36), ForeignKey("clubs.club_id"), nullable=False)
    created_by = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    event_type = Column(String(50), nullable=True)  # workshop, seminar, social, ...
    location = Column(String(255), nullable=True)
    start_datetime = Column(DateTime(timezone=True), nullable=False)
    end_datetime = Column(DateTime(timezone=True), nullable=False)
    registration_deadline = Column(DateTime(timezone=True), nullable=True)
    capacity = Column(Integer, nullable=False, default=0)
    confirmed_count = Column(Integer, nullable=False, default=0)
    is_registration_open = Column(Boolean, nullable=False, default=True)
    status = Column(SAEnum(EventStatus, native_enum=False), nullable=False, default=EventStatus.pending)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    registrations = relationship("EventRegistration", back_populates="event", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("capacity >= 0", name="check_capacity_non_negative"),
        CheckConstraint("confirmed_count >= 0", name="check_confirmed_count_non_negative"),
    )
