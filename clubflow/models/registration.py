"""EventRegistration ORM model: one row per (event, user)."""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from clubflow.database import Base


class RegistrationStatus(str, enum.Enum):
    confirmed = "confirmed"
    waitlist = "waitlist"
    cancelled = "cancelled"


class EventRegistration(Base):
    __tablename__ = "event_registrations"

    registration_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String(36), ForeignKey("events.event_id"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    status = Column(SAEnum(RegistrationStatus, native_enum=False), nullable=False)
    registered_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    attendance_marked = Column(Boolean, nullable=False, default=False)
    feedback_submitted = Column(Boolean, nullable=False, default=False)

    event = relationship("Event", back_populates="registrations")

    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_registration_event_user"),)
