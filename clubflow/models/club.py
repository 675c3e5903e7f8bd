"""Club ORM model."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.sql import func

from clubflow.database import Base


class Club(Base):
    __tablename__ = "clubs"

    club_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    club_name = Column(String(150), nullable=False)
    club_code = Column(String(20), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    email = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
