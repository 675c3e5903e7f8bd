"""ActivityLogEntry ORM model: append-only audit trail."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String

from clubflow.database import Base


class ActivityLogEntry(Base):
    __tablename__ = "activity_log"

    log_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    action = Column(String(100), nullable=False)  # event_registered, news_published, ...
    entity_type = Column(String(30), nullable=False)  # event, news, club, user
    entity_id = Column(String(36), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True)
