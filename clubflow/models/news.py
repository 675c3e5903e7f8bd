"""NewsPost ORM model."""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Enum as SAEnum, ForeignKey, String, Text
from sqlalchemy.sql import func

from clubflow.database import Base


class NewsStatus(str, enum.Enum):
    pending = "pending"
    published = "published"
    rejected = "rejected"


class NewsPost(Base):
    __tablename__ = "news"

    news_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    club_id = Column(String(36), ForeignKey("clubs.club_id"), nullable=False)
    created_by = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String(50), nullable=True)  # achievement, announcement, update, ...
    is_featured = Column(Boolean, nullable=False, default=False)
    status = Column(SAEnum(NewsStatus, native_enum=False), nullable=False, default=NewsStatus.pending)
    # Written once, on the pending -> published edge.
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
