"""Club membership and moderator assignment ORM models."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, UniqueConstraint

from clubflow.database import Base


class ClubMember(Base):
    __tablename__ = "club_members"

    membership_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    club_id = Column(String(36), ForeignKey("clubs.club_id"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    member_role = Column(String(30), nullable=False, default="member")
    # Leaving a club deactivates the row; rejoining reactivates it.
    is_active = Column(Boolean, nullable=False, default=True)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (UniqueConstraint("club_id", "user_id", name="uq_club_member"),)


class ClubModerator(Base):
    __tablename__ = "club_moderators"

    assignment_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    club_id = Column(String(36), ForeignKey("clubs.club_id"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    assigned_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (UniqueConstraint("club_id", "user_id", name="uq_club_moderator"),)
