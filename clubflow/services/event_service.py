"""Event creation and read-side aggregates.

Status changes go through ``moderation``; registration arithmetic through
``registration``. This module only creates events and shapes them for reads.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from clubflow.errors import NotFoundError, ValidationError
from clubflow.models.club import Club
from clubflow.models.event import Event, EventStatus
from clubflow.models.feedback import EventFeedback
from clubflow.models.registration import EventRegistration, RegistrationStatus

logger = logging.getLogger(__name__)


def create_event(
    db: Session,
    club_id: str,
    created_by: str,
    title: str,
    start_datetime: datetime,
    end_datetime: datetime,
    capacity: int = 0,
    description: Optional[str] = None,
    event_type: Optional[str] = None,
    location: Optional[str] = None,
    registration_deadline: Optional[datetime] = None,
) -> Event:
    """Create a pending event. The caller owns the transaction."""
    if capacity < 0:
        raise ValidationError("Capacity cannot be negative")
    if end_datetime < start_datetime:
        raise ValidationError("Event cannot end before it starts")
    if db.get(Club, club_id) is None:
        raise NotFoundError("Club not found")

    event = Event(
        club_id=club_id,
        created_by=created_by,
        title=title,
        description=description,
        event_type=event_type,
        location=location,
        start_datetime=start_datetime,
        end_datetime=end_datetime,
        registration_deadline=registration_deadline,
        capacity=capacity,
        confirmed_count=0,
        status=EventStatus.pending,
    )
    db.add(event)
    db.flush()
    logger.info("Created event '%s' (%s) for club %s", title, event.event_id, club_id)
    return event


def get_event(db: Session, event_id: str) -> Event:
    event = db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found")
    return event


def event_stats(db: Session, event_id: str) -> dict[str, Any]:
    """Live registration counts and rating aggregate for one event."""
    counts = db.execute(
        select(
            func.coalesce(func.sum(case((EventRegistration.status == RegistrationStatus.confirmed, 1), else_=0)), 0),
            func.coalesce(func.sum(case((EventRegistration.status == RegistrationStatus.waitlist, 1), else_=0)), 0),
        ).where(EventRegistration.event_id == event_id)
    ).one()
    rating = db.execute(
        select(func.avg(EventFeedback.rating), func.count(EventFeedback.feedback_id))
        .where(EventFeedback.event_id == event_id)
    ).one()
    return {
        "confirmed_count": int(counts[0]),
        "waitlist_count": int(counts[1]),
        "average_rating": float(rating[0]) if rating[0] is not None else None,
        "feedback_count": int(rating[1]),
    }
