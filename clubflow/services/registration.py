"""Registration engine: capacity-gated enrollment, cancellation, attendance, feedback.

Capacity is enforced through ``Event.confirmed_count``. A seat is claimed
with a single conditional UPDATE::

    UPDATE events SET confirmed_count = confirmed_count + 1
     WHERE event_id = :id AND confirmed_count < capacity

The database evaluates the check and applies the increment under the row's
write lock, so two concurrent registrations can never both take the last
seat. If the claim fails the registrant is waitlisted. The counter change and
the registration row are written in the same transaction, so a rollback
releases the seat too.

Registration status changes are compare-and-set on the status that was read,
which keeps the counter in step with the rows even when the same user races
themselves.

Limits:
- ``capacity == 0`` means "no seats": every registrant is waitlisted.
- Cancelling a confirmed registration frees the seat but does not promote
  anyone from the waitlist.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clubflow.errors import ConflictError, NotFoundError, ValidationError
from clubflow.models.event import Event
from clubflow.models.feedback import EventFeedback
from clubflow.models.registration import EventRegistration, RegistrationStatus

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


@dataclass
class RegistrationOutcome:
    registration: EventRegistration
    previous_status: Optional[RegistrationStatus]

    @property
    def status(self) -> RegistrationStatus:
        return self.registration.status

    @property
    def changed(self) -> bool:
        return self.previous_status != self.registration.status


def decide_status(confirmed_count: int, capacity: int) -> RegistrationStatus:
    """The capacity rule on its own; ``_claim_seat`` applies it atomically."""
    if confirmed_count < capacity:
        return RegistrationStatus.confirmed
    return RegistrationStatus.waitlist


def _get_event(db: Session, event_id: str) -> Event:
    event = db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found")
    return event


def _find_registration(db: Session, event_id: str, user_id: str, lock: bool = False) -> Optional[EventRegistration]:
    stmt = select(EventRegistration).where(
        EventRegistration.event_id == event_id,
        EventRegistration.user_id == user_id,
    ).execution_options(populate_existing=True)
    if lock:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalar_one_or_none()


def _claim_seat(db: Session, event_id: str) -> bool:
    result = db.execute(
        update(Event)
        .where(Event.event_id == event_id, Event.confirmed_count < Event.capacity)
        .values(confirmed_count=Event.confirmed_count + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _release_seat(db: Session, event_id: str) -> None:
    db.execute(
        update(Event)
        .where(Event.event_id == event_id, Event.confirmed_count > 0)
        .values(confirmed_count=Event.confirmed_count - 1)
        .execution_options(synchronize_session=False)
    )


def _release_seat_if_overcommitted(db: Session, event_id: str) -> bool:
    """Give a seat back only when capacity has dropped below the confirmed count."""
    result = db.execute(
        update(Event)
        .where(Event.event_id == event_id, Event.confirmed_count > Event.capacity)
        .values(confirmed_count=Event.confirmed_count - 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _swap_status(
    db: Session,
    registration: EventRegistration,
    expected: RegistrationStatus,
    target: RegistrationStatus,
    **values,
) -> None:
    result = db.execute(
        update(EventRegistration)
        .where(
            EventRegistration.registration_id == registration.registration_id,
            EventRegistration.status == expected,
        )
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError("Registration changed concurrently. Retry the request.")
    db.refresh(registration)


def _insert_registration(db: Session, event_id: str, user_id: str) -> EventRegistration:
    status = RegistrationStatus.confirmed if _claim_seat(db, event_id) else RegistrationStatus.waitlist
    registration = EventRegistration(event_id=event_id, user_id=user_id, status=status)
    db.add(registration)
    db.flush()
    return registration


def register(db: Session, event_id: str, user_id: str) -> RegistrationOutcome:
    """Register a user, confirming if a seat is free and waitlisting otherwise.

    Re-registering is an upsert on the same row. A confirmed registrant keeps
    their seat unless the event is overcommitted, in which case they move to
    the waitlist; anyone else competes for a seat as if registering fresh.
    A first registration that loses the insert to a concurrent one for the
    same user is handled as a re-registration. The caller owns the transaction.
    """
    _get_event(db, event_id)
    registration = _find_registration(db, event_id, user_id, lock=True)
    if registration is None:
        try:
            # The seat claim and the insert roll back together.
            with db.begin_nested():
                registration = _insert_registration(db, event_id, user_id)
        except IntegrityError:
            registration = _find_registration(db, event_id, user_id, lock=True)
            if registration is None:
                raise
        else:
            logger.info("User %s registered for event %s: %s", user_id, event_id, registration.status.value)
            return RegistrationOutcome(registration=registration, previous_status=None)

    previous = registration.status
    if previous == RegistrationStatus.confirmed:
        if _release_seat_if_overcommitted(db, event_id):
            status = RegistrationStatus.waitlist
        else:
            status = RegistrationStatus.confirmed
    elif _claim_seat(db, event_id):
        status = RegistrationStatus.confirmed
    else:
        status = RegistrationStatus.waitlist

    if status != previous:
        extra = {}
        if previous == RegistrationStatus.cancelled:
            extra["registered_at"] = datetime.now(timezone.utc)
        _swap_status(db, registration, previous, status, **extra)

    logger.info("User %s registered for event %s: %s", user_id, event_id, status.value)
    return RegistrationOutcome(registration=registration, previous_status=previous)


def cancel(db: Session, event_id: str, user_id: str) -> RegistrationOutcome:
    """Cancel a registration. Cancelling twice is a no-op.

    A confirmed seat is returned to the pool; waitlisted registrants are not
    promoted into it.
    """
    _get_event(db, event_id)
    registration = _find_registration(db, event_id, user_id, lock=True)
    if registration is None:
        raise NotFoundError("Registration not found")

    previous = registration.status
    if previous == RegistrationStatus.cancelled:
        return RegistrationOutcome(registration=registration, previous_status=previous)

    _swap_status(db, registration, previous, RegistrationStatus.cancelled)
    if previous == RegistrationStatus.confirmed:
        _release_seat(db, event_id)
    logger.info("User %s cancelled registration for event %s (was %s)", user_id, event_id, previous.value)
    return RegistrationOutcome(registration=registration, previous_status=previous)


def mark_attendance(db: Session, event_id: str, user_id: str) -> tuple[EventRegistration, bool]:
    """Set ``attendance_marked``. Returns (registration, changed)."""
    registration = _find_registration(db, event_id, user_id)
    if registration is None:
        raise NotFoundError("Registration not found")
    if registration.attendance_marked:
        return registration, False

    result = db.execute(
        update(EventRegistration)
        .where(
            EventRegistration.registration_id == registration.registration_id,
            EventRegistration.attendance_marked.is_(False),
        )
        .values(attendance_marked=True)
        .execution_options(synchronize_session=False)
    )
    db.refresh(registration)
    return registration, result.rowcount == 1


def validate_rating(rating) -> int:
    # bool is an int subclass; True is not a rating.
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError("Rating must be an integer")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
    return rating


def _find_feedback(db: Session, event_id: str, user_id: str) -> Optional[EventFeedback]:
    return db.execute(
        select(EventFeedback)
        .where(EventFeedback.event_id == event_id, EventFeedback.user_id == user_id)
        .execution_options(populate_existing=True)
        .with_for_update()
    ).scalar_one_or_none()


def submit_feedback(
    db: Session,
    event_id: str,
    user_id: str,
    rating: int,
    comment: Optional[str] = None,
) -> tuple[EventFeedback, bool]:
    """Upsert feedback for (event, user). Returns (feedback, created).

    No registration is required; if one exists its ``feedback_submitted``
    flag is set.
    """
    validate_rating(rating)
    _get_event(db, event_id)

    feedback = _find_feedback(db, event_id, user_id)
    created = False
    if feedback is None:
        try:
            with db.begin_nested():
                feedback = EventFeedback(event_id=event_id, user_id=user_id, rating=rating, comment=comment)
                db.add(feedback)
                db.flush()
            created = True
        except IntegrityError:
            # A concurrent submission by the same user inserted first.
            feedback = _find_feedback(db, event_id, user_id)
            if feedback is None:
                raise
    if not created:
        feedback.rating = rating
        feedback.comment = comment
        feedback.submitted_at = datetime.now(timezone.utc)
        db.flush()

    db.execute(
        update(EventRegistration)
        .where(
            EventRegistration.event_id == event_id,
            EventRegistration.user_id == user_id,
            EventRegistration.feedback_submitted.is_(False),
        )
        .values(feedback_submitted=True)
        .execution_options(synchronize_session=False)
    )
    logger.info("User %s rated event %s: %d", user_id, event_id, rating)
    return feedback, created
