"""Registration, attendance and feedback routes for events."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from clubflow.database import get_db
from clubflow.dependencies import get_coordinator
from clubflow.models.feedback import EventFeedback
from clubflow.models.registration import EventRegistration
from clubflow.models.user import Role, User
from clubflow.schemas.registration import (
    AttendancePayload,
    FeedbackCreate,
    FeedbackOut,
    RegistrantOut,
    RegistrationOut,
)
from clubflow.security import Identity, optional_identity, require_roles
from clubflow.services import event_service
from clubflow.services.coordinator import WorkflowCoordinator

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/{event_id}/register", response_model=RegistrationOut, status_code=status.HTTP_201_CREATED)
def register_for_event(
    event_id: str,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    """Register the caller: confirmed while seats remain, waitlisted after."""
    return coordinator.register(identity, event_id)


@router.delete("/{event_id}/register", response_model=RegistrationOut)
def cancel_registration(
    event_id: str,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    """Cancel the caller's registration."""
    return coordinator.cancel_registration(identity, event_id)


@router.get("/{event_id}/registrations", response_model=list[RegistrantOut])
def list_registrations(
    event_id: str,
    _: Identity = Depends(require_roles(Role.club_moderator, Role.system_admin)),
    db: Session = Depends(get_db),
):
    """All registrations for an event in registration order."""
    event_service.get_event(db, event_id)
    rows = db.execute(
        select(EventRegistration, User)
        .join(User, User.user_id == EventRegistration.user_id)
        .where(EventRegistration.event_id == event_id)
        .order_by(EventRegistration.registered_at)
    ).all()
    return [
        RegistrantOut(
            **RegistrationOut.model_validate(reg).model_dump(),
            student_id=user.student_id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
        )
        for reg, user in rows
    ]


@router.post("/{event_id}/attendance", response_model=RegistrationOut)
def mark_attendance(
    event_id: str,
    payload: AttendancePayload,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    """Mark a registrant as attended (club moderator or system admin)."""
    return coordinator.mark_attendance(identity, event_id, payload.user_id)


@router.post("/{event_id}/feedback", response_model=FeedbackOut, status_code=status.HTTP_201_CREATED)
def submit_feedback(
    event_id: str,
    payload: FeedbackCreate,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    """Rate an event 1-5. Resubmitting replaces the earlier rating."""
    return coordinator.submit_feedback(identity, event_id, payload.rating, payload.comment)


@router.get("/{event_id}/feedback", response_model=list[FeedbackOut])
def list_feedback(event_id: str, db: Session = Depends(get_db)):
    event_service.get_event(db, event_id)
    return db.execute(
        select(EventFeedback)
        .where(EventFeedback.event_id == event_id)
        .order_by(EventFeedback.submitted_at.desc())
    ).scalars().all()
