"""Event API routes: lifecycle commands go through the workflow coordinator."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from clubflow.database import get_db
from clubflow.dependencies import get_coordinator
from clubflow.models.event import Event, EventStatus
from clubflow.schemas.event import EventCreate, EventDetailOut, EventOut
from clubflow.security import Identity, optional_identity
from clubflow.services import event_service
from clubflow.services.coordinator import WorkflowCoordinator

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def create_event(
    payload: EventCreate,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    """Create an event. It stays pending until an administrator approves it."""
    return coordinator.create_event(identity, **payload.model_dump())


@router.get("/", response_model=list[EventOut])
def list_events(
    club_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """List approved events, newest start first."""
    query = select(Event).where(Event.status == EventStatus.approved)
    if club_id:
        query = query.where(Event.club_id == club_id)
    return db.execute(query.order_by(Event.start_datetime.desc())).scalars().all()


@router.get("/{event_id}", response_model=EventDetailOut)
def get_event(event_id: str, db: Session = Depends(get_db)):
    """Fetch one event with live registration counts and rating."""
    event = event_service.get_event(db, event_id)
    detail = EventOut.model_validate(event).model_dump()
    detail.update(event_service.event_stats(db, event_id))
    return detail


@router.post("/{event_id}/approve", response_model=EventOut)
def approve_event(
    event_id: str,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    """Approve a pending event (system admin)."""
    return coordinator.approve_event(identity, event_id)


@router.post("/{event_id}/reject", response_model=EventOut)
def reject_event(
    event_id: str,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    """Reject a pending event (system admin)."""
    return coordinator.reject_event(identity, event_id)


@router.post("/{event_id}/complete", response_model=EventOut)
def complete_event(
    event_id: str,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    return coordinator.complete_event(identity, event_id)


@router.post("/{event_id}/cancel", response_model=EventOut)
def cancel_event(
    event_id: str,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    return coordinator.cancel_event(identity, event_id)
