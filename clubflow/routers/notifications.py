"""Notification inbox routes for the authenticated user."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from clubflow.database import get_db
from clubflow.schemas.activity import NotificationOut, UnreadCountOut
from clubflow.security import Identity, require_identity
from clubflow.services import notification_service

router = APIRouter()


@router.get("/", response_model=list[NotificationOut])
def list_notifications(identity: Identity = Depends(require_identity), db: Session = Depends(get_db)):
    return notification_service.list_notifications(db, identity.user_id)


@router.get("/unread-count", response_model=UnreadCountOut)
def unread_count(identity: Identity = Depends(require_identity), db: Session = Depends(get_db)):
    return {"unread_count": notification_service.unread_count(db, identity.user_id)}


@router.post("/mark-all-read")
def mark_all_read(identity: Identity = Depends(require_identity), db: Session = Depends(get_db)):
    return {"updated": notification_service.mark_all_read(db, identity.user_id)}


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(
    notification_id: str,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
):
    return notification_service.mark_read(db, notification_id, identity.user_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: str,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
):
    notification_service.delete_notification(db, notification_id, identity.user_id)
