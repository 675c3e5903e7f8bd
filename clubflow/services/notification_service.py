"""Notification inbox operations: read, mark read, delete.

Every operation is scoped to the owner; another user's notification is
reported as missing rather than forbidden.
"""
import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from clubflow.errors import NotFoundError
from clubflow.models.notification import Notification

logger = logging.getLogger(__name__)

INBOX_LIMIT = 50


def list_notifications(db: Session, user_id: str, limit: int = INBOX_LIMIT) -> list[Notification]:
    return list(
        db.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .limit(limit)
        ).scalars()
    )


def unread_count(db: Session, user_id: str) -> int:
    return db.execute(
        select(func.count(Notification.notification_id))
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
    ).scalar_one()


def _owned(db: Session, notification_id: str, user_id: str) -> Notification:
    notification = db.execute(
        select(Notification).where(
            Notification.notification_id == notification_id,
            Notification.user_id == user_id,
        )
    ).scalar_one_or_none()
    if notification is None:
        raise NotFoundError("Notification not found")
    return notification


def mark_read(db: Session, notification_id: str, user_id: str) -> Notification:
    notification = _owned(db, notification_id, user_id)
    if not notification.is_read:
        notification.is_read = True
        db.commit()
        db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: str) -> int:
    result = db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    logger.info("Marked %d notifications read for user %s", result.rowcount, user_id)
    return result.rowcount


def delete_notification(db: Session, notification_id: str, user_id: str) -> None:
    _owned(db, notification_id, user_id)
    db.execute(
        delete(Notification).where(
            Notification.notification_id == notification_id,
            Notification.user_id == user_id,
        )
    )
    db.commit()
    logger.info("Deleted notification %s for user %s", notification_id, user_id)
