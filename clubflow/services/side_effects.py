"""Side-effect pipeline: activity logging and notifications after commit.

Both are best-effort: the business operation that triggered them has already
committed, so a failure here is logged and dropped, never raised and never
retried.
"""
import logging
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session, sessionmaker

from clubflow.models.activity_log import ActivityLogEntry
from clubflow.models.notification import Notification

logger = logging.getLogger(__name__)


class PostCommitHooks:
    """Callbacks queued during a command and run once it has committed."""

    def __init__(self) -> None:
        self._callbacks: list[tuple[Callable[..., Any], tuple, dict]] = []

    def add(self, callback: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self._callbacks.append((callback, args, kwargs))

    def __len__(self) -> int:
        return len(self._callbacks)

    def run(self) -> None:
        callbacks, self._callbacks = self._callbacks, []
        for callback, args, kwargs in callbacks:
            try:
                callback(*args, **kwargs)
            except Exception:
                logger.exception("Post-commit hook %s failed", getattr(callback, "__name__", callback))


class SideEffectPipeline:
    """Writes audit entries and notifications in their own short sessions."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _write(self, row: Any) -> None:
        session: Session = self._session_factory()
        try:
            session.add(row)
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def log_activity(
        self,
        user_id: str,
        action: str,
        entity_type: str,
        entity_id: str,
        details: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Append an activity log entry; returns False when the write was dropped."""
        try:
            self._write(ActivityLogEntry(
                user_id=user_id,
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id),
                details=details,
            ))
        except Exception:
            logger.exception("Dropped activity log entry %s on %s %s", action, entity_type, entity_id)
            return False
        logger.debug("Logged %s on %s %s by %s", action, entity_type, entity_id, user_id)
        return True

    def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        notification_type: str,
        related_entity_type: Optional[str] = None,
        related_entity_id: Optional[str] = None,
    ) -> bool:
        """Create a notification for one user; returns False when it was dropped."""
        try:
            self._write(Notification(
                user_id=user_id,
                title=title,
                message=message,
                notification_type=notification_type,
                related_entity_type=related_entity_type,
                related_entity_id=str(related_entity_id) if related_entity_id is not None else None,
            ))
        except Exception:
            logger.exception("Dropped %s notification for user %s", notification_type, user_id)
            return False
        return True
