"""Moderation state machine for events and news posts.

Transitions are looked up in a fixed table; anything not in the table is a
ConflictError. The write itself is a compare-and-set on the status the
caller read, so two concurrent moderators cannot both win.
"""
import enum
import logging
from datetime import datetime, timezone
from typing import TypeVar

from sqlalchemy import update
from sqlalchemy.orm import Session

from clubflow.errors import ConflictError, NotFoundError
from clubflow.models.event import Event, EventStatus
from clubflow.models.news import NewsPost, NewsStatus

logger = logging.getLogger(__name__)

S = TypeVar("S", EventStatus, NewsStatus)


class ModerationAction(str, enum.Enum):
    approve = "approve"
    reject = "reject"
    complete = "complete"
    cancel = "cancel"


EVENT_TRANSITIONS: dict[tuple[EventStatus, ModerationAction], EventStatus] = {
    (EventStatus.pending, ModerationAction.approve): EventStatus.approved,
    (EventStatus.pending, ModerationAction.reject): EventStatus.rejected,
    # Out-of-band closure, no approval semantics.
    (EventStatus.approved, ModerationAction.complete): EventStatus.completed,
    (EventStatus.pending, ModerationAction.cancel): EventStatus.cancelled,
    (EventStatus.approved, ModerationAction.cancel): EventStatus.cancelled,
}

NEWS_TRANSITIONS: dict[tuple[NewsStatus, ModerationAction], NewsStatus] = {
    (NewsStatus.pending, ModerationAction.approve): NewsStatus.published,
    (NewsStatus.pending, ModerationAction.reject): NewsStatus.rejected,
}


def next_status(table: dict[tuple[S, ModerationAction], S], current: S, action: ModerationAction) -> S:
    try:
        return table[(current, action)]
    except KeyError:
        raise ConflictError(f"Cannot {action.value} an item that is {current.value}") from None


def transition_event(db: Session, event_id: str, action: ModerationAction) -> tuple[Event, EventStatus]:
    """Move an event along the transition table. Returns (event, previous status)."""
    event = db.get(Event, event_id, populate_existing=True)
    if event is None:
        raise NotFoundError("Event not found")

    previous = event.status
    target = next_status(EVENT_TRANSITIONS, previous, action)
    result = db.execute(
        update(Event)
        .where(Event.event_id == event_id, Event.status == previous)
        .values(status=target, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError("Event status changed concurrently. Re-fetch and retry.")
    db.refresh(event)
    logger.info("Event %s: %s -> %s", event_id, previous.value, target.value)
    return event, previous


def transition_news(db: Session, news_id: str, action: ModerationAction) -> tuple[NewsPost, NewsStatus]:
    """Move a news post along the transition table. Returns (post, previous status).

    ``published_at`` is written only on the pending -> published edge.
    """
    post = db.get(NewsPost, news_id, populate_existing=True)
    if post is None:
        raise NotFoundError("News post not found")

    previous = post.status
    target = next_status(NEWS_TRANSITIONS, previous, action)
    now = datetime.now(timezone.utc)
    values = {"status": target, "updated_at": now}
    if target == NewsStatus.published:
        values["published_at"] = now
    result = db.execute(
        update(NewsPost)
        .where(NewsPost.news_id == news_id, NewsPost.status == previous)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError("News post status changed concurrently. Re-fetch and retry.")
    db.refresh(post)
    logger.info("News %s: %s -> %s", news_id, previous.value, target.value)
    return post, previous
