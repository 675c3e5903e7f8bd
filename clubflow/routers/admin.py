"""Administrator review queues."""
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from clubflow.database import get_db
from clubflow.models.event import Event, EventStatus
from clubflow.models.news import NewsPost, NewsStatus
from clubflow.models.user import Role
from clubflow.schemas.event import EventOut
from clubflow.schemas.news import NewsOut
from clubflow.security import require_roles

router = APIRouter(dependencies=[Depends(require_roles(Role.system_admin))])


@router.get("/events/pending", response_model=list[EventOut])
def pending_events(db: Session = Depends(get_db)):
    """Events awaiting review, newest first."""
    return db.execute(
        select(Event).where(Event.status == EventStatus.pending).order_by(Event.created_at.desc())
    ).scalars().all()


@router.get("/news/pending", response_model=list[NewsOut])
def pending_news(db: Session = Depends(get_db)):
    """News posts awaiting review, newest first."""
    return db.execute(
        select(NewsPost).where(NewsPost.status == NewsStatus.pending).order_by(NewsPost.created_at.desc())
    ).scalars().all()
