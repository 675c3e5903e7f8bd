"""News API routes: moderation commands go through the workflow coordinator."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from clubflow.database import get_db
from clubflow.dependencies import get_coordinator
from clubflow.errors import NotFoundError
from clubflow.models.news import NewsPost, NewsStatus
from clubflow.schemas.news import NewsCreate, NewsOut
from clubflow.security import Identity, optional_identity
from clubflow.services.coordinator import WorkflowCoordinator

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=NewsOut, status_code=status.HTTP_201_CREATED)
def create_news(
    payload: NewsCreate,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    """Submit a news post for review."""
    return coordinator.create_news(identity, **payload.model_dump())


@router.get("/", response_model=list[NewsOut])
def list_news(
    club_id: Optional[str] = Query(None),
    featured: bool = Query(False),
    db: Session = Depends(get_db),
):
    """Published news, most recently published first."""
    query = select(NewsPost).where(NewsPost.status == NewsStatus.published)
    if club_id:
        query = query.where(NewsPost.club_id == club_id)
    if featured:
        query = query.where(NewsPost.is_featured.is_(True))
    return db.execute(query.order_by(NewsPost.published_at.desc())).scalars().all()


@router.get("/{news_id}", response_model=NewsOut)
def get_news(news_id: str, db: Session = Depends(get_db)):
    post = db.get(NewsPost, news_id)
    if post is None or post.status != NewsStatus.published:
        raise NotFoundError("News post not found")
    return post


@router.post("/{news_id}/approve", response_model=NewsOut)
def approve_news(
    news_id: str,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    """Publish a pending post (system admin)."""
    return coordinator.approve_news(identity, news_id)


@router.post("/{news_id}/reject", response_model=NewsOut)
def reject_news(
    news_id: str,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    """Reject a pending post (system admin)."""
    return coordinator.reject_news(identity, news_id)
