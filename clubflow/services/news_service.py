"""News post creation."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from clubflow.errors import NotFoundError
from clubflow.models.club import Club
from clubflow.models.news import NewsPost, NewsStatus

logger = logging.getLogger(__name__)


def create_news(
    db: Session,
    club_id: str,
    created_by: str,
    title: str,
    content: str,
    category: Optional[str] = None,
    is_featured: bool = False,
) -> NewsPost:
    """Create a pending news post. The caller owns the transaction."""
    if db.get(Club, club_id) is None:
        raise NotFoundError("Club not found")

    post = NewsPost(
        club_id=club_id,
        created_by=created_by,
        title=title,
        content=content,
        category=category,
        is_featured=is_featured,
        status=NewsStatus.pending,
    )
    db.add(post)
    db.flush()
    logger.info("Created news post '%s' (%s) for club %s", title, post.news_id, club_id)
    return post
