"""Pydantic schemas for news posts."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from clubflow.models.news import NewsStatus


class NewsCreate(BaseModel):
    club_id: str
    title: str
    content: str
    category: Optional[str] = None
    is_featured: bool = False


class NewsOut(BaseModel):
    news_id: str
    club_id: str
    created_by: str
    title: str
    content: str
    category: Optional[str] = None
    is_featured: bool
    status: NewsStatus
    published_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}
