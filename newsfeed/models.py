from typing import Optional, List
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field, Column, JSON
from datetime import datetime, timezone


def utcnow() -> datetime:
    # Stored naive; SQLite drops tzinfo anyway
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Article(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    content: Optional[str] = ""
    url: Optional[str] = Field(default="", index=True)
    image_url: Optional[str] = ""
    category: Optional[str] = Field(default="", index=True)
    source: Optional[str] = ""
    author_id: Optional[int] = Field(default=None, index=True)
    published_at: Optional[datetime] = Field(default_factory=utcnow, index=True)
    is_hidden: bool = False  # admin moderation
    likes_count: int = 0
    views_count: int = 0
    shares_count: int = 0
    comments_count: int = 0

class Interaction(SQLModel, table=True):
    # append-only; corrections are new rows
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    article_id: int = Field(index=True)
    interaction_type: str  # raw value as received
    ts: datetime = Field(default_factory=utcnow, index=True)
    reading_progress: Optional[float] = None
    time_spent_seconds: Optional[int] = None
    device_type: Optional[str] = None

class UserInterest(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("user_id", "interest_type", "label"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    interest_type: str = "category"
    label: str
    score: float = 0.0
    interaction_count: int = 0
    last_updated: datetime = Field(default_factory=utcnow)
    version: int = 0  # compare-and-swap token

class FeedConfiguration(SQLModel, table=True):
    user_id: int = Field(primary_key=True)
    algorithm: str = "balanced"
    personalization_weight: float = 0.6
    freshness_weight: float = 0.3
    popularity_weight: float = 0.1
    serendipity_weight: float = 0.1
    enable_serendipity: bool = True
    show_trending_content: bool = True
    max_articles_per_feed: int = 20
    preferred_categories: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    excluded_categories: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    blocked_sources: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    blocked_users: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    last_updated: datetime = Field(default_factory=utcnow)

class UserFollow(SQLModel, table=True):
    follower_id: int = Field(primary_key=True)
    followed_id: int = Field(primary_key=True, index=True)
    followed_at: datetime = Field(default_factory=utcnow)

class TrendingTopic(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    topic: str
    category: str = ""
    trend_score: float = 0.0
    total_interactions: int = 0
    last_updated: datetime = Field(default_factory=utcnow)
