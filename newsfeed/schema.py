from datetime import datetime
from pydantic import BaseModel
from typing import List, Optional

from .domain import FeedQuery, InteractionEvent, MixOptions, SortOptions

class SortOptionsIn(BaseModel):
    sort_by: str = "recommended"     # recommended | recent | popular | trending | most_liked | most_viewed | most_commented
    order: str = "descending"        # ascending | descending
    time_filter: str = "all"         # last_hour | last_24_hours | last_week | last_month | all
    category_filter: Optional[str] = None
    source_filter: Optional[str] = None
    only_followed: bool = False
    include_trending: bool = True

    def to_options(self) -> SortOptions:
        return SortOptions(**self.model_dump())

class FeedRequestIn(BaseModel):
    # range checks happen in feed.validate_request so every caller gets the same errors
    page_size: Optional[int] = None  # falls back to the user's max_articles_per_feed
    page_number: int = 1
    algorithm: Optional[str] = None  # chronological | popular | personalized | balanced | trending | following
    categories: List[str] = []
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    sort_options: Optional[SortOptionsIn] = None

    def to_query(self) -> FeedQuery:
        return FeedQuery(
            page_size=self.page_size,
            page_number=self.page_number,
            algorithm=self.algorithm,
            categories=tuple(self.categories),
            from_date=self.from_date,
            to_date=self.to_date,
            sort_options=self.sort_options.to_options() if self.sort_options else SortOptions(),
        )

class InteractionIn(BaseModel):
    article_id: int
    interaction_type: str            # view | like | share | save | comment | click | full_read | quick_exit
    reading_progress: Optional[float] = None
    time_spent_seconds: Optional[int] = None
    device_type: Optional[str] = None
    timestamp: Optional[datetime] = None

    def to_event(self, user_id: int) -> InteractionEvent:
        return InteractionEvent(
            user_id=user_id,
            article_id=self.article_id,
            interaction_type=self.interaction_type,
            timestamp=self.timestamp,
            reading_progress=self.reading_progress,
            time_spent_seconds=self.time_spent_seconds,
            device_type=self.device_type,
        )

class FeedConfigurationIn(BaseModel):
    algorithm: Optional[str] = None
    personalization_weight: Optional[float] = None
    freshness_weight: Optional[float] = None
    popularity_weight: Optional[float] = None
    serendipity_weight: Optional[float] = None
    enable_serendipity: Optional[bool] = None
    show_trending_content: Optional[bool] = None
    max_articles_per_feed: Optional[int] = None
    preferred_categories: Optional[List[str]] = None
    excluded_categories: Optional[List[str]] = None
    blocked_sources: Optional[List[str]] = None
    blocked_users: Optional[List[int]] = None

class ArticleIn(BaseModel):
    title: str
    content: str = ""
    url: str = ""
    image_url: str = ""
    category: str = ""
    source: str = ""

class MixedFeedIn(BaseModel):
    include_personalized: bool = True
    include_trending: bool = True
    include_popular: bool = True
    include_recent: bool = True
    personalized_count: int = 8
    trending_count: int = 6
    popular_count: int = 4
    recent_count: int = 2

    def to_options(self) -> MixOptions:
        return MixOptions(**self.model_dump())
