"""
domain.py
=========
Immutable value types the ranking engine works on.

Rows from ``models.py`` are converted with the ``from_row`` factories at the
store boundary; everything past that point (scoring, filtering, sorting) only
ever sees these frozen dataclasses. "Changing" a value means building a new
one with ``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable, Optional, Tuple, Union

from .enums import FeedAlgorithm, InterestType, SortBy, SortOrder, TimeFilter, parse_enum


def _labels(values: Optional[Iterable]) -> Tuple[str, ...]:
    return tuple(str(v).strip() for v in (values or ()) if str(v).strip())


@dataclass(frozen=True)
class ArticleInfo:
    id: int
    title: str = ""
    category: str = ""
    source: str = ""
    author_id: Optional[int] = None
    published_at: Optional[datetime] = None
    likes: int = 0
    views: int = 0
    shares: int = 0
    comments: int = 0
    url: str = ""
    image_url: str = ""
    is_hidden: bool = False

    @classmethod
    def from_row(cls, row) -> "ArticleInfo":
        return cls(
            id=row.id,
            title=row.title or "",
            category=row.category or "",
            source=row.source or "",
            author_id=row.author_id,
            published_at=row.published_at,
            likes=row.likes_count or 0,
            views=row.views_count or 0,
            shares=row.shares_count or 0,
            comments=row.comments_count or 0,
            url=row.url or "",
            image_url=row.image_url or "",
            is_hidden=bool(row.is_hidden),
        )


@dataclass(frozen=True)
class Interest:
    interest_type: InterestType
    label: str
    score: float = 0.0
    interaction_count: int = 0
    last_updated: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "Interest":
        return cls(
            interest_type=parse_enum(InterestType, row.interest_type) or InterestType.CATEGORY,
            label=row.label,
            score=row.score,
            interaction_count=row.interaction_count,
            last_updated=row.last_updated,
        )


@dataclass(frozen=True)
class InteractionEvent:
    user_id: int
    article_id: int
    interaction_type: str
    timestamp: Optional[datetime] = None
    reading_progress: Optional[float] = None
    time_spent_seconds: Optional[int] = None
    device_type: Optional[str] = None


@dataclass(frozen=True)
class FeedSettings:
    """Per-user weighting and filtering policy."""

    user_id: int
    algorithm: FeedAlgorithm = FeedAlgorithm.BALANCED
    personalization_weight: float = 0.6
    freshness_weight: float = 0.3
    popularity_weight: float = 0.1
    serendipity_weight: float = 0.1
    enable_serendipity: bool = True
    show_trending_content: bool = True
    max_articles_per_feed: int = 20
    preferred_categories: Tuple[str, ...] = ()
    excluded_categories: Tuple[str, ...] = ()
    blocked_sources: Tuple[str, ...] = ()
    blocked_users: Tuple[int, ...] = ()

    @classmethod
    def default(cls, user_id: int) -> "FeedSettings":
        return cls(user_id=user_id)

    @classmethod
    def from_row(cls, row) -> "FeedSettings":
        return cls(
            user_id=row.user_id,
            algorithm=parse_enum(FeedAlgorithm, row.algorithm) or FeedAlgorithm.BALANCED,
            personalization_weight=row.personalization_weight,
            freshness_weight=row.freshness_weight,
            popularity_weight=row.popularity_weight,
            serendipity_weight=row.serendipity_weight,
            enable_serendipity=row.enable_serendipity,
            show_trending_content=row.show_trending_content,
            max_articles_per_feed=row.max_articles_per_feed,
            preferred_categories=_labels(row.preferred_categories),
            excluded_categories=_labels(row.excluded_categories),
            blocked_sources=_labels(row.blocked_sources),
            blocked_users=tuple(int(u) for u in (row.blocked_users or ())),
        )

    def weights(self) -> dict:
        return {
            "personalization": self.personalization_weight,
            "freshness": self.freshness_weight,
            "popularity": self.popularity_weight,
            "serendipity": self.serendipity_weight,
        }

    def with_changes(self, **changes) -> "FeedSettings":
        for key in ("preferred_categories", "excluded_categories", "blocked_sources"):
            if key in changes:
                changes[key] = _labels(changes[key])
        if "blocked_users" in changes:
            changes["blocked_users"] = tuple(int(u) for u in (changes["blocked_users"] or ()))
        return replace(self, **changes)


@dataclass(frozen=True)
class SortOptions:
    sort_by: Union[SortBy, str] = SortBy.RECOMMENDED
    order: Union[SortOrder, str] = SortOrder.DESCENDING
    time_filter: Union[TimeFilter, str] = TimeFilter.ALL
    category_filter: Optional[str] = None
    source_filter: Optional[str] = None
    only_followed: bool = False
    include_trending: bool = True


@dataclass(frozen=True)
class FeedQuery:
    page_size: Optional[int] = None  # None: the user's max_articles_per_feed
    page_number: int = 1
    algorithm: Union[FeedAlgorithm, str, None] = None
    categories: Tuple[str, ...] = ()
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    sort_options: SortOptions = field(default_factory=SortOptions)


@dataclass(frozen=True)
class Trend:
    topic: str
    category: str = ""
    trend_score: float = 0.0
    total_interactions: int = 0
    last_updated: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "Trend":
        return cls(
            topic=row.topic,
            category=row.category or "",
            trend_score=row.trend_score,
            total_interactions=row.total_interactions,
            last_updated=row.last_updated,
        )


@dataclass(frozen=True)
class RecommendationScore:
    score: float
    reason: str
    factors: Tuple[str, ...]
    personalization: float
    freshness: float
    popularity: float
    serendipity: float


@dataclass(frozen=True)
class RecommendedArticle:
    article: ArticleInfo
    recommendation: RecommendationScore
    is_personalized: bool = False
    is_trending: bool = False
    is_from_followed_user: bool = False

    @property
    def score(self) -> float:
        return self.recommendation.score


@dataclass(frozen=True)
class FeedPage:
    articles: Tuple[RecommendedArticle, ...]
    total_count: int
    page_size: int
    page_number: int
    total_pages: int
    algorithm: str
    generated_at: datetime
    trending_topics: Tuple[Trend, ...] = ()
    applied_filters: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MixOptions:
    """Which pools a mixed feed draws from, and how many items each contributes."""

    include_personalized: bool = True
    include_trending: bool = True
    include_popular: bool = True
    include_recent: bool = True
    personalized_count: int = 8
    trending_count: int = 6
    popular_count: int = 4
    recent_count: int = 2
