# newsfeed/catalog.py
"""
Read side of the store, as seen by the feed engine.

Every helper converts rows into the frozen types from ``domain.py``. A
database failure is surfaced as ``DataUnavailableError`` and never retried
here.
"""

from __future__ import annotations

from datetime import datetime
from functools import wraps
from typing import List, Optional, Set

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from .domain import ArticleInfo, FeedSettings, Interest, Trend
from .errors import DataUnavailableError
from .logging_setup import get_logger
from .models import Article, FeedConfiguration, TrendingTopic, UserFollow, UserInterest, utcnow

logger = get_logger("newsfeed.catalog")

# Hard ceiling on candidates pulled per feed request
CANDIDATE_LIMIT = 2000


def _unavailable(what: str):
    def decorator(fn):
        @wraps(fn)
        def wrapper(session: Session, *args, **kwargs):
            try:
                return fn(session, *args, **kwargs)
            except SQLAlchemyError as e:
                session.rollback()
                logger.error("STORE_READ_FAILED", extra={"what": what, "error": type(e).__name__})
                raise DataUnavailableError(f"{what} unavailable") from e
        return wrapper
    return decorator


@_unavailable("Article catalog")
def load_candidates(session: Session, since: Optional[datetime] = None,
                    until: Optional[datetime] = None, limit: int = CANDIDATE_LIMIT) -> List[ArticleInfo]:
    """Visible articles, newest first. Date bounds are pushed down to SQL."""
    stmt = select(Article).where(Article.is_hidden == False)  # noqa: E712
    if since is not None:
        stmt = stmt.where(Article.published_at >= since)
    if until is not None:
        stmt = stmt.where(Article.published_at <= until)
    stmt = stmt.order_by(Article.published_at.desc(), Article.id.desc()).limit(limit)
    return [ArticleInfo.from_row(row) for row in session.exec(stmt).all()]


@_unavailable("Article catalog")
def get_article(session: Session, article_id: int) -> Optional[ArticleInfo]:
    row = session.get(Article, article_id)
    return ArticleInfo.from_row(row) if row else None


@_unavailable("Interaction store")
def load_interests(session: Session, user_id: int) -> List[Interest]:
    rows = session.exec(select(UserInterest).where(UserInterest.user_id == user_id)).all()
    return [Interest.from_row(r) for r in rows]


@_unavailable("Interaction store")
def load_followed_ids(session: Session, user_id: int) -> Set[int]:
    rows = session.exec(select(UserFollow.followed_id).where(UserFollow.follower_id == user_id)).all()
    return set(rows)


@_unavailable("Trending topics")
def load_trends(session: Session, limit: int = 10) -> List[Trend]:
    rows = session.exec(
        select(TrendingTopic).order_by(TrendingTopic.trend_score.desc(), TrendingTopic.id).limit(limit)
    ).all()
    return [Trend.from_row(r) for r in rows]


@_unavailable("Feed configuration")
def load_settings(session: Session, user_id: int) -> FeedSettings:
    """Stored configuration, created with defaults on first use."""
    row = session.get(FeedConfiguration, user_id)
    if row is None:
        session.add(_settings_row(FeedSettings.default(user_id)))
        try:
            session.commit()
            logger.info("FEED_CONFIG_CREATED_DEFAULT", extra={"user": user_id})
        except IntegrityError:
            # a concurrent first request created it
            session.rollback()
        row = session.get(FeedConfiguration, user_id)
    return FeedSettings.from_row(row)


@_unavailable("Feed configuration")
def save_settings(session: Session, settings: FeedSettings) -> FeedSettings:
    row = session.get(FeedConfiguration, settings.user_id) or FeedConfiguration(user_id=settings.user_id)
    fresh = _settings_row(settings)
    for key, value in fresh.model_dump().items():
        setattr(row, key, value)
    row.last_updated = utcnow()
    session.add(row)
    session.commit()
    session.refresh(row)
    return FeedSettings.from_row(row)


def _settings_row(settings: FeedSettings) -> FeedConfiguration:
    return FeedConfiguration(
        user_id=settings.user_id,
        algorithm=settings.algorithm.value,
        personalization_weight=settings.personalization_weight,
        freshness_weight=settings.freshness_weight,
        popularity_weight=settings.popularity_weight,
        serendipity_weight=settings.serendipity_weight,
        enable_serendipity=settings.enable_serendipity,
        show_trending_content=settings.show_trending_content,
        max_articles_per_feed=settings.max_articles_per_feed,
        preferred_categories=list(settings.preferred_categories),
        excluded_categories=list(settings.excluded_categories),
        blocked_sources=list(settings.blocked_sources),
        blocked_users=list(settings.blocked_users),
    )


@_unavailable("Article catalog")
def load_by_category(session: Session, category: str, exclude_id: Optional[int] = None,
                     limit: int = 30) -> List[ArticleInfo]:
    stmt = select(Article).where(Article.is_hidden == False, Article.category == category)  # noqa: E712
    if exclude_id is not None:
        stmt = stmt.where(Article.id != exclude_id)
    stmt = stmt.order_by(Article.published_at.desc(), Article.id.desc()).limit(limit)
    return [ArticleInfo.from_row(row) for row in session.exec(stmt).all()]
