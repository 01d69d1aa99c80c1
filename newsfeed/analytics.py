# newsfeed/analytics.py
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from . import catalog
from .domain import Interest, RecommendationScore, RecommendedArticle
from .enums import InteractionType, InterestType, parse_enum
from .errors import DataUnavailableError, NotFoundError
from .logging_setup import get_logger
from .models import Article, Interaction, utcnow
from .ranker import InterestProfile, freshness_score, naive_utc, popularity_score, similarity_score

logger = get_logger("newsfeed.analytics")

ANALYTICS_WINDOW_DAYS = 30
EMERGING_WINDOW_DAYS = 7
EMERGING_MAX_INTERACTIONS = 5
AFFINITY_FLOOR = 0.1  # below this a category doesn't count as a taste


@dataclass(frozen=True)
class PersonalizationInsights:
    user_id: int
    category_affinities: Dict[str, float] = field(default_factory=dict)
    source_affinities: Dict[str, float] = field(default_factory=dict)
    author_affinities: Dict[str, float] = field(default_factory=dict)
    top_interests: Tuple[str, ...] = ()
    emerging_interests: Tuple[str, ...] = ()
    diversity_preference: float = 0.0
    last_updated: Optional[datetime] = None


@dataclass(frozen=True)
class EngagementAnalytics:
    user_id: int
    from_date: datetime
    total_views: int = 0
    total_likes: int = 0
    total_shares: int = 0
    total_comments: int = 0
    total_saves: int = 0
    total_interactions: int = 0
    average_time_spent: float = 0.0
    engagement_score: float = 0.0
    top_categories: Tuple[str, ...] = ()
    top_sources: Tuple[str, ...] = ()


def build_insights(user_id: int, interests: Iterable[Interest], now: Optional[datetime] = None) -> PersonalizationInsights:
    now = naive_utc(now) or utcnow()
    by_type: Dict[InterestType, Dict[str, float]] = {t: {} for t in InterestType}
    recent_cutoff = now - timedelta(days=EMERGING_WINDOW_DAYS)
    emerging: List[Tuple[float, str]] = []

    for it in interests:
        by_type[it.interest_type][it.label] = round(it.score, 4)
        if (it.interest_type == InterestType.CATEGORY
                and it.interaction_count <= EMERGING_MAX_INTERACTIONS
                and it.score >= AFFINITY_FLOOR
                and it.last_updated is not None and naive_utc(it.last_updated) >= recent_cutoff):
            emerging.append((it.score, it.label))

    categories = by_type[InterestType.CATEGORY]
    top = sorted(categories.items(), key=lambda kv: (-kv[1], kv[0]))[:5]
    held = sum(1 for s in categories.values() if s >= AFFINITY_FLOOR)
    return PersonalizationInsights(
        user_id=user_id,
        category_affinities=categories,
        source_affinities=by_type[InterestType.SOURCE],
        author_affinities=by_type[InterestType.AUTHOR],
        top_interests=tuple(label for label, _ in top),
        emerging_interests=tuple(label for _, label in sorted(emerging, reverse=True)),
        diversity_preference=min(1.0, held / 10.0),
        last_updated=now,
    )


def engagement_score(views: int, likes: int, shares: int, comments: int, saves: int) -> float:
    engaged = likes + shares + comments + saves
    rate = engaged / views if views > 0 else 0.0
    return min(rate * 10, 1.0)


def user_analytics(session: Session, user_id: int, from_date: Optional[datetime] = None,
                   now: Optional[datetime] = None) -> EngagementAnalytics:
    now = naive_utc(now) or utcnow()
    from_date = naive_utc(from_date) or now - timedelta(days=ANALYTICS_WINDOW_DAYS)
    try:
        rows = session.exec(
            select(Interaction.interaction_type, Interaction.time_spent_seconds, Article.category, Article.source)
            .select_from(Interaction)
            .outerjoin(Article, Article.id == Interaction.article_id)
            .where(Interaction.user_id == user_id, Interaction.ts >= from_date)
        ).all()
    except SQLAlchemyError as e:
        session.rollback()
        raise DataUnavailableError("Interaction store unavailable") from e

    kinds: Counter = Counter()
    categories: Counter = Counter()
    sources: Counter = Counter()
    spent: List[int] = []
    for interaction_type, time_spent, category, source in rows:
        kinds[parse_enum(InteractionType, interaction_type)] += 1
        if category:
            categories[category] += 1
        if source:
            sources[source] += 1
        if time_spent is not None:
            spent.append(time_spent)

    views = kinds[InteractionType.VIEW]
    likes = kinds[InteractionType.LIKE]
    shares = kinds[InteractionType.SHARE]
    comments = kinds[InteractionType.COMMENT]
    saves = kinds[InteractionType.SAVE]
    return EngagementAnalytics(
        user_id=user_id,
        from_date=from_date,
        total_views=views,
        total_likes=likes,
        total_shares=shares,
        total_comments=comments,
        total_saves=saves,
        total_interactions=len(rows),
        average_time_spent=round(sum(spent) / len(spent), 1) if spent else 0.0,
        engagement_score=engagement_score(views, likes, shares, comments, saves),
        top_categories=tuple(c for c, _ in categories.most_common(5)),
        top_sources=tuple(s for s, _ in sources.most_common(5)),
    )


def similar_articles(session: Session, article_id: int, user_id: int, count: int = 10,
                     now: Optional[datetime] = None) -> List[RecommendedArticle]:
    """Articles from the same category, boosted by the user's interest in it."""
    now = naive_utc(now) or utcnow()
    base = catalog.get_article(session, article_id)
    if base is None:
        raise NotFoundError(f"Article {article_id} not found")
    if not base.category:
        return []

    profile = InterestProfile(catalog.load_interests(session, user_id))
    out = []
    for a in catalog.load_by_category(session, base.category, exclude_id=base.id, limit=count * 3):
        personal = profile.score_for(InterestType.CATEGORY, a.category)
        out.append(RecommendedArticle(
            article=a,
            recommendation=RecommendationScore(
                score=similarity_score(a, profile),
                reason="Similar to articles you've engaged with",
                factors=("content similarity", "category match"),
                personalization=personal,
                freshness=freshness_score(a.published_at, now),
                popularity=popularity_score(a.likes, a.views, a.shares, a.comments),
                serendipity=0.0,
            ),
            is_personalized=personal > 0.5,
        ))
    # every candidate shares the category, so scores tie and recency decides
    out.sort(key=lambda r: naive_utc(r.article.published_at) or datetime.min, reverse=True)
    out.sort(key=lambda r: r.score, reverse=True)
    return out[:count]
