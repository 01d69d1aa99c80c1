# newsfeed/trending.py
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple
import time

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .config import TRENDING_LIMIT, TRENDING_WINDOW_HOURS
from .domain import Trend
from .enums import InteractionType, parse_enum
from .errors import DataUnavailableError
from .logging_setup import get_logger
from .models import Article, Interaction, TrendingTopic, utcnow
from .ranker import naive_utc
from .store import get_session

logger = get_logger("newsfeed.trending")

# How much one interaction of each kind pushes its category up the board
TREND_WEIGHTS = {
    InteractionType.VIEW: 1.0,
    InteractionType.CLICK: 1.0,
    InteractionType.LIKE: 2.0,
    InteractionType.COMMENT: 2.0,
    InteractionType.SAVE: 2.0,
    InteractionType.FULL_READ: 2.0,
    InteractionType.SHARE: 3.0,
    InteractionType.QUICK_EXIT: 0.0,
}
MIN_DECAY = 0.1


def compute_trends(rows: Iterable[Tuple[str, str, datetime]], now: datetime,
                   window_hours: float = TRENDING_WINDOW_HOURS, limit: int = TRENDING_LIMIT) -> List[Trend]:
    """
    Rank categories by recent, time-decayed engagement.

    rows: (category, interaction_type, timestamp). Interactions older than the
    window are ignored; inside it each one counts its weight times
    max(0.1, 1 - age/window).
    """
    now = naive_utc(now)
    scores: Dict[str, float] = defaultdict(float)
    counts: Counter = Counter()
    labels: Dict[str, str] = {}

    for category, interaction_type, ts in rows:
        label = (category or "").strip()
        if not label or ts is None:
            continue
        age = max(0.0, (now - naive_utc(ts)).total_seconds() / 3600.0)
        if age > window_hours:
            continue
        decay = max(MIN_DECAY, 1.0 - age / window_hours)
        weight = TREND_WEIGHTS.get(parse_enum(InteractionType, interaction_type), 0.5)
        key = label.lower()
        labels.setdefault(key, label)
        scores[key] += weight * decay
        counts[key] += 1

    ranked = sorted(scores.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]
    return [
        Trend(
            topic=labels[key],
            category=labels[key],
            trend_score=round(score, 4),
            total_interactions=counts[key],
            last_updated=now,
        )
        for key, score in ranked
    ]


def refresh_trending(session: Optional[Session] = None, now: Optional[datetime] = None) -> List[Trend]:
    """Recompute the trending snapshot from recent interactions and replace the stored one."""
    if session is None:
        with get_session() as s:
            return refresh_trending(s, now)

    t0 = time.perf_counter()
    now = naive_utc(now) or utcnow()
    cutoff = now - timedelta(hours=TRENDING_WINDOW_HOURS)
    try:
        rows = session.exec(
            select(Article.category, Interaction.interaction_type, Interaction.ts)
            .select_from(Interaction)
            .join(Article, Article.id == Interaction.article_id)
            .where(Interaction.ts >= cutoff, Article.is_hidden == False)  # noqa: E712
        ).all()
        trends = compute_trends(rows, now)

        # the table only ever holds the latest snapshot
        session.connection().execute(delete(TrendingTopic))
        for t in trends:
            session.add(TrendingTopic(
                topic=t.topic,
                category=t.category,
                trend_score=t.trend_score,
                total_interactions=t.total_interactions,
                last_updated=now,
            ))
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("TRENDING_REFRESH_FAILED", extra={"error": type(e).__name__})
        raise DataUnavailableError("Interaction store unavailable") from e

    logger.info(
        "TRENDING_REFRESHED",
        extra={
            "interactions": len(rows),
            "topics": [t.topic for t in trends],
            "elapsed_ms": round((time.perf_counter() - t0) * 1000),
        },
    )
    return trends
