# newsfeed/feed.py
"""
Feed assembler: filter -> score -> stable sort -> paginate.

``assemble_feed`` is a pure function of its inputs; ``get_feed`` loads those
inputs from the store and hands them over. Nothing here writes to the
database, so a caller that abandons a request loses no state.
"""

from __future__ import annotations

import math
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timedelta
from functools import partial
from typing import Collection, Iterable, List, Optional, Sequence

from sqlmodel import Session

from . import catalog
from .config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, PARALLEL_SCORING_MIN, SCORING_WORKERS, TRENDING_LIMIT
from .domain import (
    ArticleInfo,
    FeedPage,
    FeedQuery,
    FeedSettings,
    Interest,
    MixOptions,
    RecommendedArticle,
    SortOptions,
    Trend,
)
from .enums import FeedAlgorithm, SortBy, SortOrder, TimeFilter, parse_enum
from .errors import InvalidRequestError
from .logging_setup import get_logger
from .models import utcnow
from .ranker import InterestProfile, effective_weights, naive_utc, score_article, trending_score

logger = get_logger("newsfeed.feed")

TIME_FILTER_WINDOWS = {
    TimeFilter.LAST_HOUR: timedelta(hours=1),
    TimeFilter.LAST_24_HOURS: timedelta(days=1),
    TimeFilter.LAST_WEEK: timedelta(days=7),
    TimeFilter.LAST_MONTH: timedelta(days=30),
}

PERSONALIZED_THRESHOLD = 0.5
TRENDING_POPULARITY_THRESHOLD = 0.7

_OLDEST = datetime.min


def _norm(label) -> str:
    return str(label or "").strip().lower()

def _enum_field(enum_cls, value, default, field: str):
    if value is None or value == "":
        return default
    parsed = parse_enum(enum_cls, value)
    if parsed is None:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidRequestError(f"Unknown {field} '{value}' (expected one of: {allowed})", field=field)
    return parsed


# ---------- Validation ----------

def validate_request(query: FeedQuery, default_algorithm: Optional[FeedAlgorithm] = None,
                     default_page_size: Optional[int] = None) -> FeedQuery:
    """
    Reject malformed requests before any scoring work.

    Returns a normalized copy: enums parsed, dates naive UTC, page size filled
    in (request, then the user's max_articles_per_feed, then DEFAULT_PAGE_SIZE)
    and capped at MAX_PAGE_SIZE.
    """
    page_size = query.page_size
    if page_size is None:
        page_size = default_page_size or DEFAULT_PAGE_SIZE
    if page_size < 1:
        raise InvalidRequestError("page_size must be >= 1", field="page_size")
    if query.page_number is None or query.page_number < 1:
        raise InvalidRequestError("page_number must be >= 1", field="page_number")

    algorithm = _enum_field(FeedAlgorithm, query.algorithm, default_algorithm, "algorithm")

    opts = query.sort_options or SortOptions()
    opts = replace(
        opts,
        sort_by=_enum_field(SortBy, opts.sort_by, SortBy.RECOMMENDED, "sort_by"),
        order=_enum_field(SortOrder, opts.order, SortOrder.DESCENDING, "order"),
        time_filter=_enum_field(TimeFilter, opts.time_filter, TimeFilter.ALL, "time_filter"),
        category_filter=(opts.category_filter or "").strip() or None,
        source_filter=(opts.source_filter or "").strip() or None,
    )

    from_date, to_date = naive_utc(query.from_date), naive_utc(query.to_date)
    if from_date and to_date and from_date > to_date:
        raise InvalidRequestError("from_date must not be after to_date", field="from_date")

    return replace(
        query,
        page_size=min(page_size, MAX_PAGE_SIZE),
        algorithm=algorithm,
        categories=tuple(c.strip() for c in (query.categories or ()) if c and c.strip()),
        from_date=from_date,
        to_date=to_date,
        sort_options=opts,
    )


# ---------- Filtering ----------

def _keep(article: ArticleInfo, query: FeedQuery, settings: FeedSettings, algorithm: Optional[FeedAlgorithm],
          followed: Collection[int], trend_categories: Collection[str], now: datetime) -> bool:
    opts = query.sort_options
    category = _norm(article.category)

    # moderation and user blocks always win over score
    if article.is_hidden:
        return False
    if _norm(article.source) in {_norm(s) for s in settings.blocked_sources}:
        return False
    if article.author_id is not None and article.author_id in settings.blocked_users:
        return False
    if category in {_norm(c) for c in settings.excluded_categories}:
        return False

    if algorithm == FeedAlgorithm.PERSONALIZED and settings.preferred_categories:
        if category not in {_norm(c) for c in settings.preferred_categories}:
            return False
    if algorithm == FeedAlgorithm.FOLLOWING or opts.only_followed:
        if article.author_id not in followed:
            return False
    if algorithm == FeedAlgorithm.TRENDING and category not in trend_categories:
        return False

    if query.categories and category not in {_norm(c) for c in query.categories}:
        return False
    if opts.category_filter and category != _norm(opts.category_filter):
        return False
    if opts.source_filter and _norm(article.source) != _norm(opts.source_filter):
        return False

    published = naive_utc(article.published_at)
    if query.from_date or query.to_date or opts.time_filter != TimeFilter.ALL:
        if published is None:
            return False
        if query.from_date and published < query.from_date:
            return False
        if query.to_date and published > query.to_date:
            return False
        window = TIME_FILTER_WINDOWS.get(opts.time_filter)
        if window is not None and published < now - window:
            return False
    return True


def applied_filters(query: FeedQuery, settings: FeedSettings, algorithm: Optional[FeedAlgorithm]) -> List[str]:
    opts = query.sort_options
    filters: List[str] = []
    if query.categories:
        filters.append(f"Categories: {', '.join(query.categories)}")
    if query.from_date:
        filters.append(f"From: {query.from_date:%b %d %Y}")
    if query.to_date:
        filters.append(f"To: {query.to_date:%b %d %Y}")
    if opts.time_filter != TimeFilter.ALL:
        filters.append(f"Time: {opts.time_filter.value}")
    if opts.category_filter:
        filters.append(f"Category: {opts.category_filter}")
    if opts.source_filter:
        filters.append(f"Source: {opts.source_filter}")
    if opts.only_followed or algorithm == FeedAlgorithm.FOLLOWING:
        filters.append("Only followed users")
    if algorithm == FeedAlgorithm.TRENDING:
        filters.append("Trending topics only")
    if algorithm == FeedAlgorithm.PERSONALIZED and settings.preferred_categories:
        filters.append(f"Preferred: {', '.join(settings.preferred_categories)}")
    if settings.excluded_categories:
        filters.append(f"Excluding: {', '.join(settings.excluded_categories)}")
    if settings.blocked_sources:
        filters.append(f"Blocked sources: {len(settings.blocked_sources)}")
    if settings.blocked_users:
        filters.append(f"Blocked users: {len(settings.blocked_users)}")
    return filters


# ---------- Sorting ----------

def _sort_key(sort_by: SortBy, now: datetime):
    if sort_by == SortBy.RECENT:
        return lambda r: naive_utc(r.article.published_at) or _OLDEST
    if sort_by == SortBy.POPULAR:
        return lambda r: r.article.likes + r.article.views
    if sort_by == SortBy.TRENDING:
        return lambda r: trending_score(r.article, now)
    if sort_by == SortBy.MOST_LIKED:
        return lambda r: r.article.likes
    if sort_by == SortBy.MOST_VIEWED:
        return lambda r: r.article.views
    if sort_by == SortBy.MOST_COMMENTED:
        return lambda r: r.article.comments
    return lambda r: r.score

def sort_recommendations(items: Iterable[RecommendedArticle], sort_by: SortBy = SortBy.RECOMMENDED,
                         order: SortOrder = SortOrder.DESCENDING,
                         now: Optional[datetime] = None) -> List[RecommendedArticle]:
    """
    Order by the requested key; ties go to the newest article, then to input order.

    Two passes of Python's stable sort give exactly that: the second pass
    (primary key) keeps the recency order of equal keys.
    """
    now = naive_utc(now) or utcnow()
    by_recency = sorted(items, key=lambda r: naive_utc(r.article.published_at) or _OLDEST, reverse=True)
    return sorted(by_recency, key=_sort_key(sort_by, now), reverse=(order == SortOrder.DESCENDING))


# ---------- Assembly ----------

FALLBACK_FILTER = "Fallback: recent articles"
EXPLORE_FILTER = "Unexplored categories only"
MIXED_ALGORITHM = "mixed"
MIX_POPULARITY_THRESHOLD = 0.5


def _score_all(articles: Sequence[ArticleInfo], scorer, executor: Optional[Executor]):
    # executor.map yields results in input order, so the merge stays deterministic
    if executor is not None:
        return list(executor.map(scorer, articles))
    if SCORING_WORKERS > 1 and len(articles) >= PARALLEL_SCORING_MIN:
        with ThreadPoolExecutor(max_workers=SCORING_WORKERS, thread_name_prefix="feed-score") as pool:
            return list(pool.map(scorer, articles))
    return [scorer(a) for a in articles]


def _paginate(ordered: Sequence[RecommendedArticle], query: FeedQuery, algorithm: str, now: datetime,
              trends: Sequence[Trend], filters: Iterable[str]) -> FeedPage:
    total = len(ordered)
    skip = (query.page_number - 1) * query.page_size
    return FeedPage(
        articles=tuple(ordered[skip: skip + query.page_size]),
        total_count=total,
        page_size=query.page_size,
        page_number=query.page_number,
        total_pages=math.ceil(total / query.page_size) if total else 0,
        algorithm=algorithm,
        generated_at=now,
        trending_topics=tuple(trends),
        applied_filters=tuple(filters),
    )


def assemble_feed(
    user_id: int,
    query: FeedQuery,
    *,
    settings: FeedSettings,
    interests: Iterable[Interest] = (),
    candidates: Iterable[ArticleInfo] = (),
    followed_ids: Iterable[int] = (),
    trends: Sequence[Trend] = (),
    now: Optional[datetime] = None,
    executor: Optional[Executor] = None,
    explore: bool = False,
) -> FeedPage:
    """
    One page of ranked articles.

    explore=True keeps only articles outside the user's top categories (the
    serendipity feed). A personalized request that matches nothing is served
    as a chronological feed instead, flagged in applied_filters.
    """
    query = validate_request(query, default_algorithm=settings.algorithm,
                             default_page_size=settings.max_articles_per_feed)
    now = naive_utc(now) or utcnow()
    algorithm = query.algorithm
    opts = query.sort_options
    interests = tuple(interests)
    candidates = tuple(candidates)
    followed = frozenset(followed_ids)
    trend_categories = {_norm(t.category or t.topic) for t in trends}
    profile = InterestProfile(interests)

    survivors = [
        a for a in candidates
        if _keep(a, query, settings, algorithm, followed, trend_categories, now)
        and not (explore and _norm(a.category) in profile.top_categories)
    ]

    if not survivors and algorithm == FeedAlgorithm.PERSONALIZED:
        logger.info("FEED_FALLBACK", extra={"user": user_id, "reason": "no_personalized_matches"})
        page = assemble_feed(
            user_id,
            replace(query, algorithm=FeedAlgorithm.CHRONOLOGICAL),
            settings=settings,
            interests=interests,
            candidates=candidates,
            followed_ids=followed,
            trends=trends,
            now=now,
            executor=executor,
            explore=explore,
        )
        return replace(page, applied_filters=page.applied_filters + (FALLBACK_FILTER,))

    if not profile:
        # no interest data yet: personalization scores 0 for everyone
        logger.debug("DEGRADED_SCORING", extra={"user": user_id, "reason": "no_interests"})

    scorer = partial(
        score_article,
        profile=profile,
        settings=settings,
        now=now,
        algorithm=algorithm,
        weights=effective_weights(settings, algorithm),
    )
    scores = _score_all(survivors, scorer, executor)

    recommended = [
        RecommendedArticle(
            article=article,
            recommendation=score,
            is_personalized=score.personalization > PERSONALIZED_THRESHOLD,
            is_trending=(_norm(article.category) in trend_categories
                         or score.popularity > TRENDING_POPULARITY_THRESHOLD),
            is_from_followed_user=article.author_id in followed,
        )
        for article, score in zip(survivors, scores)
    ]
    ordered = sort_recommendations(recommended, opts.sort_by, opts.order, now)

    filters = applied_filters(query, settings, algorithm)
    if explore:
        filters.append(EXPLORE_FILTER)
    show_trends = opts.include_trending and settings.show_trending_content
    return _paginate(
        ordered,
        query,
        (algorithm or FeedAlgorithm.BALANCED).value,
        now,
        trends if show_trends else (),
        filters,
    )


# ---------- Mixed feed ----------

def interleave(items: Iterable[RecommendedArticle], options: MixOptions = MixOptions()) -> List[RecommendedArticle]:
    """
    Round-robin over four buckets: personalized, trending, popular, recent.

    An article can sit in several buckets; its first slot wins. Buckets
    switched off in ``options`` contribute nothing.
    """
    items = list(items)
    buckets = [
        (options.include_personalized, [r for r in items if r.is_personalized]),
        (options.include_trending, [r for r in items if r.is_trending]),
        (options.include_popular, [r for r in items
                                   if r.recommendation.popularity > MIX_POPULARITY_THRESHOLD and not r.is_trending]),
        (options.include_recent, [r for r in items
                                  if not r.is_personalized and not r.is_trending
                                  and r.recommendation.popularity <= MIX_POPULARITY_THRESHOLD]),
    ]
    live = [bucket for included, bucket in buckets if included]
    out: List[RecommendedArticle] = []
    seen = set()
    for i in range(max((len(b) for b in live), default=0)):
        for bucket in live:
            if i < len(bucket) and bucket[i].article.id not in seen:
                seen.add(bucket[i].article.id)
                out.append(bucket[i])
    return out


def assemble_mixed_feed(
    user_id: int,
    query: FeedQuery,
    options: MixOptions = MixOptions(),
    *,
    settings: FeedSettings,
    interests: Iterable[Interest] = (),
    candidates: Iterable[ArticleInfo] = (),
    followed_ids: Iterable[int] = (),
    trends: Sequence[Trend] = (),
    now: Optional[datetime] = None,
) -> FeedPage:
    """Top items of the personalized, trending, popular and chronological feeds, interleaved."""
    query = validate_request(query, default_page_size=settings.max_articles_per_feed)
    now = naive_utc(now) or utcnow()
    pools = (
        (options.include_personalized, FeedAlgorithm.PERSONALIZED, options.personalized_count, "personalized_count"),
        (options.include_trending, FeedAlgorithm.TRENDING, options.trending_count, "trending_count"),
        (options.include_popular, FeedAlgorithm.POPULAR, options.popular_count, "popular_count"),
        (options.include_recent, FeedAlgorithm.CHRONOLOGICAL, options.recent_count, "recent_count"),
    )
    for _, _, count, field in pools:
        if count < 0:
            raise InvalidRequestError(f"{field} must be >= 0", field=field)

    interests = tuple(interests)
    candidates = tuple(candidates)
    best: dict = {}  # article id -> highest-scoring copy, in first-seen order
    for included, algorithm, count, _ in pools:
        if not included or count == 0:
            continue
        pool = assemble_feed(
            user_id,
            replace(query, algorithm=algorithm, page_size=count, page_number=1),
            settings=settings,
            interests=interests,
            candidates=candidates,
            followed_ids=followed_ids,
            trends=trends,
            now=now,
        )
        for r in pool.articles:
            kept = best.get(r.article.id)
            if kept is None or r.score > kept.score:
                best[r.article.id] = r

    mixed = interleave(best.values(), options)
    show_trends = query.sort_options.include_trending and settings.show_trending_content
    return _paginate(mixed, query, MIXED_ALGORITHM, now, trends if show_trends else (),
                     applied_filters(query, settings, None))


# ---------- Store-backed entry points ----------

def _load_inputs(session: Session, user_id: int, checked: FeedQuery) -> dict:
    candidates = catalog.load_candidates(session, since=checked.from_date, until=checked.to_date,
                                         limit=catalog.CANDIDATE_LIMIT)
    return {
        "settings": catalog.load_settings(session, user_id),
        "interests": catalog.load_interests(session, user_id),
        "candidates": candidates,
        "followed_ids": catalog.load_followed_ids(session, user_id),
        "trends": catalog.load_trends(session, limit=TRENDING_LIMIT),
    }

def _note_truncation(page: FeedPage, candidates: Sequence[ArticleInfo]) -> FeedPage:
    # totals and non-recency sorts only cover the newest CANDIDATE_LIMIT articles
    if len(candidates) < catalog.CANDIDATE_LIMIT:
        return page
    logger.warning("CANDIDATES_TRUNCATED", extra={"limit": catalog.CANDIDATE_LIMIT})
    return replace(page, applied_filters=page.applied_filters
                   + (f"Newest {catalog.CANDIDATE_LIMIT} articles only",))

def _log_page(user_id: int, page: FeedPage, candidates: int, t0: float) -> None:
    logger.info(
        "FEED_ASSEMBLED",
        extra={
            "user": user_id,
            "algorithm": page.algorithm,
            "candidates": candidates,
            "total": page.total_count,
            "returned": len(page.articles),
            "page": page.page_number,
            "elapsed_ms": round((time.perf_counter() - t0) * 1000),
        },
    )


def get_feed(session: Session, user_id: int, query: FeedQuery, now: Optional[datetime] = None,
             explore: bool = False) -> FeedPage:
    """Load the user's settings, interests and candidates, then assemble one page."""
    t0 = time.perf_counter()
    checked = validate_request(query)  # fail fast, before touching the store
    inputs = _load_inputs(session, user_id, checked)
    page = assemble_feed(user_id, query, now=naive_utc(now) or utcnow(), explore=explore, **inputs)
    page = _note_truncation(page, inputs["candidates"])
    _log_page(user_id, page, len(inputs["candidates"]), t0)
    return page


def get_mixed_feed(session: Session, user_id: int, query: FeedQuery, options: MixOptions = MixOptions(),
                   now: Optional[datetime] = None) -> FeedPage:
    t0 = time.perf_counter()
    checked = validate_request(query)
    inputs = _load_inputs(session, user_id, checked)
    page = assemble_mixed_feed(user_id, query, options, now=naive_utc(now) or utcnow(), **inputs)
    page = _note_truncation(page, inputs["candidates"])
    _log_page(user_id, page, len(inputs["candidates"]), t0)
    return page
