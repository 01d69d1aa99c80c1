# newsfeed/routers/feed.py
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ..analytics import build_insights, similar_articles, user_analytics
from ..catalog import load_interests, load_settings, load_trends, save_settings
from ..dependencies import current_user
from ..domain import FeedQuery, FeedSettings, SortOptions
from ..enums import FeedAlgorithm, parse_enum
from ..errors import InvalidRequestError
from ..feed import get_feed, get_mixed_feed
from ..interests import record_interaction
from ..logging_setup import get_logger
from ..schema import FeedConfigurationIn, FeedRequestIn, InteractionIn, MixedFeedIn
from ..store import get_session

logger = get_logger("newsfeed.routes.feed")

router = APIRouter(prefix="/feed", tags=["Feed"])

WEIGHT_FIELDS = ("personalization_weight", "freshness_weight", "popularity_weight", "serendipity_weight")


def _query(
    page_size: Optional[int] = Query(None, description="Items per page; defaults to the user's max_articles_per_feed"),
    page_number: int = Query(1, description="1-based page index"),
    categories: List[str] = Query(default=[]),
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    sort_by: str = "recommended",
    order: str = "descending",
    time_filter: str = "all",
    category_filter: Optional[str] = None,
    source_filter: Optional[str] = None,
    only_followed: bool = False,
    include_trending: bool = True,
) -> FeedQuery:
    return FeedQuery(
        page_size=page_size,
        page_number=page_number,
        categories=tuple(categories),
        from_date=from_date,
        to_date=to_date,
        sort_options=SortOptions(
            sort_by=sort_by,
            order=order,
            time_filter=time_filter,
            category_filter=category_filter,
            source_filter=source_filter,
            only_followed=only_followed,
            include_trending=include_trending,
        ),
    )


@router.get("")
def personalized_feed(query: FeedQuery = Depends(_query), algorithm: Optional[str] = None,
                      user_id: int = Depends(current_user)):
    """Feed ranked with the user's configured algorithm unless ?algorithm= overrides it."""
    if algorithm:
        query = replace(query, algorithm=algorithm)
    with get_session() as s:
        return get_feed(s, user_id, query)


@router.get("/algorithm/{algorithm}")
def feed_by_algorithm(algorithm: str, query: FeedQuery = Depends(_query), user_id: int = Depends(current_user)):
    query = replace(query, algorithm=algorithm)
    with get_session() as s:
        return get_feed(s, user_id, query)


@router.get("/category/{category}")
def category_feed(category: str, query: FeedQuery = Depends(_query), user_id: int = Depends(current_user)):
    query = replace(query, sort_options=replace(query.sort_options, category_filter=category))
    with get_session() as s:
        return get_feed(s, user_id, query)


@router.get("/serendipity")
def serendipity_feed(query: FeedQuery = Depends(_query), user_id: int = Depends(current_user)):
    """Articles from categories outside the user's top interests."""
    with get_session() as s:
        return get_feed(s, user_id, query, explore=True)


@router.get("/mixed")
def mixed_feed(query: FeedQuery = Depends(_query), mix: MixedFeedIn = Depends(),
               user_id: int = Depends(current_user)):
    with get_session() as s:
        return get_mixed_feed(s, user_id, query, mix.to_options())


@router.post("/sorted")
def sorted_feed(body: FeedRequestIn, user_id: int = Depends(current_user)):
    with get_session() as s:
        return get_feed(s, user_id, body.to_query())


@router.get("/trending-topics")
def trending_topics(count: int = Query(10, ge=1, le=50)):
    with get_session() as s:
        return load_trends(s, limit=count)


@router.post("/interaction")
def post_interaction(body: InteractionIn, user_id: int = Depends(current_user)):
    logger.info(f"Interaction received: article={body.article_id} type={body.interaction_type}")
    with get_session() as s:
        result = record_interaction(s, body.to_event(user_id))
    return {"ok": True, **result.__dict__}


@router.get("/configuration")
def get_configuration(user_id: int = Depends(current_user)):
    with get_session() as s:
        return load_settings(s, user_id)


@router.put("/configuration")
def update_configuration(body: FeedConfigurationIn, user_id: int = Depends(current_user)):
    logger.info("Updating feed configuration")
    changes = body.model_dump(exclude_none=True)
    for name in WEIGHT_FIELDS:
        if name in changes and not 0.0 <= changes[name] <= 1.0:
            raise InvalidRequestError(f"{name} must be within [0, 1]", field=name)
    if "algorithm" in changes:
        algorithm = parse_enum(FeedAlgorithm, changes["algorithm"])
        if algorithm is None:
            raise InvalidRequestError(f"Unknown algorithm '{changes['algorithm']}'", field="algorithm")
        changes["algorithm"] = algorithm
    if "max_articles_per_feed" in changes and changes["max_articles_per_feed"] < 1:
        raise InvalidRequestError("max_articles_per_feed must be >= 1", field="max_articles_per_feed")

    with get_session() as s:
        settings = load_settings(s, user_id).with_changes(**changes)
        return save_settings(s, settings)


@router.post("/reset-configuration")
def reset_configuration(user_id: int = Depends(current_user)):
    # Learned interests are kept; only the weighting policy goes back to defaults
    with get_session() as s:
        return save_settings(s, FeedSettings.default(user_id))


@router.get("/insights")
def insights(user_id: int = Depends(current_user)):
    with get_session() as s:
        return build_insights(user_id, load_interests(s, user_id))


@router.get("/analytics")
def analytics(from_date: Optional[datetime] = None, user_id: int = Depends(current_user)):
    with get_session() as s:
        return user_analytics(s, user_id, from_date=from_date)


@router.get("/similar/{article_id}")
def similar(article_id: int, count: int = Query(10, ge=1, le=50), user_id: int = Depends(current_user)):
    with get_session() as s:
        return similar_articles(s, article_id, user_id, count=count)
