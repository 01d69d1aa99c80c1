# tests/test_feed.py
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from newsfeed.domain import ArticleInfo, FeedQuery, FeedSettings, Interest, MixOptions, SortOptions, Trend
from newsfeed.enums import FeedAlgorithm, InterestType
from newsfeed.errors import InvalidRequestError
from newsfeed.feed import FALLBACK_FILTER, assemble_feed, interleave, validate_request

NOW = datetime(2025, 1, 10, 12, 0, 0)


def _a(id, category="tech", hours_ago=1.0, source="Wire", author_id=100, **counts):
    return ArticleInfo(id=id, title=f"a{id}", category=category, source=source, author_id=author_id,
                       published_at=NOW - timedelta(hours=hours_ago), **counts)


def _feed(candidates, query=None, settings=None, **kw):
    return assemble_feed(1, query or FeedQuery(), settings=settings or FeedSettings.default(1),
                         candidates=candidates, now=NOW, **kw)


def _ids(page):
    return [r.article.id for r in page.articles]


def test_ordered_by_score_descending():
    interests = [Interest(InterestType.CATEGORY, "tech", score=0.9)]
    page = _feed([_a(1, "sports"), _a(2, "tech")], interests=interests)
    assert _ids(page) == [2, 1]
    scores = [r.score for r in page.articles]
    assert scores == sorted(scores, reverse=True)


def test_equal_scores_break_ties_by_recency():
    # same category/engagement, different age -> chronological sort decides
    q = FeedQuery(sort_options=SortOptions(sort_by="most_liked"))
    page = _feed([_a(1, hours_ago=5), _a(2, hours_ago=1), _a(3, hours_ago=3)], query=q)
    assert _ids(page) == [2, 3, 1]


def test_pagination_is_consistent():
    candidates = [_a(i, hours_ago=i) for i in range(1, 26)]
    full = _feed(candidates, query=FeedQuery(page_size=100))
    p1 = _feed(candidates, query=FeedQuery(page_size=10, page_number=1))
    p2 = _feed(candidates, query=FeedQuery(page_size=10, page_number=2))
    p3 = _feed(candidates, query=FeedQuery(page_size=10, page_number=3))

    assert _ids(p1) + _ids(p2) + _ids(p3) == _ids(full)
    assert p1.total_count == 25 and p1.total_pages == 3
    assert len(p3.articles) == 5


def test_page_past_the_end_is_empty():
    page = _feed([_a(1)], query=FeedQuery(page_size=10, page_number=4))
    assert page.articles == () and page.total_count == 1


def test_page_size_is_capped():
    page = _feed([_a(1)], query=FeedQuery(page_size=10_000))
    assert page.page_size == 100


def test_blocked_and_excluded_never_appear():
    settings = replace(
        FeedSettings.default(1),
        blocked_sources=("Spam Daily",),
        blocked_users=(66,),
        excluded_categories=("gossip",),
    )
    candidates = [
        _a(1, source="spam daily", likes=500, views=10),
        _a(2, author_id=66, likes=500, views=10),
        _a(3, category="Gossip", likes=500, views=10),
        _a(4),
    ]
    page = _feed(candidates, settings=settings)
    assert _ids(page) == [4]
    assert page.total_count == 1


def test_hidden_articles_are_dropped():
    page = _feed([_a(1), replace(_a(2), is_hidden=True)])
    assert _ids(page) == [1]


@pytest.mark.parametrize("query", [
    FeedQuery(page_size=0),
    FeedQuery(page_number=0),
    FeedQuery(algorithm="astrology"),
    FeedQuery(sort_options=SortOptions(sort_by="vibes")),
    FeedQuery(from_date=NOW, to_date=NOW - timedelta(days=1)),
])
def test_invalid_requests_rejected(query):
    with pytest.raises(InvalidRequestError):
        validate_request(query)


def test_empty_candidates_give_empty_page():
    page = _feed([])
    assert page.articles == () and page.total_count == 0 and page.total_pages == 0


def test_following_algorithm_keeps_followed_authors_only():
    page = _feed([_a(1, author_id=5), _a(2, author_id=6)], query=FeedQuery(algorithm="following"),
                 followed_ids={5})
    assert _ids(page) == [1]
    assert page.articles[0].is_from_followed_user
    assert page.algorithm == "following"


def test_trending_algorithm_keeps_trend_categories():
    trends = [Trend(topic="Science", category="Science", trend_score=3.0)]
    page = _feed([_a(1, "science"), _a(2, "tech")], query=FeedQuery(algorithm="trending"), trends=trends)
    assert _ids(page) == [1]
    assert page.articles[0].is_trending
    assert page.trending_topics == tuple(trends)


def test_time_filter_and_category_filter():
    q = FeedQuery(sort_options=SortOptions(time_filter="last_hour", category_filter="tech"))
    page = _feed([_a(1, hours_ago=0.5), _a(2, hours_ago=3), _a(3, "art", hours_ago=0.2)], query=q)
    assert _ids(page) == [1]
    assert "Time: last_hour" in page.applied_filters


def test_algorithm_defaults_to_users_setting():
    settings = replace(FeedSettings.default(1), algorithm=FeedAlgorithm.CHRONOLOGICAL)
    page = _feed([_a(1, hours_ago=9, likes=90, views=100), _a(2, hours_ago=1)], settings=settings)
    assert page.algorithm == "chronological"
    assert _ids(page) == [2, 1]


def test_parallel_scoring_matches_sequential():
    interests = [Interest(InterestType.CATEGORY, "tech", score=0.5)]
    candidates = [_a(i, "tech" if i % 2 else "art", hours_ago=i % 7, likes=i, views=50) for i in range(1, 60)]
    seq = _feed(candidates, interests=interests, query=FeedQuery(page_size=100))
    with ThreadPoolExecutor(max_workers=4) as pool:
        par = _feed(candidates, interests=interests, query=FeedQuery(page_size=100), executor=pool)
    assert _ids(seq) == _ids(par)


def test_page_size_defaults_to_users_max_articles():
    settings = replace(FeedSettings.default(1), max_articles_per_feed=2)
    page = _feed([_a(i) for i in range(1, 6)], settings=settings)
    assert page.page_size == 2 and len(page.articles) == 2 and page.total_pages == 3

    # an explicit request wins, and the cap still applies
    assert _feed([_a(1)], query=FeedQuery(page_size=4), settings=settings).page_size == 4
    big = replace(FeedSettings.default(1), max_articles_per_feed=500)
    assert _feed([_a(1)], settings=big).page_size == 100


def test_empty_personalized_feed_falls_back_to_recent():
    settings = replace(FeedSettings.default(1), preferred_categories=("chess",))
    page = _feed([_a(1, hours_ago=4), _a(2, hours_ago=1)], query=FeedQuery(algorithm="personalized"),
                 settings=settings)
    assert _ids(page) == [2, 1]
    assert page.algorithm == "chronological"
    assert FALLBACK_FILTER in page.applied_filters


def test_explore_skips_top_categories():
    interests = [Interest(InterestType.CATEGORY, "tech", score=0.9)]
    page = _feed([_a(1, "tech"), _a(2, "art"), _a(3, "")], interests=interests, explore=True)
    assert sorted(_ids(page)) == [2, 3]
    assert "Unexplored categories only" in page.applied_filters


def test_interleave_round_robins_buckets_without_duplicates():
    interests = [Interest(InterestType.CATEGORY, "tech", score=0.9)]
    trends = [Trend(topic="science", category="science")]
    candidates = [
        _a(1, "tech"), _a(2, "tech", hours_ago=2),
        _a(3, "science"),
        _a(4, "art", likes=30, views=100),  # popular, below the trending bar
        _a(5, "art", hours_ago=3),
    ]
    page = _feed(candidates, interests=interests, trends=trends, query=FeedQuery(page_size=10))
    by_id = {r.article.id: r for r in page.articles}
    ordered = [by_id[i] for i in (1, 2, 3, 4, 5)]

    mixed = interleave(ordered)
    assert [r.article.id for r in mixed] == [1, 3, 4, 5, 2]

    no_trending = interleave(ordered, MixOptions(include_trending=False))
    assert 3 not in [r.article.id for r in no_trending]
