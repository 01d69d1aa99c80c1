# tests/test_trending.py
from datetime import timedelta

from newsfeed.catalog import load_trends
from newsfeed.domain import InteractionEvent
from newsfeed.interests import record_interaction
from newsfeed.store import get_session
from newsfeed.trending import compute_trends, refresh_trending

from conftest import NOW


def test_compute_trends_weights_and_decay():
    rows = [
        ("Science", "share", NOW - timedelta(hours=1)),
        ("Science", "like", NOW - timedelta(hours=2)),
        ("Tech", "view", NOW - timedelta(minutes=5)),
        ("Tech", "view", NOW - timedelta(hours=30)),  # outside the window
        ("", "like", NOW),
    ]
    trends = compute_trends(rows, NOW, window_hours=24, limit=10)
    assert [t.topic for t in trends] == ["Science", "Tech"]
    assert trends[0].total_interactions == 2
    assert trends[1].total_interactions == 1
    assert trends[0].trend_score > trends[1].trend_score


def test_compute_trends_respects_limit():
    rows = [(f"c{i}", "view", NOW) for i in range(5)]
    assert len(compute_trends(rows, NOW, limit=3)) == 3


def test_refresh_replaces_snapshot(make_article):
    sci = make_article(title="s", category="science")
    tech = make_article(title="t", category="tech")
    with get_session() as s:
        for _ in range(3):
            record_interaction(s, InteractionEvent(user_id=1, article_id=sci, interaction_type="share"), now=NOW)
        record_interaction(s, InteractionEvent(user_id=1, article_id=tech, interaction_type="view"), now=NOW)

        first = refresh_trending(s, now=NOW)
        assert [t.topic for t in first] == ["science", "tech"]

        # a second refresh outside the window empties the board
        assert refresh_trending(s, now=NOW + timedelta(days=3)) == []
        assert load_trends(s) == []

