# tests/test_sources.py
import feedparser
import requests
from freezegun import freeze_time

from newsfeed.sources import GoogleNewsRSSProvider, NewsAPIProvider, canonical_url, fetch_all


def _fake_feed():
    fake = type("F", (), {})()
    fake.feed = {"title": "Google News"}
    fake.entries = [
        type("E", (), {"link": "http://a", "title": "A", "summary": "sum", "published": "Wed, 01 Jan 2025 12:00:00 GMT"}),
        type("E", (), {"link": "http://b", "title": "B", "summary": "sum", "published": "Wed, 01 Jan 2025 13:00:00 GMT"}),
        type("E", (), {"link": "http://a", "title": "A again", "summary": "", "published": "Wed, 01 Jan 2025 12:30:00 GMT"}),
    ]
    return fake


@freeze_time("2025-01-01 18:00:00")
def test_fetch_all_shape(mocker):
    mocker.patch.object(feedparser, "parse", return_value=_fake_feed())

    items = fetch_all(categories=["science"], since_hours=24, max_items_per_provider=5,
                      providers=[GoogleNewsRSSProvider()], pause_seconds=0)
    assert [it["url"] for it in items] == ["http://b/", "http://a/"]  # deduped, newest first
    for k in ["url", "title", "content", "published_at", "source", "category"]:
        assert k in items[0]
    assert items[0]["category"] == "science"


@freeze_time("2025-01-03 18:00:00")
def test_old_entries_are_dropped(mocker):
    mocker.patch.object(feedparser, "parse", return_value=_fake_feed())
    items = fetch_all(categories=["science"], since_hours=24, providers=[GoogleNewsRSSProvider()], pause_seconds=0)
    assert items == []


@freeze_time("2025-01-01 18:00:00")
def test_newsapi_provider_maps_articles(mocker):
    resp = mocker.Mock()
    resp.raise_for_status.return_value = None
    resp.json.return_value = {"articles": [
        {"url": "http://n1", "title": "Headline", "description": "d", "urlToImage": "http://img",
         "publishedAt": "2025-01-01T15:00:00Z", "source": {"name": "Reuters"}},
        {"url": "http://n2", "title": "[Removed]", "publishedAt": "2025-01-01T15:00:00Z"},
    ]}
    get = mocker.patch("newsfeed.sources.requests.get", return_value=resp)

    items = fetch_all(categories=["business"], providers=[NewsAPIProvider("k")], pause_seconds=0)
    assert len(items) == 1
    assert items[0]["source"] == "Reuters" and items[0]["category"] == "business"
    assert get.call_args.kwargs["headers"]["X-Api-Key"] == "k"


def test_failing_provider_is_skipped(mocker):
    mocker.patch("newsfeed.sources.requests.get", side_effect=requests.ConnectionError("down"))
    mocker.patch.object(feedparser, "parse", return_value=_fake_feed())
    with freeze_time("2025-01-01 18:00:00"):
        items = fetch_all(categories=["tech"], providers=[NewsAPIProvider("k"), GoogleNewsRSSProvider()],
                          pause_seconds=0)
    assert len(items) == 2


def test_canonical_url_drops_tracking_params():
    assert canonical_url("HTTPS://Example.com/story/?utm_source=x&id=7#top") == "https://example.com/story?id=7"
    assert canonical_url("") == ""
