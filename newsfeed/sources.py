# newsfeed/sources.py
"""
External news sources for the periodic ingestion job.

Providers:
  - NewsAPIProvider: top headlines per category, needs NEWSAPI_KEY
  - GoogleNewsRSSProvider: keyless RSS search, one query per category

Every provider yields plain dicts built by ``_item`` so the ingestion job
sees one shape: url, title, content, image_url, published_at (aware UTC or
None), source, category.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Dict, Iterable, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit
import time

import feedparser
import requests

from .config import NEWS_COUNTRY, NEWSAPI_BASE_URL, NEWSAPI_KEY
from .logging_setup import get_logger

logger = get_logger("newsfeed.sources")

USER_AGENT = "NewsfeedBot/1.0 (news aggregator)"
REQUEST_TIMEOUT = 15
TITLE_MAX = 500
TRACKING_PREFIXES = ("utm_", "fbclid", "gclid", "ocid")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def canonical_url(url: str) -> str:
    """Lowercased scheme/host, no fragment, no tracking query params."""
    url = (url or "").strip()
    if not url:
        return ""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query) if not k.lower().startswith(TRACKING_PREFIXES)]
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path.rstrip("/") or "/",
                       urlencode(query), ""))


def _item(url, title, content, published_at, source, category, image_url="") -> Dict:
    return {
        "url": canonical_url(url),
        "title": " ".join((title or "").split())[:TITLE_MAX],
        "content": (content or "").strip(),
        "image_url": image_url or "",
        "published_at": published_at,
        "source": (source or "").strip(),
        "category": category,
    }


def _dedupe(items: Iterable[Dict]) -> List[Dict]:
    """First occurrence wins; keyed on the canonical URL, or the title when there is none."""
    seen = set()
    out: List[Dict] = []
    for it in items:
        key = it.get("url") or (it.get("title") or "").strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(it)
    return out


def _recent(items: Iterable[Dict], since: datetime) -> List[Dict]:
    # undated items are kept; the ingestion job stamps them with the fetch time
    return [it for it in items if it["published_at"] is None or it["published_at"] >= since]


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    # NewsAPI sends e.g. "2025-10-15T12:34:56Z"
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).astimezone(timezone.utc)
    except ValueError:
        return None


def _parse_feed_datetime(entry) -> Optional[datetime]:
    """Best-effort publish time of a feedparser entry."""
    tt = getattr(entry, "published_parsed", None) or getattr(entry, "updated_parsed", None)
    if tt:
        return datetime(*tt[:6], tzinfo=timezone.utc)
    published = getattr(entry, "published", "")
    if not published:
        return None
    try:
        return parsedate_to_datetime(published).astimezone(timezone.utc)
    except (TypeError, ValueError):
        return None


class BaseProvider:
    name = "base"

    def fetch(self, category: str, since: datetime, max_items: int = 20) -> List[Dict]:
        raise NotImplementedError


class NewsAPIProvider(BaseProvider):
    """https://newsapi.org/ top-headlines, one call per category."""

    name = "newsapi"

    def __init__(self, api_key: str, base_url: str = NEWSAPI_BASE_URL, country: str = NEWS_COUNTRY):
        self.api_key = api_key
        self.endpoint = base_url.rstrip("/") + "/top-headlines"
        self.country = country

    def fetch(self, category: str, since: datetime, max_items: int = 20) -> List[Dict]:
        r = requests.get(
            self.endpoint,
            params={"country": self.country, "category": category, "pageSize": min(max_items, 100)},
            headers={"X-Api-Key": self.api_key, "User-Agent": USER_AGENT},
            timeout=REQUEST_TIMEOUT,
        )
        r.raise_for_status()
        items = [
            _item(
                url=a.get("url"),
                title=a.get("title"),
                content=a.get("description") or a.get("content"),
                published_at=_parse_iso(a.get("publishedAt")),
                source=(a.get("source") or {}).get("name") or "NewsAPI",
                category=category,
                image_url=a.get("urlToImage"),
            )
            for a in r.json().get("articles", [])
            if a.get("title") and a.get("title") != "[Removed]"  # takedowns keep a placeholder row
        ]
        return _dedupe(_recent(items, since))[:max_items]


class GoogleNewsRSSProvider(BaseProvider):
    """Google News RSS search. Keyless; snippets are short."""

    name = "google_news_rss"

    def __init__(self, lang: str = "en", country: str = "US"):
        self.lang = lang
        self.country = country

    def feed_url(self, category: str) -> str:
        q = category.replace(" ", "+")
        return (
            "https://news.google.com/rss/search?"
            f"q={q}+when:1d&hl={self.lang}&gl={self.country}&ceid={self.country}:{self.lang}"
        )

    def fetch(self, category: str, since: datetime, max_items: int = 20) -> List[Dict]:
        feed = feedparser.parse(self.feed_url(category))
        source = feed.feed.get("title", "Google News")
        items = [
            _item(
                url=getattr(e, "link", ""),
                title=getattr(e, "title", ""),
                content=getattr(e, "summary", ""),
                published_at=_parse_feed_datetime(e),
                source=source,
                category=category,
            )
            for e in feed.entries[: max_items * 2]  # oversample, dedupe trims
        ]
        return _dedupe(_recent(items, since))[:max_items]


def default_providers() -> List[BaseProvider]:
    providers: List[BaseProvider] = [GoogleNewsRSSProvider()]
    if NEWSAPI_KEY:
        providers.insert(0, NewsAPIProvider(NEWSAPI_KEY))
    return providers


def fetch_all(
    categories: List[str],
    since_hours: int = 24,
    max_items_per_provider: int = 20,
    providers: Optional[List[BaseProvider]] = None,
    pause_seconds: float = 0.3,
) -> List[Dict]:
    """
    Recent items for every (category, provider) pair, deduplicated, newest first.

    A provider that fails for one category is logged and skipped; the rest of
    the pass continues.
    """
    since = datetime.now(timezone.utc) - timedelta(hours=since_hours)
    providers = providers if providers is not None else default_providers()

    collected: List[Dict] = []
    for category in categories:
        for p in providers:
            try:
                collected.extend(p.fetch(category=category, since=since, max_items=max_items_per_provider))
            except (requests.RequestException, ValueError) as e:
                logger.warning(
                    "PROVIDER_FAILED",
                    extra={"provider": p.name, "category": category, "error": f"{type(e).__name__}: {e}"},
                )
                continue
            if pause_seconds:
                time.sleep(pause_seconds)  # providers rate-limit bursts

    merged = _dedupe(collected)
    merged.sort(key=lambda it: it["published_at"] or _EPOCH, reverse=True)
    return merged
