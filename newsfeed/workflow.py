# newsfeed/workflow.py
from collections import Counter
from typing import Any, Dict, List, Optional
import time
import uuid

from sqlmodel import select

from . import sources
from .config import INGEST_INTERVAL_HOURS, INGEST_MAX_ARTICLES, NEWS_CATEGORIES, SYSTEM_USER_ID
from .logging_setup import get_logger
from .models import Article, utcnow
from .ranker import naive_utc
from .store import get_session

logger = get_logger("newsfeed.workflow")


def run_ingest(categories: Optional[List[str]] = None, since_hours: Optional[int] = None) -> Dict[str, Any]:
    """
    Orchestrates one ingestion pass:
    - fetch recent headlines per category from the external providers
    - drop items whose URL is already stored
    - persist the rest under the system account
    """
    run_id = uuid.uuid4().hex[:8]
    categories = categories or NEWS_CATEGORIES
    since_hours = since_hours or INGEST_INTERVAL_HOURS

    def X(**fields):
        # Helper to attach correlation + common fields
        return {"run_id": run_id, **fields}

    logger.info("INGEST_START", extra=X(step="start", categories=categories))
    t0 = time.perf_counter()

    try:
        # --- Fetch ---
        t_fetch = time.perf_counter()
        try:
            raw: List[Dict[str, Any]] = sources.fetch_all(
                categories=categories,
                since_hours=since_hours,
                max_items_per_provider=INGEST_MAX_ARTICLES,
            )
            logger.info(
                "FETCH_OK",
                extra=X(
                    step="fetch",
                    count=len(raw),
                    per_source=dict(Counter(it.get("source", "unknown") for it in raw)),
                    elapsed_ms=round((time.perf_counter() - t_fetch) * 1000),
                ),
            )
        except Exception as e:
            # a dead provider stack must not kill the scheduler job
            logger.exception("FETCH_FAILED", extra=X(step="fetch", handled=True, error=type(e).__name__))
            raw = []

        # --- Persist ---
        t_persist = time.perf_counter()
        with get_session() as s:
            urls = [it["url"] for it in raw if it.get("url")]
            existing = set(s.exec(select(Article.url).where(Article.url.in_(urls))).all()) if urls else set()

            added: List[Article] = []
            for it in raw:
                url = it.get("url") or ""
                if url and url in existing:
                    continue
                added.append(Article(
                    title=(it.get("title") or "")[:500],
                    content=it.get("content") or "",
                    url=url,
                    image_url=it.get("image_url") or "",
                    category=(it.get("category") or "general").lower(),
                    source=it.get("source") or "",
                    author_id=SYSTEM_USER_ID,
                    published_at=naive_utc(it.get("published_at")) or utcnow(),
                ))
                existing.add(url)
            # read before commit; committed rows expire and the session closes below
            per_category = Counter(a.category for a in added)
            s.add_all(added)
            s.commit()

        logger.info(
            "INGEST_DONE",
            extra=X(
                step="end",
                handled=True,
                fetched=len(raw),
                added=len(added),
                per_category=dict(per_category),
                persist_ms=round((time.perf_counter() - t_persist) * 1000),
                total_elapsed_ms=round((time.perf_counter() - t0) * 1000),
            ),
        )
        return {
            "run_id": run_id,
            "fetched": len(raw),
            "added": len(added),
            "skipped_existing": len(raw) - len(added),
            "per_category": dict(per_category),
        }

    except Exception as e:
        logger.exception(
            "INGEST_FATAL",
            extra=X(
                step="fatal",
                handled=False,
                error=type(e).__name__,
                total_elapsed_ms=round((time.perf_counter() - t0) * 1000),
            ),
        )
        raise
