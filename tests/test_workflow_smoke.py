# tests/test_workflow_smoke.py
from freezegun import freeze_time
from sqlmodel import select

from newsfeed.config import SYSTEM_USER_ID
from newsfeed.models import Article
from newsfeed.store import get_session


def test_run_ingest_smoke(mocker):
    # Avoid live HTTP
    mocker.patch("newsfeed.sources.fetch_all", return_value=[
        {"url": "u1", "title": "A", "content": "biz", "published_at": None, "source": "S", "category": "Business"},
        {"url": "u2", "title": "B", "content": "lab", "published_at": None, "source": "S", "category": "science"},
    ])

    from newsfeed.workflow import run_ingest
    with freeze_time("2025-01-01"):
        first = run_ingest(categories=["business", "science"])
        second = run_ingest(categories=["business", "science"])

    assert first["added"] == 2 and first["per_category"] == {"business": 1, "science": 1}
    assert second["added"] == 0 and second["skipped_existing"] == 2

    with get_session() as s:
        rows = s.exec(select(Article)).all()
    assert len(rows) == 2
    assert all(a.author_id == SYSTEM_USER_ID for a in rows)
    assert all(str(a.published_at).startswith("2025-01-01") for a in rows)


def test_run_ingest_survives_fetch_failure(mocker):
    mocker.patch("newsfeed.sources.fetch_all", side_effect=RuntimeError("providers down"))
    from newsfeed.workflow import run_ingest
    out = run_ingest(categories=["tech"])
    assert out["fetched"] == 0 and out["added"] == 0
