# tests/conftest.py
import pathlib, pytest
from dotenv import load_dotenv

# must run before anything imports newsfeed.config
load_dotenv(pathlib.Path(__file__).parent / ".env.test", override=True)

from datetime import datetime, timedelta

NOW = datetime(2025, 1, 10, 12, 0, 0)

@pytest.fixture(autouse=True)
def _fresh_db():
    from newsfeed.store import reset_db
    reset_db()

@pytest.fixture()
def client():
    from fastapi.testclient import TestClient
    from newsfeed.main import app
    return TestClient(app)

@pytest.fixture()
def make_article():
    """Insert an Article row; hours_ago is relative to NOW."""
    from newsfeed.models import Article
    from newsfeed.store import get_session

    def _make(title="t", category="tech", source="Wire", author_id=1, hours_ago=1.0, **counts):
        with get_session() as s:
            a = Article(
                title=title,
                category=category,
                source=source,
                author_id=author_id,
                url=f"http://example.com/{title}",
                published_at=NOW - timedelta(hours=hours_ago),
                **counts,
            )
            s.add(a); s.commit(); s.refresh(a)
            return a.id
    return _make
