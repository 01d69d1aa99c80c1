# tests/test_store.py
from sqlmodel import select
from newsfeed.catalog import load_settings, save_settings
from newsfeed.store import get_session
from newsfeed.models import Article, FeedConfiguration

def test_db_roundtrip():
    with get_session() as s:
        a = Article(url="u", title="t")
        s.add(a); s.commit(); s.refresh(a)
        got = s.exec(select(Article).where(Article.id == a.id)).first()
        assert got and got.title == "t"
        assert got.likes_count == 0 and got.is_hidden is False

def test_settings_created_on_first_use_and_saved():
    with get_session() as s:
        settings = load_settings(s, 9)
        assert settings.algorithm.value == "balanced"
        assert s.get(FeedConfiguration, 9) is not None

        saved = save_settings(s, settings.with_changes(blocked_sources=["Spam "], blocked_users=["4"]))
    assert saved.blocked_sources == ("Spam",)
    assert saved.blocked_users == (4,)
    with get_session() as s:
        assert load_settings(s, 9).blocked_sources == ("Spam",)

def test_settings_created_concurrently_are_reused(mocker):
    with get_session() as s:
        real_get = s.get
        state = {"first": True}

        def racing_get(model, key, **kw):
            # the first lookup misses; meanwhile another request creates the row
            if state.pop("first", False):
                with get_session() as other:
                    load_settings(other, 11)
                return None
            return real_get(model, key, **kw)

        mocker.patch.object(s, "get", side_effect=racing_get)
        settings = load_settings(s, 11)
    assert settings.user_id == 11 and settings.algorithm.value == "balanced"

def test_store_failure_surfaces_as_data_unavailable(mocker):
    import pytest
    from sqlalchemy.exc import OperationalError
    from newsfeed.catalog import load_candidates
    from newsfeed.errors import DataUnavailableError

    with get_session() as s:
        mocker.patch.object(s, "exec", side_effect=OperationalError("SELECT", {}, Exception("database is locked")))
        with pytest.raises(DataUnavailableError):
            load_candidates(s)

def test_candidate_cap_is_reported(make_article, mocker):
    from conftest import NOW
    from newsfeed import catalog
    from newsfeed.domain import FeedQuery
    from newsfeed.feed import get_feed

    for i in range(3):
        make_article(title=f"c{i}", hours_ago=i + 1)
    mocker.patch.object(catalog, "CANDIDATE_LIMIT", 2)
    with get_session() as s:
        page = get_feed(s, 1, FeedQuery(), now=NOW)
    assert page.total_count == 2
    assert "Newest 2 articles only" in page.applied_filters
