# tests/test_feed_api.py
U1 = {"X-User-Id": "1"}
ADMIN = {"X-API-Key": "test-key"}


def _share(client, title, category, headers=U1, source="Wire"):
    r = client.post("/articles", json={"title": title, "category": category, "source": source}, headers=headers)
    assert r.status_code == 201
    return r.json()["id"]


def test_feed_requires_user(client):
    assert client.get("/feed").status_code == 401


def test_interactions_personalize_the_feed(client):
    tech = _share(client, "chips", "Technology", headers={"X-User-Id": "2"})
    sport = _share(client, "goal", "Sports", headers={"X-User-Id": "3"}, source="Sportsdesk")

    for _ in range(6):
        r = client.post("/feed/interaction", json={"article_id": tech, "interaction_type": "like"}, headers=U1)
        assert r.status_code == 200 and r.json()["ok"] is True

    r = client.get("/feed", headers=U1)
    assert r.status_code == 200
    body = r.json()
    assert [a["article"]["id"] for a in body["articles"]] == [tech, sport]
    top = body["articles"][0]
    assert top["is_personalized"] is True
    assert top["recommendation"]["reason"] == "Matches your interests in Technology"
    assert body["algorithm"] == "balanced"


def test_invalid_request_is_400(client):
    r = client.get("/feed", params={"page_size": 0}, headers=U1)
    assert r.status_code == 400
    assert r.json()["field"] == "page_size"

    r = client.get("/feed/algorithm/astrology", headers=U1)
    assert r.status_code == 400


def test_sorted_feed_with_body(client):
    _share(client, "a", "tech")
    r = client.post("/feed/sorted", json={"page_size": 5, "sort_options": {"sort_by": "recent"}}, headers=U1)
    assert r.status_code == 200
    assert r.json()["page_size"] == 5 and r.json()["total_count"] == 1


def test_configuration_update_and_reset(client):
    r = client.put("/feed/configuration", json={"algorithm": "Chronological", "blocked_sources": ["Wire"]},
                   headers=U1)
    assert r.status_code == 200
    assert r.json()["algorithm"] == "chronological"

    _share(client, "hidden by block", "tech", headers={"X-User-Id": "2"})
    assert client.get("/feed", headers=U1).json()["total_count"] == 0

    bad = client.put("/feed/configuration", json={"freshness_weight": 3}, headers=U1)
    assert bad.status_code == 400

    reset = client.post("/feed/reset-configuration", headers=U1).json()
    assert reset["algorithm"] == "balanced" and reset["blocked_sources"] == []


def test_reset_keeps_learned_interests(client):
    aid = _share(client, "x", "science")
    client.post("/feed/interaction", json={"article_id": aid, "interaction_type": "share"}, headers=U1)
    client.post("/feed/reset-configuration", headers=U1)
    insights = client.get("/feed/insights", headers=U1).json()
    assert insights["category_affinities"]["science"] > 0


def test_follow_and_following_feed(client):
    mine = _share(client, "from 2", "tech", headers={"X-User-Id": "2"})
    _share(client, "from 3", "tech", headers={"X-User-Id": "3"})

    assert client.post("/users/2/follow", headers=U1).status_code == 200
    assert client.get("/users/1/following").json()["following"] == [2]
    assert client.post("/users/1/follow", headers=U1).status_code == 400

    body = client.get("/feed/algorithm/following", headers=U1).json()
    assert [a["article"]["id"] for a in body["articles"]] == [mine]

    client.delete("/users/2/follow", headers=U1)
    assert client.get("/feed/algorithm/following", headers=U1).json()["total_count"] == 0


def test_admin_hide_removes_article(client):
    aid = _share(client, "bad", "tech")
    assert client.post(f"/admin/articles/{aid}/hide", headers=ADMIN).status_code == 200
    assert client.get("/feed", headers=U1).json()["total_count"] == 0
    assert client.get(f"/articles/{aid}").status_code == 404
    assert client.post("/admin/articles/999/hide", headers=ADMIN).status_code == 404


def test_trending_refresh_and_topics(client):
    aid = _share(client, "x", "science")
    client.post("/feed/interaction", json={"article_id": aid, "interaction_type": "share"}, headers=U1)
    r = client.post("/admin/trending/refresh", headers=ADMIN)
    assert r.status_code == 200
    assert [t["topic"] for t in client.get("/feed/trending-topics").json()] == ["science"]


def test_similar_and_analytics(client):
    base = _share(client, "one", "science")
    other = _share(client, "two", "science")
    _share(client, "three", "art")
    client.post("/feed/interaction", json={"article_id": base, "interaction_type": "view", "time_spent_seconds": 30},
                headers=U1)

    similar = client.get(f"/feed/similar/{base}", headers=U1).json()
    assert [s["article"]["id"] for s in similar] == [other]
    assert client.get("/feed/similar/999", headers=U1).status_code == 404

    stats = client.get("/feed/analytics", headers=U1).json()
    assert stats["total_views"] == 1 and stats["average_time_spent"] == 30.0
    assert stats["top_categories"] == ["science"]


def test_store_outage_is_503(client, mocker):
    from sqlalchemy.exc import OperationalError
    from newsfeed import catalog

    def broken_catalog(session, *args, **kwargs):
        raise OperationalError("SELECT article", {}, Exception("database is locked"))

    mocker.patch.object(catalog, "load_candidates", catalog._unavailable("Article catalog")(broken_catalog))
    r = client.get("/feed", headers=U1)
    assert r.status_code == 503
    assert "unavailable" in r.json()["detail"]


def test_category_and_serendipity_feeds(client):
    tech = _share(client, "chips", "tech", headers={"X-User-Id": "2"})
    art = _share(client, "paint", "art", headers={"X-User-Id": "3"}, source="Gallery")
    client.post("/feed/interaction", json={"article_id": tech, "interaction_type": "share"}, headers=U1)

    body = client.get("/feed/category/art", headers=U1).json()
    assert [a["article"]["id"] for a in body["articles"]] == [art]
    assert "Category: art" in body["applied_filters"]

    body = client.get("/feed/serendipity", headers=U1).json()
    assert [a["article"]["id"] for a in body["articles"]] == [art]


def test_mixed_feed(client):
    _share(client, "a", "tech")
    _share(client, "b", "art")
    r = client.get("/feed/mixed", params={"include_popular": False, "recent_count": 5}, headers=U1)
    assert r.status_code == 200
    body = r.json()
    assert body["algorithm"] == "mixed" and body["total_count"] == 2

    assert client.get("/feed/mixed", params={"recent_count": -1}, headers=U1).status_code == 400


def test_max_articles_per_feed_sets_default_page_size(client):
    for i in range(4):
        _share(client, f"n{i}", "tech")
    client.put("/feed/configuration", json={"max_articles_per_feed": 3}, headers=U1)

    body = client.get("/feed", headers=U1).json()
    assert body["page_size"] == 3 and len(body["articles"]) == 3 and body["total_pages"] == 2
    assert client.get("/feed", params={"page_size": 4}, headers=U1).json()["page_size"] == 4
