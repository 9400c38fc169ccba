def _setup_candidates(services):
    services.catalog.add(1, "Paddington 2", genres=["Comedy", "Family"])
    services.catalog.add(2, "Heat", genres=["Crime", "Thriller"])
    services.llm.candidates = [{"title": "Paddington 2"}, {"title": "Heat"}]


def test_match_recommendations(test_client, services):
    _setup_candidates(services)
    res = test_client.get("/v2/recommendations/mood", params={"limit": 5})
    assert res.status_code == 200
    items = res.json()
    assert {it["media_id"] for it in items} == {1, 2}
    scores = [it["mood_similarity"] for it in items]
    assert scores == sorted(scores, reverse=True)

    # second call is served from the cache
    again = test_client.get("/v2/recommendations/mood", params={"limit": 5})
    assert [it["media_id"] for it in again.json()] == [it["media_id"] for it in items]
    assert len(services.llm.curator_calls) == 1


def test_shift_recommendations(test_client, services):
    services.catalog.add(7, "Popular", genres=["Drama"])
    services.catalog.popular = [7]
    res = test_client.get("/v2/recommendations/mood", params={"mode": "shift", "limit": 1})
    assert res.status_code == 200
    assert [it["media_id"] for it in res.json()] == [7]


def test_curator_outage_502(test_client, services):
    services.llm.fail_curator = True
    res = test_client.get("/v2/recommendations/mood")
    assert res.status_code == 502


def test_feedback_like(test_client, services):
    _setup_candidates(services)
    res = test_client.post(
        "/v2/recommendations/feedback",
        json={"media_id": 1, "title": "Paddington 2", "action": "like"},
    )
    assert res.status_code == 200
    data = res.json()
    assert data["action"] == "like"
    assert data["mood_vector"] != {k: 50 for k in data["mood_vector"]}


def test_feedback_rejects_unknown_action(test_client):
    res = test_client.post(
        "/v2/recommendations/feedback",
        json={"media_id": 1, "title": "Paddington 2", "action": "meh"},
    )
    assert res.status_code == 422


def test_replacement_quota_429(test_client, services):
    _setup_candidates(services)
    for expected in (2, 1, 0):
        res = test_client.post("/v2/recommendations/replacement", json={"exclude_ids": [2]})
        assert res.status_code == 200
        assert res.json()["status"] == "ok"
        assert res.json()["remaining"] == expected

    res = test_client.post("/v2/recommendations/replacement", json={})
    assert res.status_code == 429

    quota = test_client.get("/v2/recommendations/quota").json()
    assert quota == {"remaining": 0, "total": 3}


def test_quota_for_new_user(test_client):
    res = test_client.get("/v2/recommendations/quota")
    assert res.status_code == 200
    assert res.json() == {"remaining": 3, "total": 3}


def test_quota_maps_store_errors(test_client, services, monkeypatch):
    from moodreel_core.errors import Forbidden

    async def _denied(user_id):
        raise Forbidden("permission denied")

    monkeypatch.setattr(services.feedback.repo, "get", _denied)
    res = test_client.get("/v2/recommendations/quota")
    assert res.status_code == 403
