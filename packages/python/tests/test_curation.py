from datetime import timedelta

import pytest

from moodreel_core.errors import CandidateDiscoveryFailed, Forbidden
from moodreel_core.types import MOOD_DIMENSIONS, MediaType, MoodVector, WatchHistoryEntry
from moodreel_ranking.similarity import invert, shift_score
from moodreel_recommendation.curation import extract_titles
from moodreel_recommendation.schemas import RecommendationCacheEntry, RecommendationMode
from postgrest.exceptions import APIError as PostgrestAPIError

from fakes import NOW, seed_title

CACHE_KEY = "moodreel:recs:u1:match"

# dominant: romance, joy, nostalgia
USER = {**{d: 20 for d in MOOD_DIMENSIONS}, "romance": 90, "joy": 80, "nostalgia": 70}
OFF_TARGET = {**{d: 20 for d in MOOD_DIMENSIONS}, "adrenaline": 70, "joy": 80, "romance": 40, "nostalgia": 30}


@pytest.fixture()
def curated_world(services, catalog, llm):
    catalog.add(1, "Twin Match", genres=["Drama"])
    catalog.add(2, "Bonus Pick", genres=["Comedy"])
    catalog.add(3, "No Bonus", genres=["Action"])
    llm.scores.update({"Twin Match": USER, "Bonus Pick": OFF_TARGET, "No Bonus": OFF_TARGET})
    llm.candidates = [{"title": "No Bonus"}, {"title": "Bonus Pick"}, {"title": "Twin Match"}]
    return services


async def _seed_user(services, scores=USER, user_id="u1"):
    await services.profiles.set_user_mood(user_id, MoodVector.clamped(scores))


def test_extract_titles_shapes():
    assert extract_titles({"movies": [{"title": "A"}, "B", {"title": "a"}, {"x": 1}]}, 10) == ["A", "B"]
    assert extract_titles(["A", "B", "C"], 2) == ["A", "B"]
    assert extract_titles({"picks": ["Z"]}, 5) == ["Z"]
    assert extract_titles("nope", 5) == []


@pytest.mark.asyncio
async def test_ranked_by_similarity_with_genre_bonus(curated_world, llm):
    await _seed_user(curated_world)
    recs = await curated_world.curation.get_curated_recommendations("u1", limit=10)

    assert [r.title for r in recs] == ["Twin Match", "Bonus Pick", "No Bonus"]
    assert recs[0].mood_similarity == 100.0
    assert recs[1].mood_similarity - recs[2].mood_similarity == pytest.approx(5.0, abs=0.05)
    assert all(r.is_newly_discovered for r in recs)
    assert len(llm.curator_calls) == 1
    # limit plus headroom for drops
    assert "Suggest 15 feature films" in llm.curator_calls[0]


@pytest.mark.asyncio
async def test_limit_truncates(curated_world):
    await _seed_user(curated_world)
    recs = await curated_world.curation.get_curated_recommendations("u1", limit=2)
    assert [r.title for r in recs] == ["Twin Match", "Bonus Pick"]


@pytest.mark.asyncio
async def test_cached_set_is_reused_until_expiry(curated_world, llm, redis_client, clock):
    await _seed_user(curated_world)
    first = await curated_world.curation.get_curated_recommendations("u1")
    assert redis_client.ttls[CACHE_KEY] == 7 * 24 * 3600

    clock.now = NOW + timedelta(days=6)
    cached = await curated_world.curation.get_curated_recommendations("u1")
    assert [r.media_id for r in cached] == [r.media_id for r in first]
    assert len(llm.curator_calls) == 1

    clock.now = NOW + timedelta(days=8)
    await curated_world.curation.get_curated_recommendations("u1")
    assert len(llm.curator_calls) == 2


@pytest.mark.asyncio
async def test_force_refresh_bypasses_cache(curated_world, llm):
    await _seed_user(curated_world)
    await curated_world.curation.get_curated_recommendations("u1")
    await curated_world.curation.get_curated_recommendations("u1", force_refresh=True)
    assert len(llm.curator_calls) == 2


@pytest.mark.asyncio
async def test_watched_titles_are_excluded(curated_world, history):
    await _seed_user(curated_world)
    history.watched["u1"] = {1}
    recs = await curated_world.curation.get_curated_recommendations("u1")
    assert 1 not in {r.media_id for r in recs}
    assert len(recs) == 2


@pytest.mark.asyncio
async def test_failed_candidates_are_skipped(curated_world, llm):
    await _seed_user(curated_world)
    llm.fail_titles.add("Bonus Pick")
    llm.candidates.append("Not In Catalog")
    recs = await curated_world.curation.get_curated_recommendations("u1")
    assert [r.title for r in recs] == ["Twin Match", "No Bonus"]


@pytest.mark.asyncio
async def test_no_candidates_returns_empty_without_caching(curated_world, llm, redis_client):
    await _seed_user(curated_world)
    llm.candidates = []
    assert await curated_world.curation.get_curated_recommendations("u1") == []
    assert CACHE_KEY not in redis_client.store


@pytest.mark.asyncio
async def test_empty_cached_entry_is_ignored(curated_world, llm):
    await _seed_user(curated_world)
    await curated_world.cache.put(
        RecommendationCacheEntry(
            user_id="u1",
            mode=RecommendationMode.MATCH,
            items=[],
            generated_at=NOW,
            expires_at=NOW + timedelta(days=7),
        )
    )
    recs = await curated_world.curation.get_curated_recommendations("u1")
    assert len(recs) == 3
    assert len(llm.curator_calls) == 1


@pytest.mark.asyncio
async def test_curator_failure_is_surfaced(curated_world, llm):
    await _seed_user(curated_world)
    llm.fail_curator = True
    with pytest.raises(CandidateDiscoveryFailed):
        await curated_world.curation.get_curated_recommendations("u1")


@pytest.mark.asyncio
async def test_redis_read_failure_counts_as_miss(curated_world, redis_client, llm):
    await _seed_user(curated_world)
    redis_client.fail_reads = True
    recs = await curated_world.curation.get_curated_recommendations("u1")
    assert len(recs) == 3
    assert len(llm.curator_calls) == 1


# ---- shift mode ----
def _shift_pool(sb):
    base = {d: 50 for d in MOOD_DIMENSIONS}
    seed_title(sb, 10, "Sunny", {**base, "joy": 90, "darkness": 10}, genres=["Comedy"])
    seed_title(sb, 11, "Grim", {**base, "joy": 5, "darkness": 95}, genres=["Horror"])


SHIFT_USER = {**{d: 50 for d in MOOD_DIMENSIONS}, "darkness": 90, "joy": 10}


@pytest.mark.asyncio
async def test_shift_prefers_the_opposite_mood(services, sb, llm):
    _shift_pool(sb)
    await _seed_user(services, SHIFT_USER)
    recs = await services.curation.get_mood_based_recommendations(
        "u1", RecommendationMode.SHIFT, limit=2
    )
    assert [r.title for r in recs] == ["Sunny", "Grim"]
    assert recs[0].mood_similarity > recs[1].mood_similarity
    assert llm.curator_calls == []


@pytest.mark.asyncio
async def test_shift_pads_with_neutral_popular_titles(services, sb, catalog):
    _shift_pool(sb)
    await _seed_user(services, SHIFT_USER)
    catalog.add(500, "Popular One")
    catalog.add(10, "Sunny")
    catalog.add(501, "Popular Two")
    catalog.popular = [500, 10, 501]

    recs = await services.curation.get_shift_recommendations("u1", limit=4)
    assert [r.media_id for r in recs] == [10, 11, 500, 501]
    target = invert(MoodVector.clamped(SHIFT_USER))
    assert recs[2].mood_vector == MoodVector.neutral()
    assert recs[2].mood_similarity == shift_score(target, MoodVector.neutral())


@pytest.mark.asyncio
async def test_shift_respects_include_watched(services, sb, history):
    _shift_pool(sb)
    await _seed_user(services, SHIFT_USER)
    history.watched["u1"] = {10}

    without = await services.curation.get_shift_recommendations("u1", limit=2)
    assert [r.media_id for r in without] == [11]

    with_watched = await services.curation.get_shift_recommendations(
        "u1", limit=2, include_watched=True
    )
    assert [r.media_id for r in with_watched] == [10, 11]


@pytest.mark.asyncio
async def test_shift_builds_profile_and_exclusions_from_history(services, sb, history):
    # rated history feeds the profile, watched ids feed exclusions
    _shift_pool(sb)
    history.add(
        "u2",
        WatchHistoryEntry(
            media_type=MediaType.MOVIE,
            media_id=11,
            title="Grim",
            rating=5.0,
            watched_at=NOW,
        ),
    )
    recs = await services.curation.get_shift_recommendations("u2", limit=5)
    assert [r.media_id for r in recs] == [10]


@pytest.mark.asyncio
async def test_store_write_failure_keeps_the_candidate(curated_world, monkeypatch):
    await _seed_user(curated_world)
    store = curated_world.fingerprints
    real_save = store.save_analysis

    async def _save(record):
        if record.media_id == 2:
            raise Forbidden("permission denied")
        return await real_save(record)

    monkeypatch.setattr(store, "save_analysis", _save)
    recs = await curated_world.curation.get_curated_recommendations("u1")
    assert [r.title for r in recs] == ["Twin Match", "Bonus Pick", "No Bonus"]
    assert await store.get(2, MediaType.MOVIE) is None


@pytest.mark.asyncio
async def test_store_read_failure_drops_only_that_candidate(curated_world, monkeypatch):
    await _seed_user(curated_world)
    store = curated_world.fingerprints
    real_find = store.find_by_title

    async def _find(title, media_type=MediaType.MOVIE):
        if title == "Bonus Pick":
            raise PostgrestAPIError({"message": "boom", "code": "XX000"})
        return await real_find(title, media_type)

    monkeypatch.setattr(store, "find_by_title", _find)
    recs = await curated_world.curation.get_curated_recommendations("u1")
    assert [r.title for r in recs] == ["Twin Match", "No Bonus"]
