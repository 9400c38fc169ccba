from datetime import datetime, timedelta, timezone

import pytest

from moodreel_core.errors import QuotaExceeded
from moodreel_core.types import MOOD_DIMENSIONS, MoodVector
from moodreel_feedback.adjustments import blend_toward, repel_from
from moodreel_feedback.feedback_service import refresh_quota
from moodreel_feedback.schemas import FeedbackAction, ReplacementStatus, UserFeedbackState
from moodreel_recommendation.schemas import RecommendationCacheEntry, RecommendationMode

from fakes import NOW, seed_title


def _flat(value: int) -> MoodVector:
    return MoodVector.clamped({d: value for d in MOOD_DIMENSIONS})


def test_blend_and_repel_math():
    assert blend_toward(_flat(50), _flat(100)) == _flat(65)
    assert repel_from(_flat(50), _flat(90)) == _flat(44)
    assert repel_from(_flat(50), _flat(10)) == _flat(56)
    # clamped at the edges
    assert repel_from(_flat(0), _flat(100)) == _flat(0)


def test_halves_round_up():
    assert blend_toward(_flat(0), _flat(15)) == _flat(5)
    assert repel_from(_flat(1), _flat(0)) == _flat(9)
    assert repel_from(_flat(0), _flat(20)) == _flat(5)
    assert MoodVector.clamped({"joy": 40.5}).joy == 41


def test_refresh_quota_resets_on_new_month():
    state = UserFeedbackState(user_id="u", quota_remaining=0, quota_month=2, quota_year=2026)
    same, changed = refresh_quota(state, datetime(2026, 2, 28, tzinfo=timezone.utc))
    assert not changed and same.quota_remaining == 0
    fresh, changed = refresh_quota(state, NOW)
    assert changed and fresh.quota_remaining == 3 and fresh.quota_month == 3


async def _prime_cache(services, user_id="u1"):
    await services.cache.put(
        RecommendationCacheEntry(
            user_id=user_id,
            mode=RecommendationMode.MATCH,
            items=[],
            generated_at=NOW,
            expires_at=NOW + timedelta(days=7),
        )
    )


@pytest.mark.asyncio
async def test_like_blends_profile_and_clears_cache(services, sb, redis_client):
    await services.profiles.set_user_mood("u1", _flat(50))
    seed_title(sb, 5, "Loud", {d: 100 for d in MOOD_DIMENSIONS})
    await _prime_cache(services)

    out = await services.feedback.submit_feedback("u1", 5, "Loud", FeedbackAction.LIKE)
    assert out.mood_vector == _flat(65)
    assert await services.profiles.get_user_mood("u1") == _flat(65)
    assert "moodreel:recs:u1:match" not in redis_client.store
    assert sb.rows("mood_snapshots")[0]["trigger"] == "feedback:like:5"
    assert sb.rows("user_feedback_state") == []


@pytest.mark.asyncio
async def test_dislike_repels_and_blacklists_once(services, sb, redis_client):
    await services.profiles.set_user_mood("u1", _flat(50))
    seed_title(sb, 6, "Grim", {d: 90 for d in MOOD_DIMENSIONS})
    await _prime_cache(services)

    out = await services.feedback.submit_feedback("u1", 6, "Grim", FeedbackAction.DISLIKE)
    assert out.mood_vector == _flat(44)
    assert "moodreel:recs:u1:match" not in redis_client.store

    await services.feedback.submit_feedback("u1", 6, "Grim", FeedbackAction.DISLIKE)
    state = sb.rows("user_feedback_state")[0]
    assert state["blacklist"] == [6]


@pytest.mark.asyncio
async def test_feedback_analyzes_unknown_titles(services, llm):
    await services.feedback.submit_feedback("u1", 42, "Brand New", FeedbackAction.LIKE)
    assert llm.analysis_calls == ["Brand New"]


@pytest.fixture()
def replacement_world(services, catalog, llm):
    catalog.add(1, "First Pick", genres=["Comedy"])
    catalog.add(2, "Second Pick", genres=["Drama"])
    llm.candidates = ["First Pick", "Second Pick"]
    return services


@pytest.mark.asyncio
async def test_quota_is_consumed_then_enforced(replacement_world, sb, llm):
    fb = replacement_world.feedback
    remaining = []
    for _ in range(3):
        res = await fb.get_single_replacement("u1")
        assert res.status == ReplacementStatus.OK
        remaining.append(res.remaining)
    assert remaining == [2, 1, 0]

    calls_before = len(llm.curator_calls)
    with pytest.raises(QuotaExceeded):
        await fb.get_single_replacement("u1")
    assert len(llm.curator_calls) == calls_before
    assert sb.rows("user_feedback_state")[0]["quota_remaining"] == 0
    assert (await fb.get_quota("u1")).remaining == 0


@pytest.mark.asyncio
async def test_quota_resets_next_month(replacement_world, clock):
    fb = replacement_world.feedback
    for _ in range(3):
        await fb.get_single_replacement("u1")
    clock.now = datetime(2026, 4, 1, 0, 5, tzinfo=timezone.utc)
    quota = await fb.get_quota("u1")
    assert quota.remaining == 3 and quota.total == 3


@pytest.mark.asyncio
async def test_replacement_skips_excluded_and_blacklisted(replacement_world, sb):
    fb = replacement_world.feedback
    res = await fb.get_single_replacement("u1", exclude_ids=[1])
    assert res.recommendation.media_id == 2

    sb.tables["user_feedback_state"][0]["blacklist"] = [2]
    res = await fb.get_single_replacement("u1", exclude_ids=[1])
    assert res.status == ReplacementStatus.NO_VALID_MOVIES
    assert res.recommendation is None
    assert res.remaining == 1


@pytest.mark.asyncio
async def test_replacement_without_suggestions(replacement_world, llm):
    llm.candidates = []
    res = await replacement_world.feedback.get_single_replacement("u1")
    assert res.status == ReplacementStatus.NO_SUGGESTIONS
    # the attempt still counts
    assert res.remaining == 2


@pytest.mark.asyncio
async def test_quota_for_new_user(services, sb):
    quota = await services.feedback.get_quota("nobody")
    assert quota.remaining == 3
    row = sb.rows("user_feedback_state")[0]
    assert (row["quota_month"], row["quota_year"]) == (3, 2026)
