from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable

from moodreel_core.config import MONTHLY_REPLACEMENT_QUOTA, REPLACEMENT_BATCH_SIZE
from moodreel_core.errors import QuotaExceeded
from moodreel_core.timestamps import utcnow
from moodreel_core.types import MediaId, MediaType
from moodreel_mood.analyzer import MoodAnalyzer
from moodreel_mood.profile_service import MoodProfileService
from moodreel_ranking.similarity import build_mood_description, curated_score, dominant_genres
from moodreel_recommendation.cache_store import RecommendationCache
from moodreel_recommendation.curation import CurationService
from moodreel_recommendation.schemas import MoodRecommendation, RecommendationMode

from .adjustments import blend_toward, repel_from
from .feedback_repo import FeedbackStateRepo
from .schemas import (
    FeedbackAction,
    FeedbackOutcome,
    QuotaInfo,
    ReplacementResult,
    ReplacementStatus,
    UserFeedbackState,
)

log = logging.getLogger(__name__)


def refresh_quota(
    state: UserFeedbackState, now: datetime
) -> tuple[UserFeedbackState, bool]:
    """Reset the allotment the first time a new calendar month is seen."""
    if state.quota_month == now.month and state.quota_year == now.year:
        return state, False
    return (
        state.model_copy(
            update={
                "quota_remaining": MONTHLY_REPLACEMENT_QUOTA,
                "quota_month": now.month,
                "quota_year": now.year,
            }
        ),
        True,
    )


class FeedbackService:
    def __init__(
        self,
        profiles: MoodProfileService,
        analyzer: MoodAnalyzer,
        repo: FeedbackStateRepo,
        curation: CurationService,
        cache: RecommendationCache,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.profiles = profiles
        self.analyzer = analyzer
        self.repo = repo
        self.curation = curation
        self.cache = cache
        self.clock = clock

    # Like / dislike
    async def submit_feedback(
        self,
        user_id: str,
        media_id: MediaId,
        title: str,
        action: FeedbackAction,
    ) -> FeedbackOutcome:
        title_vector = await self.analyzer.get_or_analyze(media_id, MediaType.MOVIE, title)
        current = await self.profiles.get_user_mood(user_id)

        if action == FeedbackAction.LIKE:
            updated = blend_toward(current, title_vector)
        else:
            state, _ = await self._load_state(user_id)
            if media_id not in state.blacklist:
                state = state.model_copy(update={"blacklist": [*state.blacklist, media_id]})
            await self.repo.save(state)
            updated = repel_from(current, title_vector)

        await self.profiles.set_user_mood(
            user_id, updated, trigger=f"feedback:{action.value}:{media_id}"
        )
        await self.cache.invalidate(user_id, RecommendationMode.MATCH)
        return FeedbackOutcome(action=action, media_id=media_id, mood_vector=updated)

    # Quota-gated single replacement
    async def get_single_replacement(
        self,
        user_id: str,
        exclude_ids: Iterable[MediaId] = (),
        language: str | None = None,
    ) -> ReplacementResult:
        state, _ = await self._load_state(user_id)
        if state.quota_remaining <= 0:
            raise QuotaExceeded("monthly replacement quota used up")

        state = state.model_copy(update={"quota_remaining": state.quota_remaining - 1})
        await self.repo.save(state)
        remaining = state.quota_remaining

        user_vector = await self.profiles.get_user_mood(user_id)
        target_genres = dominant_genres(user_vector)
        titles = await self.curation.request_candidates(
            build_mood_description(user_vector), target_genres, REPLACEMENT_BATCH_SIZE
        )
        if not titles:
            return ReplacementResult(status=ReplacementStatus.NO_SUGGESTIONS, remaining=remaining)

        excluded = set(exclude_ids) | set(state.blacklist)
        # sequential: stop at the first usable title
        for t in titles:
            resolved = await self.curation.resolver.resolve(
                t, exclude_ids=excluded, language=language
            )
            if resolved is None or resolved.record.mood_vector is None:
                continue
            score = curated_score(
                user_vector, resolved.record.mood_vector, resolved.record.genres, target_genres
            )
            return ReplacementResult(
                status=ReplacementStatus.OK,
                recommendation=MoodRecommendation.from_title(
                    resolved.record, score, is_newly_discovered=resolved.is_newly_discovered
                ),
                remaining=remaining,
            )

        log.info("No valid replacement among %d suggestions for %s", len(titles), user_id)
        return ReplacementResult(status=ReplacementStatus.NO_VALID_MOVIES, remaining=remaining)

    async def get_quota(self, user_id: str) -> QuotaInfo:
        state, changed = await self._load_state(user_id)
        if changed:
            await self.repo.save(state)
        return QuotaInfo(remaining=state.quota_remaining)

    async def _load_state(self, user_id: str) -> tuple[UserFeedbackState, bool]:
        now = self.clock()
        state = await self.repo.get(user_id)
        if state is None:
            return (
                UserFeedbackState(
                    user_id=user_id,
                    quota_remaining=MONTHLY_REPLACEMENT_QUOTA,
                    quota_month=now.month,
                    quota_year=now.year,
                ),
                True,
            )
        return refresh_quota(state, now)
