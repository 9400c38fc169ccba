from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Sequence

from moodreel_core.config import MIN_RATED_MOVIES, PROFILE_MAX_AGE
from moodreel_core.errors import DomainError
from moodreel_core.timestamps import utcnow
from moodreel_core.types import MOOD_DIMENSIONS, MediaType, MoodVector, WatchHistoryEntry
from moodreel_ranking.similarity import cosine_similarity
from moodreel_user_context.watch_history_repo import WatchHistoryReader
from postgrest.exceptions import APIError as PostgrestAPIError

from .analyzer import MoodAnalyzer
from .fingerprint_store import FingerprintStore
from .profile_builder import VectorKey, build_mood_vector
from .profile_repo import MoodProfileRepo
from .schemas import MoodComparison, MoodSnapshot, UserMoodProfile

log = logging.getLogger(__name__)

STRENGTH_THRESHOLD = 65


class MoodProfileService:
    def __init__(
        self,
        repo: MoodProfileRepo,
        history: WatchHistoryReader,
        fingerprints: FingerprintStore,
        analyzer: MoodAnalyzer,
        *,
        clock: Callable[[], datetime] = utcnow,
        max_age: timedelta = PROFILE_MAX_AGE,
        analysis_concurrency: int = 4,
    ):
        self.repo = repo
        self.history = history
        self.fingerprints = fingerprints
        self.analyzer = analyzer
        self.clock = clock
        self.max_age = max_age
        self.analysis_concurrency = analysis_concurrency

    # Current profile
    async def get_user_mood(self, user_id: str, force_recalculate: bool = False) -> MoodVector:
        profile = await self.get_profile(user_id, force_recalculate=force_recalculate)
        return profile.mood_vector

    async def get_profile(
        self, user_id: str, *, force_recalculate: bool = False
    ) -> UserMoodProfile:
        if not force_recalculate:
            cached = await self.repo.get_profile(user_id)
            if cached is not None and self.clock() - cached.last_computed < self.max_age:
                return cached
        return await self.recalculate(user_id)

    # Rebuild & store
    async def recalculate(self, user_id: str) -> UserMoodProfile:
        entries = await self.history.fetch_rated_history(user_id)
        vectors = await self._resolve_vectors(entries)
        vector, debug = build_mood_vector(entries, vectors, now=self.clock())
        log.info(
            "Rebuilt mood profile for %s (used=%d skipped=%d)",
            user_id,
            debug["used_n"],
            debug["skipped_n"],
        )
        return await self.set_user_mood(user_id, vector, trigger="recalculate")

    async def set_user_mood(
        self, user_id: str, vector: MoodVector, trigger: str | None = None
    ) -> UserMoodProfile:
        now = self.clock()
        profile = UserMoodProfile(user_id=user_id, mood_vector=vector, last_computed=now)
        await self.repo.save_profile(profile)
        await self.repo.upsert_snapshot(
            MoodSnapshot(
                user_id=user_id,
                mood_vector=vector,
                snapshot_date=now.date(),
                created_at=now,
                trigger=trigger,
            )
        )
        return profile

    # History & comparison
    async def get_timeline(self, user_id: str, days: int = 30) -> list[MoodSnapshot]:
        since = (self.clock() - timedelta(days=max(0, days))).date()
        return await self.repo.list_snapshots(user_id, since)

    async def compare(self, user_id: str, other_user_id: str) -> MoodComparison:
        mine, theirs = await asyncio.gather(
            self.get_user_mood(user_id), self.get_user_mood(other_user_id)
        )
        a, b = mine.as_dict(), theirs.as_dict()
        strong_a = {d for d in MOOD_DIMENSIONS if a[d] >= STRENGTH_THRESHOLD}
        strong_b = {d for d in MOOD_DIMENSIONS if b[d] >= STRENGTH_THRESHOLD}
        return MoodComparison(
            similarity=round(cosine_similarity(mine, theirs) * 100),
            differences={d: a[d] - b[d] for d in MOOD_DIMENSIONS},
            shared_strengths=[d for d in MOOD_DIMENSIONS if d in strong_a & strong_b],
            unique_to_user=[d for d in MOOD_DIMENSIONS if d in strong_a - strong_b],
            unique_to_other=[d for d in MOOD_DIMENSIONS if d in strong_b - strong_a],
        )

    async def has_enough_ratings(self, user_id: str) -> bool:
        return await self.history.count_rated(user_id, MediaType.MOVIE) >= MIN_RATED_MOVIES

    # ---- helpers ----
    async def _resolve_vectors(
        self, entries: Sequence[WatchHistoryEntry]
    ) -> dict[VectorKey, MoodVector]:
        out: dict[VectorKey, MoodVector] = {}

        # 1) bulk read from the fingerprint cache
        for media_type in {e.media_type for e in entries}:
            ids = [e.media_id for e in entries if e.media_type == media_type]
            cached = await self.fingerprints.get_many(media_type, ids)
            for mid, rec in cached.items():
                if rec.mood_vector is not None:
                    out[(media_type, mid)] = rec.mood_vector

        # 2) analyze the misses, one per title
        misses: dict[VectorKey, WatchHistoryEntry] = {}
        for e in entries:
            key = (e.media_type, e.media_id)
            if key not in out and key not in misses:
                misses[key] = e
        if not misses:
            return out

        sem = asyncio.Semaphore(self.analysis_concurrency)

        async def _one(entry: WatchHistoryEntry) -> MoodVector | None:
            async with sem:
                try:
                    return await self.analyzer.get_or_analyze(
                        entry.media_id, entry.media_type, entry.title, entry.overview
                    )
                except (DomainError, PostgrestAPIError, ValueError) as e:
                    log.warning(
                        "Skipping %s:%s (%r) in mood profile: %s",
                        entry.media_type.value,
                        entry.media_id,
                        entry.title,
                        e,
                    )
                    return None

        keys = list(misses)
        results = await asyncio.gather(*(_one(misses[k]) for k in keys))
        for key, vec in zip(keys, results):
            if vec is not None:
                out[key] = vec
        return out
