from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable

from moodreel_core.config import (
    CURATION_TEMPERATURE,
    EXTRA_CANDIDATES,
    RECOMMENDATION_CACHE_TTL,
)
from moodreel_core.errors import CandidateDiscoveryFailed, CompletionError
from moodreel_core.llm_client import CompletionService
from moodreel_core.timestamps import utcnow
from moodreel_core.types import MediaType, MoodVector
from moodreel_mood.fingerprint_store import FingerprintStore
from moodreel_mood.profile_service import MoodProfileService
from moodreel_ranking.similarity import (
    build_mood_description,
    curated_score,
    dominant_genres,
    invert,
    ordered_genres,
    shift_score,
)
from moodreel_tmdb.tmdb_client import CatalogService
from moodreel_user_context.watch_history_repo import WatchHistoryReader

from .cache_store import RecommendationCache
from .prompts import CURATOR_SYSTEM_PROMPT, build_curation_prompt
from .resolver import TitleResolver
from .schemas import (
    MoodRecommendation,
    RecommendationCacheEntry,
    RecommendationMode,
)

if TYPE_CHECKING:
    from moodreel_logging.rec_logger import TelemetryLogger

log = logging.getLogger(__name__)


def extract_titles(payload: Any, limit: int) -> list[str]:
    """
    Pull candidate titles out of the curator's JSON: a bare list, the
    "movies" or "titles" key, or failing that the first list value.
    """
    items: list[Any] = []
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict):
        for key in ("movies", "titles"):
            if isinstance(payload.get(key), list):
                items = payload[key]
                break
        else:
            items = next((v for v in payload.values() if isinstance(v, list)), [])

    out: list[str] = []
    seen: set[str] = set()
    for it in items:
        title = it.get("title") if isinstance(it, dict) else it
        if not isinstance(title, str) or not title.strip():
            continue
        key = title.strip().casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(title.strip())
    return out[:limit]


class CurationService:
    def __init__(
        self,
        profiles: MoodProfileService,
        history: WatchHistoryReader,
        fingerprints: FingerprintStore,
        resolver: TitleResolver,
        llm: CompletionService,
        cache: RecommendationCache,
        catalog: CatalogService,
        *,
        telemetry: "TelemetryLogger | None" = None,
        clock: Callable[[], datetime] = utcnow,
        cache_ttl: timedelta = RECOMMENDATION_CACHE_TTL,
        model: str | None = None,
        temperature: float = CURATION_TEMPERATURE,
        shift_pool_size: int = 500,
    ):
        self.profiles = profiles
        self.history = history
        self.fingerprints = fingerprints
        self.resolver = resolver
        self.llm = llm
        self.cache = cache
        self.catalog = catalog
        self.telemetry = telemetry
        self.clock = clock
        self.cache_ttl = cache_ttl
        self.model = model
        self.temperature = temperature
        self.shift_pool_size = shift_pool_size

    async def get_mood_based_recommendations(
        self,
        user_id: str,
        mode: RecommendationMode = RecommendationMode.MATCH,
        limit: int = 10,
        *,
        include_watched: bool = False,
        language: str | None = None,
        force_refresh: bool = False,
    ) -> list[MoodRecommendation]:
        if mode == RecommendationMode.SHIFT:
            return await self.get_shift_recommendations(
                user_id, limit, include_watched=include_watched, language=language
            )
        return await self.get_curated_recommendations(
            user_id, limit, language=language, force_refresh=force_refresh
        )

    # ---- match mode: AI-curated ----
    async def get_curated_recommendations(
        self,
        user_id: str,
        limit: int = 10,
        language: str | None = None,
        force_refresh: bool = False,
    ) -> list[MoodRecommendation]:
        now = self.clock()

        # 1) cached set
        if not force_refresh:
            entry = await self.cache.get(user_id, RecommendationMode.MATCH, now=now)
            if entry is not None and entry.items:
                return await self.resolver.hydrate(entry.items[:limit], language)

        # 2) profile -> description + target genres
        user_vector = await self.profiles.get_user_mood(user_id)
        description = build_mood_description(user_vector)
        target_genres = dominant_genres(user_vector)

        # 3) exclusions
        exclusions = await self.build_exclusions(user_id)

        # 4-5) candidates; none is a valid outcome, not a fallback trigger
        requested = limit + EXTRA_CANDIDATES
        titles = await self.request_candidates(description, target_genres, requested)
        if not titles:
            log.info("Curator returned no candidates for %s", user_id)
            return []

        # 6) resolve in parallel; drops come back as None
        resolved = await asyncio.gather(
            *(
                self.resolver.resolve(
                    t, exclude_ids=exclusions, language=language, force_refresh=force_refresh
                )
                for t in titles
            )
        )

        # 7-8) score, rank, truncate
        ranked: list[MoodRecommendation] = []
        seen: set[int] = set()
        for r in resolved:
            if r is None or r.record.mood_vector is None or r.record.media_id in seen:
                continue
            seen.add(r.record.media_id)
            score = curated_score(
                user_vector, r.record.mood_vector, r.record.genres, target_genres
            )
            ranked.append(
                MoodRecommendation.from_title(
                    r.record, score, is_newly_discovered=r.is_newly_discovered
                )
            )
        ranked.sort(key=lambda m: m.mood_similarity, reverse=True)
        ranked = ranked[:limit]

        # 9) persist, replacing any earlier set
        await self.cache.put(
            RecommendationCacheEntry(
                user_id=user_id,
                mode=RecommendationMode.MATCH,
                items=ranked,
                language=language,
                generated_at=now,
                expires_at=now + self.cache_ttl,
            )
        )

        if self.telemetry is not None:
            await self.telemetry.log_curation(
                query_id=str(uuid.uuid4()),
                user_id=user_id,
                mode=RecommendationMode.MATCH.value,
                mood_description=description,
                target_genres=ordered_genres(target_genres),
                candidates_requested=requested,
                candidates_returned=len(titles),
                results=ranked,
                language=language,
            )

        return ranked

    # ---- shift mode: analyzed catalog vs inverted profile ----
    async def get_shift_recommendations(
        self,
        user_id: str,
        limit: int = 10,
        *,
        include_watched: bool = False,
        language: str | None = None,
    ) -> list[MoodRecommendation]:
        user_vector = await self.profiles.get_user_mood(user_id)
        target = invert(user_vector)
        exclusions = set() if include_watched else await self.build_exclusions(user_id)

        pool = await self.fingerprints.list_analyzed(MediaType.MOVIE, self.shift_pool_size)
        scored = [
            (shift_score(target, t.mood_vector), t)
            for t in pool
            if t.mood_vector is not None and t.media_id not in exclusions
        ]
        scored.sort(key=lambda st: st[0], reverse=True)
        top = scored[:limit]

        localized = await asyncio.gather(
            *(self.resolver.localize(t, language) for _, t in top)
        )
        out = [
            MoodRecommendation.from_title(rec, score)
            for (score, _), rec in zip(top, localized)
        ]

        if len(out) < limit:
            out.extend(
                await self._neutral_fallbacks(
                    target, limit - len(out), exclusions | {m.media_id for m in out}, language
                )
            )
        return out

    async def _neutral_fallbacks(
        self,
        target: MoodVector,
        needed: int,
        exclude: set[int],
        language: str | None,
    ) -> list[MoodRecommendation]:
        popular = await self.catalog.get_popular(MediaType.MOVIE, language=language)
        neutral = MoodVector.neutral()
        score = shift_score(target, neutral)
        out: list[MoodRecommendation] = []
        for m in popular:
            if len(out) >= needed:
                break
            if m.media_id in exclude:
                continue
            exclude.add(m.media_id)
            out.append(
                MoodRecommendation(
                    media_id=m.media_id,
                    media_type=m.media_type,
                    title=m.title,
                    overview=m.overview,
                    poster_path=m.poster_path,
                    release_date=m.release_date,
                    mood_vector=neutral,
                    mood_similarity=score,
                )
            )
        return out

    # ---- shared steps ----
    async def build_exclusions(self, user_id: str) -> set[int]:
        return set(await self.history.fetch_watched_ids(user_id, MediaType.MOVIE))

    async def request_candidates(
        self, description: str, genres: set[str], count: int
    ) -> list[str]:
        try:
            payload = await self.llm.complete(
                system=CURATOR_SYSTEM_PROMPT,
                user=build_curation_prompt(description, genres, count),
                temperature=self.temperature,
                model=self.model,
            )
        except CompletionError as e:
            raise CandidateDiscoveryFailed(f"candidate request failed: {e}") from e
        return extract_titles(payload, count)
