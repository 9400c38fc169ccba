from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Collection, Sequence

from moodreel_core.config import DEFAULT_LANGUAGE
from moodreel_core.errors import CatalogUnavailable, DomainError, TitleNotFound
from moodreel_core.timestamps import utcnow
from moodreel_core.types import MediaType
from moodreel_mood.analyzer import MoodAnalyzer
from moodreel_mood.fingerprint_store import FingerprintStore
from moodreel_mood.schemas import AnalyzedTitle, TitleTranslation
from moodreel_tmdb.tmdb_client import CatalogDetails, CatalogService
from postgrest.exceptions import APIError as PostgrestAPIError

from .schemas import MoodRecommendation, ResolvedTitle

log = logging.getLogger(__name__)


def _normalize_language(language: str | None) -> str:
    return (language or DEFAULT_LANGUAGE).strip().lower() or DEFAULT_LANGUAGE


def _translation_from(details: CatalogDetails, now: datetime) -> TitleTranslation:
    return TitleTranslation(
        title=details.title,
        overview=details.overview,
        poster_path=details.poster_path,
        genres=list(details.genres),
        fetched_at=now,
    )


def _title_from(details: CatalogDetails) -> AnalyzedTitle:
    return AnalyzedTitle(
        media_id=details.media_id,
        media_type=details.media_type,
        title=details.title,
        overview=details.overview,
        poster_path=details.poster_path,
        genres=list(details.genres),
        release_date=details.release_date,
    )


def apply_language(record: AnalyzedTitle, language: str) -> AnalyzedTitle:
    """Swap display fields for the cached translation, when there is one."""
    tr = record.translations.get(language)
    if tr is None:
        return record
    return record.model_copy(
        update={
            "title": tr.title or record.title,
            "overview": tr.overview or record.overview,
            "poster_path": tr.poster_path or record.poster_path,
            "genres": list(tr.genres) or list(record.genres),
        }
    )


class TitleResolver:
    """
    Free-text title -> analyzed catalog entry, in the caller's language.

    Stored fields are English; other languages live in the record's
    translation map and are fetched from the catalog on first use.
    """

    def __init__(
        self,
        fingerprints: FingerprintStore,
        catalog: CatalogService,
        analyzer: MoodAnalyzer,
        *,
        media_type: MediaType = MediaType.MOVIE,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.fingerprints = fingerprints
        self.catalog = catalog
        self.analyzer = analyzer
        self.media_type = media_type
        self.clock = clock

    # Candidate resolution (batch-safe)
    async def resolve(
        self,
        title: str,
        *,
        exclude_ids: Collection[int] = (),
        language: str | None = None,
        force_refresh: bool = False,
    ) -> ResolvedTitle | None:
        """Returns None for excluded, unknown or unanalyzable titles."""
        try:
            return await self._resolve(title, exclude_ids, language, force_refresh)
        except TitleNotFound:
            log.info("No catalog match for candidate %r", title)
        except (DomainError, PostgrestAPIError) as e:
            log.warning("Dropping candidate %r: %s", title, e)
        return None

    # Direct, user-specified title
    async def resolve_title(self, title: str, language: str | None = None) -> ResolvedTitle:
        resolved = await self._resolve(title, (), language, False)
        if resolved is None:
            raise TitleNotFound(title)
        return resolved

    async def localize(
        self, record: AnalyzedTitle, language: str | None, force_refresh: bool = False
    ) -> AnalyzedTitle:
        lang = _normalize_language(language)

        if lang == DEFAULT_LANGUAGE:
            if not record.genres:
                details = await self.catalog.get_details(
                    record.media_type, record.media_id, DEFAULT_LANGUAGE
                )
                if details is not None and details.genres:
                    await self.fingerprints.backfill_genres(
                        record.media_id, record.media_type, details.genres
                    )
                    record = record.model_copy(update={"genres": list(details.genres)})
            return record

        if force_refresh or lang not in record.translations:
            details = await self.catalog.get_details(record.media_type, record.media_id, lang)
            if details is not None:
                tr = _translation_from(details, self.clock())
                await self.fingerprints.put_translation(
                    record.media_id, record.media_type, lang, tr
                )
                record = record.model_copy(
                    update={"translations": {**record.translations, lang: tr}}
                )
        return apply_language(record, lang)

    async def hydrate(
        self,
        items: Sequence[MoodRecommendation],
        language: str | None,
        force_refresh: bool = False,
    ) -> list[MoodRecommendation]:
        """Re-render cached recommendations in the requested language."""
        if not items:
            return []
        by_type: dict[MediaType, list[int]] = {}
        for it in items:
            by_type.setdefault(it.media_type, []).append(it.media_id)
        stored: dict[tuple[MediaType, int], AnalyzedTitle] = {}
        for mt, ids in by_type.items():
            for mid, rec in (await self.fingerprints.get_many(mt, ids)).items():
                stored[(mt, mid)] = rec

        async def _one(item: MoodRecommendation) -> MoodRecommendation:
            rec = stored.get((item.media_type, item.media_id))
            if rec is None:
                return item
            try:
                localized = await self.localize(rec, language, force_refresh)
            except (DomainError, PostgrestAPIError) as e:
                log.warning("Keeping cached display fields for %s: %s", item.media_id, e)
                return item
            return MoodRecommendation.from_title(
                localized,
                item.mood_similarity,
                is_newly_discovered=item.is_newly_discovered,
            )

        return list(await asyncio.gather(*(_one(it) for it in items)))

    # ---- internals ----
    async def _resolve(
        self,
        title: str,
        exclude_ids: Collection[int],
        language: str | None,
        force_refresh: bool,
    ) -> ResolvedTitle | None:
        lang = _normalize_language(language)
        title = (title or "").strip()
        if not title:
            raise TitleNotFound("empty title")

        # 1) already analyzed under this exact title
        cached = await self.fingerprints.find_by_title(title, self.media_type)
        if cached is not None:
            if cached.media_id in exclude_ids:
                return None
            return ResolvedTitle(record=await self.localize(cached, lang, force_refresh))

        # 2) catalog search (English, matching the stored fields)
        match = await self.catalog.search(self.media_type, title, language=DEFAULT_LANGUAGE)
        if match is None:
            raise TitleNotFound(title)
        if match.media_id in exclude_ids:
            return None

        details = await self.catalog.get_details(
            self.media_type, match.media_id, DEFAULT_LANGUAGE
        )
        if details is None:
            raise CatalogUnavailable(f"no details for {self.media_type.value}:{match.media_id}")

        record = _title_from(details)
        vector = await self.analyzer.get_or_analyze(
            details.media_id,
            details.media_type,
            details.title,
            details.overview,
            director=details.director,
            cast=details.stars,
            keywords=details.keywords,
            metadata=record,
        )
        record = record.model_copy(update={"mood_vector": vector})

        if lang != DEFAULT_LANGUAGE:
            record = await self.localize(record, lang, force_refresh=True)

        return ResolvedTitle(record=record, is_newly_discovered=True)
