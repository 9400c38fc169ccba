from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from moodreel_core.config import ANALYSIS_TEMPERATURE
from moodreel_core.errors import (
    AnalysisUnavailable,
    CompletionError,
    DomainError,
    TitleNotFound,
)
from moodreel_core.llm_client import CompletionService
from moodreel_core.timestamps import utcnow
from moodreel_core.types import MOOD_DIMENSIONS, MediaId, MediaType, MoodVector
from postgrest.exceptions import APIError as PostgrestAPIError

from .fingerprint_store import FingerprintStore
from .prompts import ANALYSIS_SYSTEM_PROMPT, build_analysis_prompt
from .schemas import AnalyzedTitle

log = logging.getLogger(__name__)


@dataclass
class AnalysisRequest:
    title: str
    synopsis: str | None = None
    director: str | None = None
    cast: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ParsedMood:
    shape: Literal["nested", "flat"]
    vector: MoodVector
    reasoning: str | None = None


@dataclass(frozen=True)
class PolarizationReport:
    strong: int  # dimensions <= 30 or >= 70
    extreme: int  # dimensions <= 20 or >= 80
    clustered: bool  # every dimension inside 40–60

    @property
    def ok(self) -> bool:
        return self.strong >= 4 and self.extreme >= 2 and not self.clustered


def _has_dimension(obj: dict) -> bool:
    return any(d in obj for d in MOOD_DIMENSIONS)


def parse_mood_response(payload: Any) -> ParsedMood:
    """
    Nested {"reasoning", "scores"} first, then the flat shape with the
    dimension keys at the top level. Anything else fails closed.
    """
    if not isinstance(payload, dict):
        raise AnalysisUnavailable("mood response is not a JSON object")

    scores = payload.get("scores")
    if isinstance(scores, dict) and _has_dimension(scores):
        reasoning = payload.get("reasoning")
        return ParsedMood(
            shape="nested",
            vector=MoodVector.clamped(scores),
            reasoning=reasoning if isinstance(reasoning, str) else None,
        )

    if _has_dimension(payload):
        return ParsedMood(shape="flat", vector=MoodVector.clamped(payload))

    raise AnalysisUnavailable("mood response has no recognizable scores")


def polarization_report(v: MoodVector) -> PolarizationReport:
    vals = v.as_tuple()
    return PolarizationReport(
        strong=sum(1 for x in vals if x <= 30 or x >= 70),
        extreme=sum(1 for x in vals if x <= 20 or x >= 80),
        clustered=all(40 <= x <= 60 for x in vals),
    )


class MoodAnalyzer:
    def __init__(
        self,
        llm: CompletionService,
        store: FingerprintStore,
        *,
        model: str | None = None,
        temperature: float = ANALYSIS_TEMPERATURE,
    ):
        self.llm = llm
        self.store = store
        self.model = model
        self.temperature = temperature

    async def analyze(self, req: AnalysisRequest) -> MoodVector:
        if not req.title or not req.title.strip():
            raise ValueError("title must be non-empty")

        try:
            payload = await self.llm.complete(
                system=ANALYSIS_SYSTEM_PROMPT,
                user=build_analysis_prompt(req),
                temperature=self.temperature,
                model=self.model,
            )
        except CompletionError as e:
            raise AnalysisUnavailable(f"analysis of {req.title!r} failed: {e}") from e

        parsed = parse_mood_response(payload)
        report = polarization_report(parsed.vector)
        if not report.ok:
            log.warning(
                "Suspect mood analysis for %r (shape=%s strong=%d extreme=%d clustered=%s)",
                req.title,
                parsed.shape,
                report.strong,
                report.extreme,
                report.clustered,
            )
        return parsed.vector

    async def get_or_analyze(
        self,
        media_id: MediaId,
        media_type: MediaType,
        title: str,
        synopsis: str | None = None,
        *,
        director: str | None = None,
        cast: list[str] | None = None,
        keywords: list[str] | None = None,
        metadata: AnalyzedTitle | None = None,
    ) -> MoodVector:
        """
        Read-through: a stored vector is returned untouched. On a miss the
        fresh analysis is persisted set-on-insert and returned to this caller
        even if a concurrent writer's vector won the store, or the write failed.
        """
        existing = await self.store.get(media_id, media_type)
        if existing is not None and existing.mood_vector is not None:
            return existing.mood_vector

        vector = await self.analyze(
            AnalysisRequest(
                title=title,
                synopsis=synopsis,
                director=director,
                cast=list(cast or []),
                keywords=list(keywords or []),
            )
        )

        base = metadata or existing or AnalyzedTitle(
            media_id=media_id, media_type=media_type, title=title, overview=synopsis
        )
        record = base.model_copy(
            update={"mood_vector": vector, "analyzed_at": utcnow()}
        )
        try:
            await self.store.save_analysis(record)
        except (DomainError, PostgrestAPIError) as e:
            log.warning(
                "Could not store analysis of %s:%s (%r): %s",
                media_type.value,
                media_id,
                title,
                e,
            )
        return vector

    async def reanalyze(self, media_id: MediaId, media_type: MediaType) -> MoodVector:
        existing = await self.store.get(media_id, media_type)
        if existing is None:
            raise TitleNotFound(f"{media_type.value}:{media_id} has not been analyzed")
        vector = await self.analyze(
            AnalysisRequest(title=existing.title, synopsis=existing.overview)
        )
        await self.store.overwrite_mood(media_id, media_type, vector)
        return vector
