from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from moodreel_core.types import MediaType, MoodVector
from moodreel_mood.schemas import AnalyzedTitle
from pydantic import BaseModel, Field


class RecommendationMode(str, Enum):
    MATCH = "match"
    SHIFT = "shift"


class MoodRecommendation(BaseModel):
    media_id: int
    media_type: MediaType = MediaType.MOVIE
    title: str
    overview: str | None = None
    poster_path: str | None = None
    genres: list[str] = Field(default_factory=list)
    release_date: str | None = None
    mood_vector: MoodVector
    mood_similarity: float
    is_newly_discovered: bool = False

    @classmethod
    def from_title(
        cls, record: AnalyzedTitle, score: float, *, is_newly_discovered: bool = False
    ) -> "MoodRecommendation":
        return cls(
            media_id=record.media_id,
            media_type=record.media_type,
            title=record.title,
            overview=record.overview,
            poster_path=record.poster_path,
            genres=list(record.genres),
            release_date=record.release_date,
            mood_vector=record.mood_vector or MoodVector.neutral(),
            mood_similarity=score,
            is_newly_discovered=is_newly_discovered,
        )


class RecommendationCacheEntry(BaseModel):
    user_id: str
    mode: RecommendationMode
    items: list[MoodRecommendation] = Field(default_factory=list)
    language: str | None = None
    generated_at: datetime
    expires_at: datetime


@dataclass
class ResolvedTitle:
    record: AnalyzedTitle  # display fields already in the requested language
    is_newly_discovered: bool = False
