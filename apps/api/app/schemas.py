from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field
from moodreel_core.types import MediaType, MoodVector
from moodreel_feedback.schemas import FeedbackAction
from moodreel_mood.archetypes import MoodArchetype


class ArchetypeOut(BaseModel):
    name: str
    display_name: str
    emoji: str
    description: str

    @classmethod
    def from_archetype(cls, a: MoodArchetype) -> "ArchetypeOut":
        return cls(
            name=a.name,
            display_name=a.display_name,
            emoji=a.emoji,
            description=a.description,
        )


class MoodProfileOut(BaseModel):
    mood_vector: MoodVector
    description: str
    last_computed: datetime
    archetype: ArchetypeOut
    ready: bool  # enough rated movies for a meaningful profile


class AnalyzeTitleRequest(BaseModel):
    title: str = Field(..., min_length=1, examples=["Blade Runner"])
    lang: str | None = None


class AnalyzedTitleOut(BaseModel):
    media_id: int
    media_type: MediaType
    title: str
    overview: str | None = None
    poster_path: str | None = None
    genres: list[str] = Field(default_factory=list)
    release_date: str | None = None
    mood_vector: MoodVector
    is_newly_discovered: bool = False


class FeedbackRequest(BaseModel):
    media_id: int
    title: str = Field(..., min_length=1)
    action: FeedbackAction


class ReplacementRequest(BaseModel):
    exclude_ids: list[int] = Field(default_factory=list)
    lang: str | None = None
