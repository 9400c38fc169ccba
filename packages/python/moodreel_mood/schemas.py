from __future__ import annotations

from datetime import date, datetime

from moodreel_core.types import MediaType, MoodVector
from pydantic import BaseModel, Field


class TitleTranslation(BaseModel):
    title: str
    overview: str | None = None
    poster_path: str | None = None
    genres: list[str] = Field(default_factory=list)
    fetched_at: datetime | None = None


class AnalyzedTitle(BaseModel):
    media_id: int
    media_type: MediaType
    title: str
    overview: str | None = None
    poster_path: str | None = None
    genres: list[str] = Field(default_factory=list)
    release_date: str | None = None
    mood_vector: MoodVector | None = None
    translations: dict[str, TitleTranslation] = Field(default_factory=dict)
    analyzed_at: datetime | None = None


class UserMoodProfile(BaseModel):
    user_id: str
    mood_vector: MoodVector
    last_computed: datetime


class MoodSnapshot(BaseModel):
    user_id: str
    mood_vector: MoodVector
    snapshot_date: date
    created_at: datetime
    trigger: str | None = None


class MoodComparison(BaseModel):
    similarity: float  # percentage
    differences: dict[str, int]  # self - other, per dimension
    shared_strengths: list[str]
    unique_to_user: list[str]
    unique_to_other: list[str]
