from __future__ import annotations

from enum import Enum

from moodreel_core.config import MONTHLY_REPLACEMENT_QUOTA
from moodreel_core.types import MoodVector
from moodreel_recommendation.schemas import MoodRecommendation
from pydantic import BaseModel, Field


class FeedbackAction(str, Enum):
    LIKE = "like"
    DISLIKE = "dislike"


class UserFeedbackState(BaseModel):
    user_id: str
    blacklist: list[int] = Field(default_factory=list)
    quota_remaining: int = MONTHLY_REPLACEMENT_QUOTA
    quota_month: int  # 1-12
    quota_year: int


class FeedbackOutcome(BaseModel):
    action: FeedbackAction
    media_id: int
    mood_vector: MoodVector


class QuotaInfo(BaseModel):
    remaining: int
    total: int = MONTHLY_REPLACEMENT_QUOTA


class ReplacementStatus(str, Enum):
    OK = "ok"
    NO_SUGGESTIONS = "no_suggestions"
    NO_VALID_MOVIES = "no_valid_movies"


class ReplacementResult(BaseModel):
    status: ReplacementStatus
    recommendation: MoodRecommendation | None = None
    remaining: int
