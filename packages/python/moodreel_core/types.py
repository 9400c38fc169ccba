from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

MediaId = int

MOOD_DIMENSIONS: tuple[str, ...] = (
    "adrenaline",
    "melancholy",
    "joy",
    "tension",
    "intellect",
    "romance",
    "wonder",
    "nostalgia",
    "darkness",
    "inspiration",
)


class MediaType(str, Enum):
    MOVIE = "movie"
    TV = "tv"  # "series" in user-facing copy


def _clamp_score(value: Any, default: int) -> int:
    try:
        f = float(value)
    except (TypeError, ValueError):
        return default
    if f != f:  # NaN
        return default
    # halves round up
    return int(math.floor(max(0.0, min(100.0, f)) + 0.5))


class MoodVector(BaseModel):
    """
    10-dimension emotional fingerprint, every field an integer in [0, 100].

    Immutable; arithmetic helpers operate on the ordered tuple in
    MOOD_DIMENSIONS order.
    """

    model_config = ConfigDict(frozen=True)

    adrenaline: int = Field(50, ge=0, le=100)
    melancholy: int = Field(50, ge=0, le=100)
    joy: int = Field(50, ge=0, le=100)
    tension: int = Field(50, ge=0, le=100)
    intellect: int = Field(50, ge=0, le=100)
    romance: int = Field(50, ge=0, le=100)
    wonder: int = Field(50, ge=0, le=100)
    nostalgia: int = Field(50, ge=0, le=100)
    darkness: int = Field(50, ge=0, le=100)
    inspiration: int = Field(50, ge=0, le=100)

    @classmethod
    def neutral(cls) -> "MoodVector":
        return cls()

    @classmethod
    def clamped(cls, values: Mapping[str, Any], default: int = 0) -> "MoodVector":
        """Build from loosely-typed input: coerce, clamp to [0,100], round half up."""
        return cls(**{d: _clamp_score(values.get(d), default) for d in MOOD_DIMENSIONS})

    @classmethod
    def from_array(cls, arr: Iterable[float]) -> "MoodVector":
        vals = list(arr)
        if len(vals) != len(MOOD_DIMENSIONS):
            raise ValueError(f"expected {len(MOOD_DIMENSIONS)} values, got {len(vals)}")
        return cls.clamped(dict(zip(MOOD_DIMENSIONS, vals)))

    def as_tuple(self) -> tuple[int, ...]:
        return tuple(getattr(self, d) for d in MOOD_DIMENSIONS)

    def as_array(self) -> np.ndarray:
        return np.asarray(self.as_tuple(), dtype=np.float64)

    def as_dict(self) -> dict[str, int]:
        return {d: getattr(self, d) for d in MOOD_DIMENSIONS}


@dataclass
class WatchHistoryEntry:
    media_type: MediaType
    media_id: MediaId  # tmdb id
    title: str
    rating: float | None  # 1–5 stars
    watched_at: datetime  # tz-aware
    overview: str | None = None
