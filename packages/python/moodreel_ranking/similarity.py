from __future__ import annotations

from typing import Iterable

import numpy as np
from moodreel_core.config import GENRE_MATCH_BONUS
from moodreel_core.types import MOOD_DIMENSIONS, MoodVector

MOOD_GENRE_MAP: dict[str, list[str]] = {
    "adrenaline": ["Action", "Adventure", "War"],
    "melancholy": ["Drama"],
    "joy": ["Comedy", "Family", "Animation", "Music"],
    "tension": ["Thriller", "Horror"],
    "intellect": ["Science Fiction", "Mystery", "Documentary", "Crime"],
    "romance": ["Romance"],
    "wonder": ["Fantasy", "Science Fiction", "Adventure"],
    "nostalgia": ["History", "Western"],
    "darkness": ["Horror", "Crime", "Mystery"],
    "inspiration": ["Documentary", "History", "Drama"],
}

DIMENSION_LABELS: dict[str, str] = {
    "adrenaline": "High Adrenaline",
    "melancholy": "Melancholic",
    "joy": "Joyful",
    "tension": "Tense",
    "intellect": "Intellectual",
    "romance": "Romantic",
    "wonder": "Wonderous",
    "nostalgia": "Nostalgic",
    "darkness": "Dark",
    "inspiration": "Inspiring",
}

BALANCED_DESCRIPTION = "Balanced mood across all dimensions"

# (dimension, target predicate, candidate predicate, penalty)
_POLARITY_PENALTIES = (
    ("darkness", lambda t: t >= 80, lambda c: c <= 40, 0.30),
    ("joy", lambda t: t <= 20, lambda c: c >= 80, 0.30),
    ("tension", lambda t: t >= 80, lambda c: c <= 40, 0.20),
)


# ---- vector math ----
def cosine_similarity(a: MoodVector, b: MoodVector) -> float:
    """Cosine in [-1, 1]; 0.0 when either side has zero magnitude."""
    va, vb = a.as_array(), b.as_array()
    na, nb = float(np.linalg.norm(va)), float(np.linalg.norm(vb))
    if na == 0 or nb == 0:
        return 0.0
    sim = float(np.dot(va, vb) / (na * nb))
    return max(-1.0, min(1.0, sim))


def to_percentage(sim: float) -> float:
    """Linear remap of [-1, 1] onto [0, 100]."""
    sim = max(-1.0, min(1.0, sim))
    return (sim + 1.0) / 2.0 * 100.0


def invert(v: MoodVector) -> MoodVector:
    return MoodVector(**{d: 100 - getattr(v, d) for d in MOOD_DIMENSIONS})


def _clamp_round(score: float) -> float:
    return round(max(0.0, min(100.0, score)), 1)


# ---- descriptions / genres ----
def _ranked(v: MoodVector, *, descending: bool) -> list[tuple[str, int]]:
    # stable sort keeps MOOD_DIMENSIONS order among ties
    return sorted(v.as_dict().items(), key=lambda kv: -kv[1] if descending else kv[1])


def dominant_dimensions(v: MoodVector, n: int = 3) -> list[str]:
    return [d for d, _ in _ranked(v, descending=True)[:n]]


def build_mood_description(v: MoodVector) -> str:
    high = [d for d, val in _ranked(v, descending=True) if val >= 60][:3]
    low = [d for d, val in _ranked(v, descending=False) if val < 40][:2]

    parts = [DIMENSION_LABELS[d] for d in high]
    parts += [f"Low {DIMENSION_LABELS[d]}" for d in low]
    return ", ".join(parts) if parts else BALANCED_DESCRIPTION


def dominant_genres(v: MoodVector) -> set[str]:
    genres: set[str] = set()
    for d in dominant_dimensions(v, 3):
        genres.update(MOOD_GENRE_MAP.get(d, []))
    return genres


def ordered_genres(genres: Iterable[str]) -> list[str]:
    """Deterministic genre order for prompts and payloads."""
    return sorted(set(genres))


# ---- scoring ----
def polarity_penalty(target: MoodVector, candidate: MoodVector) -> float:
    penalty = 0.0
    for dim, target_hit, cand_hit, amount in _POLARITY_PENALTIES:
        if target_hit(getattr(target, dim)) and cand_hit(getattr(candidate, dim)):
            penalty += amount
    return penalty


def shift_score(target: MoodVector, candidate: MoodVector) -> float:
    """
    Penalty-adjusted score for ranking the analyzed catalog against a
    target vector. Only used outside the AI-curated path.
    """
    base = cosine_similarity(target, candidate)
    raw = max(0.0, base - polarity_penalty(target, candidate))
    return _clamp_round(raw * 100.0)


def curated_score(
    user: MoodVector,
    title: MoodVector,
    genres: Iterable[str],
    target_genres: set[str],
) -> float:
    score = cosine_similarity(user, title) * 100.0
    if target_genres and any(g in target_genres for g in genres):
        score += GENRE_MATCH_BONUS
    return _clamp_round(score)
