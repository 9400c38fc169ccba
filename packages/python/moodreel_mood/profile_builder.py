from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

import numpy as np
from moodreel_core.types import MediaId, MediaType, MoodVector, WatchHistoryEntry

from .signals.weights import entry_weight

VectorKey = tuple[MediaType, MediaId]


# weighted average vectors
def _wmean(vecs: list[np.ndarray], w: list[float]) -> np.ndarray:
    acc = np.zeros_like(vecs[0], dtype=np.float64)
    s = float(sum(w))
    for v, ww in zip(vecs, w):
        acc += v * ww
    return acc / s


def build_mood_vector(
    entries: Sequence[WatchHistoryEntry],
    vectors: Mapping[VectorKey, MoodVector],
    *,
    now: datetime | None = None,
) -> tuple[MoodVector, dict[str, Any]]:
    """
    Aggregate a user's mood vector from rated history:

    - weight = rating_weight(rating) * time_decay(watched_at)
    - per-dimension weighted mean, rounded half up to an integer
    - neutral vector when nothing usable contributes weight
    """
    now = now or datetime.now(timezone.utc)

    vecs: list[np.ndarray] = []
    weights: list[float] = []
    skipped = 0
    for e in entries:
        v = vectors.get((e.media_type, e.media_id))
        if v is None:
            skipped += 1
            continue
        w = entry_weight(e, now)
        if w <= 0:
            skipped += 1
            continue
        vecs.append(v.as_array())
        weights.append(w)

    total = float(sum(weights))
    if not vecs or total == 0:
        vec = MoodVector.neutral()
    else:
        vec = MoodVector.from_array(np.floor(_wmean(vecs, weights) + 0.5))

    debug = {
        "used_n": len(vecs),
        "skipped_n": skipped,
        "total_weight": total,
    }
    return vec, debug
