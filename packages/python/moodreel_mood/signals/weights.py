from datetime import datetime

from moodreel_core.types import WatchHistoryEntry

from .decay import time_decay

DEFAULT_RATING_WEIGHT = 0.5


def rating_weight(rating: float | None) -> float:
    """
    Map a 1–5 star rating → [0.2, 1.0] multiplier.
    Unrated or out-of-range ratings fall back to 0.5.
    """
    if rating is None:
        return DEFAULT_RATING_WEIGHT
    try:
        r = float(rating)
    except (TypeError, ValueError):
        return DEFAULT_RATING_WEIGHT
    if not 1.0 <= r <= 5.0:
        return DEFAULT_RATING_WEIGHT
    return r / 5.0


def entry_weight(entry: WatchHistoryEntry, now: datetime) -> float:
    return rating_weight(entry.rating) * time_decay(entry.watched_at, now)
