from moodreel_core.config import DISLIKE_INFLUENCE, LIKE_INFLUENCE
from moodreel_core.types import MOOD_DIMENSIONS, MoodVector

NEUTRAL_MIDPOINT = 50


def blend_toward(current: MoodVector, title: MoodVector, influence: float = LIKE_INFLUENCE) -> MoodVector:
    """Move each dimension `influence` of the way toward the title."""
    return MoodVector.clamped(
        {
            d: getattr(current, d) * (1 - influence) + getattr(title, d) * influence
            for d in MOOD_DIMENSIONS
        }
    )


def repel_from(current: MoodVector, title: MoodVector, influence: float = DISLIKE_INFLUENCE) -> MoodVector:
    """Push away from the title's deviation from the neutral midpoint."""
    return MoodVector.clamped(
        {
            d: getattr(current, d) - (getattr(title, d) - NEUTRAL_MIDPOINT) * influence
            for d in MOOD_DIMENSIONS
        }
    )
