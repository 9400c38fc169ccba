from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from moodreel_core.types import MoodVector


@dataclass(frozen=True)
class MoodArchetype:
    name: str
    display_name: str
    emoji: str
    description: str


_Rule = tuple[MoodArchetype, Callable[[MoodVector], bool]]

# first match wins
_RULES: list[_Rule] = [
    (
        MoodArchetype("vigilante", "The Vigilante", "🦇", "Drawn to dark, action-packed stories of justice"),
        lambda m: m.adrenaline > 70 and m.darkness > 70,
    ),
    (
        MoodArchetype("philosopher", "The Philosopher", "🤔", "Seeks profound, thought-provoking narratives"),
        lambda m: m.intellect > 70 and m.melancholy > 50,
    ),
    (
        MoodArchetype("thrill_seeker", "The Thrill Seeker", "🎢", "Lives for edge-of-seat tension and excitement"),
        lambda m: m.adrenaline > 80 and m.tension > 60,
    ),
    (
        MoodArchetype("hopeless_romantic", "The Hopeless Romantic", "💕", "Heart yearns for love stories and happy endings"),
        lambda m: m.romance > 80 and m.joy > 50,
    ),
    (
        MoodArchetype("explorer", "The Explorer", "🧭", "Craves wonder, discovery and new worlds"),
        lambda m: m.wonder > 80 and m.intellect > 60,
    ),
    (
        MoodArchetype("comfort_seeker", "The Comfort Seeker", "🛋️", "Finds solace in joyful, nostalgic comfort watches"),
        lambda m: m.joy > 70 and m.nostalgia > 60,
    ),
    (
        MoodArchetype("critic", "The Critic", "🎭", "High standards, favors complex intellectual fare"),
        lambda m: m.intellect > 80 and m.joy < 30,
    ),
    (
        MoodArchetype("dreamer", "The Dreamer", "✨", "Lost in wonder, inspiration and imaginative stories"),
        lambda m: m.wonder > 70 and m.inspiration > 70,
    ),
    (
        MoodArchetype("night_owl", "The Night Owl", "🌙", "Drawn to darkness, mystery and nocturnal tales"),
        lambda m: m.darkness > 75 and m.tension > 50,
    ),
    (
        MoodArchetype("nostalgic", "The Nostalgic", "📼", "Lives for throwbacks and memory lane journeys"),
        lambda m: m.nostalgia > 80,
    ),
]

DEFAULT_ARCHETYPE = MoodArchetype(
    "cinephile", "The Cinephile", "🎬", "Balanced taste across all genres and moods"
)


def classify_archetype(mood: MoodVector) -> MoodArchetype:
    for archetype, matches in _RULES:
        if matches(mood):
            return archetype
    return DEFAULT_ARCHETYPE


def all_archetypes() -> list[MoodArchetype]:
    return [a for a, _ in _RULES] + [DEFAULT_ARCHETYPE]
