from __future__ import annotations

from typing import Iterable

from moodreel_ranking.similarity import ordered_genres

CURATOR_SYSTEM_PROMPT = """You are a film curator with encyclopedic knowledge of world cinema.
You suggest feature films that fit a viewer's emotional profile.

Rules:
- Suggest FEATURE FILMS only. No TV series, mini-series or documentary series.
- Use the exact, widely known English release title of each film.
- Do not repeat a film.
- Mix well-known and lesser-known films.

Return ONLY a JSON object of the form {"movies": ["Title 1", "Title 2", ...]}."""


def build_curation_prompt(description: str, genres: Iterable[str], count: int) -> str:
    genre_list = ordered_genres(genres)
    lines = [
        f"The viewer's current mood profile: {description}.",
        f"Suggest {count} feature films that match this mood.",
    ]
    if genre_list:
        lines.append(f"Focus primarily on these genres: {', '.join(genre_list)}.")
    lines.append("Do NOT suggest TV series.")
    return "\n".join(lines)
