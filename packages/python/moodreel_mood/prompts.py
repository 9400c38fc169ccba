from __future__ import annotations

from typing import TYPE_CHECKING

from moodreel_core.types import MOOD_DIMENSIONS

if TYPE_CHECKING:
    from .analyzer import AnalysisRequest


ANALYSIS_SYSTEM_PROMPT = """You are an expert film psychologist specializing in emotional impact analysis.
Analyze the title considering genre conventions, directorial tone, character arcs and thematic weight.

Rate it on 10 dimensions (0-100):
1. adrenaline: action intensity, excitement peaks
2. melancholy: depth of sadness, emotional gravity
3. joy: happiness, comedic relief, feel-good factor
4. tension: suspense buildup, anxiety
5. intellect: thought provocation, complexity
6. romance: love themes, relationship focus
7. wonder: awe, fantasy escapism, visual spectacle
8. nostalgia: period authenticity, memory triggers
9. darkness: moral ambiguity, noir elements, dystopia
10. inspiration: motivational impact, triumph themes

Scoring rules:
- Commit to a profile. Do NOT hedge with mid-range values.
- At least 4 dimensions must be <= 30 or >= 70.
- At least 2 dimensions must be <= 20 or >= 80.
- A dimension that is simply absent from the title scores low, not 50.

Return ONLY a JSON object of the form:
{"reasoning": "<one or two sentences>", "scores": {"adrenaline": <0-100>, ...}}
with every one of the 10 keys present in "scores"."""


def build_analysis_prompt(req: "AnalysisRequest") -> str:
    lines = [f"Title: {req.title}"]
    if req.synopsis:
        lines.append(f"Summary: {req.synopsis}")
    if req.director:
        lines.append(f"Director: {req.director}")
    if req.cast:
        lines.append(f"Starring: {', '.join(req.cast[:5])}")
    if req.keywords:
        lines.append(f"Keywords: {', '.join(req.keywords[:15])}")
    lines.append("")
    lines.append(
        "Analyze this title and return the JSON object. "
        f"Score keys: {', '.join(MOOD_DIMENSIONS)}."
    )
    return "\n".join(lines)
