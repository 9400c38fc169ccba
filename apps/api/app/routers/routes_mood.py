from fastapi import APIRouter, Depends, HTTPException, Query
from moodreel_core.errors import DomainError
from moodreel_mood.archetypes import classify_archetype
from moodreel_mood.profile_service import MoodProfileService
from moodreel_mood.schemas import MoodComparison, MoodSnapshot
from moodreel_ranking.similarity import build_mood_description
from moodreel_recommendation.resolver import TitleResolver

from app.deps.deps_services import get_profile_service, get_title_resolver
from app.deps.supabase_client import get_current_user_id
from app.schemas import (
    AnalyzedTitleOut,
    AnalyzeTitleRequest,
    ArchetypeOut,
    MoodProfileOut,
)

router = APIRouter(prefix="/v2/mood", tags=["mood"])


async def _profile_out(
    service: MoodProfileService, user_id: str, *, force: bool
) -> MoodProfileOut:
    profile = await service.get_profile(user_id, force_recalculate=force)
    ready = await service.has_enough_ratings(user_id)
    return MoodProfileOut(
        mood_vector=profile.mood_vector,
        description=build_mood_description(profile.mood_vector),
        last_computed=profile.last_computed,
        archetype=ArchetypeOut.from_archetype(classify_archetype(profile.mood_vector)),
        ready=ready,
    )


# Current mood profile (recomputed when stale)
@router.get("", response_model=MoodProfileOut)
async def get_my_mood(
    force: bool = False,
    user_id: str = Depends(get_current_user_id),
    service: MoodProfileService = Depends(get_profile_service),
):
    try:
        return await _profile_out(service, user_id, force=force)
    except DomainError as e:
        raise HTTPException(e.status, str(e))


@router.post("/recalculate", response_model=MoodProfileOut)
async def recalculate_my_mood(
    user_id: str = Depends(get_current_user_id),
    service: MoodProfileService = Depends(get_profile_service),
):
    try:
        return await _profile_out(service, user_id, force=True)
    except DomainError as e:
        raise HTTPException(e.status, str(e))


@router.get("/timeline", response_model=list[MoodSnapshot])
async def get_my_mood_timeline(
    days: int = Query(30, ge=1, le=365),
    user_id: str = Depends(get_current_user_id),
    service: MoodProfileService = Depends(get_profile_service),
):
    return await service.get_timeline(user_id, days)


@router.get("/compare/{other_user_id}", response_model=MoodComparison)
async def compare_moods(
    other_user_id: str,
    user_id: str = Depends(get_current_user_id),
    service: MoodProfileService = Depends(get_profile_service),
):
    try:
        return await service.compare(user_id, other_user_id)
    except DomainError as e:
        raise HTTPException(e.status, str(e))


# Resolve + analyze a user-specified title
@router.post("/titles/analyze", response_model=AnalyzedTitleOut)
async def analyze_title(
    req: AnalyzeTitleRequest,
    _user_id: str = Depends(get_current_user_id),
    resolver: TitleResolver = Depends(get_title_resolver),
):
    try:
        resolved = await resolver.resolve_title(req.title, req.lang)
    except DomainError as e:
        raise HTTPException(e.status, str(e))
    rec = resolved.record
    return AnalyzedTitleOut(
        **rec.model_dump(
            include={
                "media_id",
                "media_type",
                "title",
                "overview",
                "poster_path",
                "genres",
                "release_date",
                "mood_vector",
            }
        ),
        is_newly_discovered=resolved.is_newly_discovered,
    )
