from fastapi import APIRouter, Depends, HTTPException, Query
from moodreel_core.errors import DomainError
from moodreel_feedback.feedback_service import FeedbackService
from moodreel_feedback.schemas import FeedbackOutcome, QuotaInfo, ReplacementResult
from moodreel_recommendation.curation import CurationService
from moodreel_recommendation.schemas import MoodRecommendation, RecommendationMode

from app.deps.deps_services import get_curation_service, get_feedback_service
from app.deps.supabase_client import get_current_user_id
from app.schemas import FeedbackRequest, ReplacementRequest

router = APIRouter(prefix="/v2/recommendations", tags=["recommendations"])


@router.get("/mood", response_model=list[MoodRecommendation])
async def get_mood_recommendations(
    mode: RecommendationMode = RecommendationMode.MATCH,
    limit: int = Query(10, ge=1, le=50),
    include_watched: bool = False,
    lang: str | None = None,
    force_refresh: bool = False,
    user_id: str = Depends(get_current_user_id),
    service: CurationService = Depends(get_curation_service),
):
    try:
        return await service.get_mood_based_recommendations(
            user_id,
            mode,
            limit,
            include_watched=include_watched,
            language=lang,
            force_refresh=force_refresh,
        )
    except DomainError as e:
        raise HTTPException(e.status, str(e))


# Like / dislike -> profile update + cache invalidation
@router.post("/feedback", response_model=FeedbackOutcome)
async def submit_feedback(
    req: FeedbackRequest,
    user_id: str = Depends(get_current_user_id),
    service: FeedbackService = Depends(get_feedback_service),
):
    try:
        return await service.submit_feedback(user_id, req.media_id, req.title, req.action)
    except DomainError as e:
        raise HTTPException(e.status, str(e))


@router.post("/replacement", response_model=ReplacementResult)
async def get_replacement(
    req: ReplacementRequest,
    user_id: str = Depends(get_current_user_id),
    service: FeedbackService = Depends(get_feedback_service),
):
    try:
        return await service.get_single_replacement(user_id, req.exclude_ids, req.lang)
    except DomainError as e:
        raise HTTPException(e.status, str(e))


@router.get("/quota", response_model=QuotaInfo)
async def get_quota(
    user_id: str = Depends(get_current_user_id),
    service: FeedbackService = Depends(get_feedback_service),
):
    try:
        return await service.get_quota(user_id)
    except DomainError as e:
        raise HTTPException(e.status, str(e))
