from fastapi import Depends

from moodreel_feedback.feedback_repo import SupabaseFeedbackStateRepo
from moodreel_feedback.feedback_service import FeedbackService
from moodreel_mood.analyzer import MoodAnalyzer
from moodreel_mood.fingerprint_store import SupabaseFingerprintStore
from moodreel_mood.profile_repo import SupabaseMoodProfileRepo
from moodreel_mood.profile_service import MoodProfileService
from moodreel_recommendation.cache_store import RedisRecommendationCache
from moodreel_recommendation.curation import CurationService
from moodreel_recommendation.resolver import TitleResolver
from moodreel_user_context.watch_history_repo import SupabaseWatchHistoryRepo

from app.deps.deps import get_llm, get_redis, get_settings, get_telemetry, get_tmdb
from app.deps.supabase_client import get_supabase_client, get_watch_history_repo


def get_fingerprint_store(sb=Depends(get_supabase_client)) -> SupabaseFingerprintStore:
    return SupabaseFingerprintStore(sb)


def get_analyzer(
    llm=Depends(get_llm),
    fingerprints: SupabaseFingerprintStore = Depends(get_fingerprint_store),
) -> MoodAnalyzer:
    return MoodAnalyzer(llm, fingerprints)


def get_profile_service(
    sb=Depends(get_supabase_client),
    history: SupabaseWatchHistoryRepo = Depends(get_watch_history_repo),
    fingerprints: SupabaseFingerprintStore = Depends(get_fingerprint_store),
    analyzer: MoodAnalyzer = Depends(get_analyzer),
) -> MoodProfileService:
    return MoodProfileService(SupabaseMoodProfileRepo(sb), history, fingerprints, analyzer)


def get_recommendation_cache(
    redis=Depends(get_redis), settings=Depends(get_settings)
) -> RedisRecommendationCache:
    return RedisRecommendationCache(client=redis, namespace=settings.rec_cache_namespace)


def get_title_resolver(
    fingerprints: SupabaseFingerprintStore = Depends(get_fingerprint_store),
    tmdb=Depends(get_tmdb),
    analyzer: MoodAnalyzer = Depends(get_analyzer),
) -> TitleResolver:
    return TitleResolver(fingerprints, tmdb, analyzer)


def get_curation_service(
    profiles: MoodProfileService = Depends(get_profile_service),
    history: SupabaseWatchHistoryRepo = Depends(get_watch_history_repo),
    fingerprints: SupabaseFingerprintStore = Depends(get_fingerprint_store),
    resolver: TitleResolver = Depends(get_title_resolver),
    llm=Depends(get_llm),
    cache: RedisRecommendationCache = Depends(get_recommendation_cache),
    tmdb=Depends(get_tmdb),
    telemetry=Depends(get_telemetry),
) -> CurationService:
    return CurationService(
        profiles,
        history,
        fingerprints,
        resolver,
        llm,
        cache,
        tmdb,
        telemetry=telemetry,
    )


def get_feedback_service(
    sb=Depends(get_supabase_client),
    profiles: MoodProfileService = Depends(get_profile_service),
    analyzer: MoodAnalyzer = Depends(get_analyzer),
    curation: CurationService = Depends(get_curation_service),
    cache: RedisRecommendationCache = Depends(get_recommendation_cache),
) -> FeedbackService:
    return FeedbackService(
        profiles, analyzer, SupabaseFeedbackStateRepo(sb), curation, cache
    )
