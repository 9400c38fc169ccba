from typing import Any, TYPE_CHECKING, cast
from dataclasses import dataclass

from fastapi import HTTPException, Request, status

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from moodreel_core.llm_client import LlmClient
    from moodreel_logging.rec_logger import TelemetryLogger
    from moodreel_tmdb.tmdb_client import TMDBClient
else:
    Redis = Any  # type: ignore
    LlmClient = Any  # type: ignore
    TelemetryLogger = Any  # type: ignore
    TMDBClient = Any  # type: ignore


def _get_state_attr(request: Request, name: str, error_detail: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_detail,
        )
    return value


def get_settings(request: Request) -> Any:
    return _get_state_attr(request, "settings", "Settings not initialized")


def get_llm(request: Request) -> "LlmClient":
    return cast("LlmClient", _get_state_attr(request, "llm", "LLM client not initialized"))


def get_tmdb(request: Request) -> "TMDBClient":
    return cast("TMDBClient", _get_state_attr(request, "tmdb", "TMDB client not initialized"))


def get_redis(request: Request) -> "Redis":
    return cast("Redis", _get_state_attr(request, "redis", "Redis client not initialized"))


def get_telemetry(request: Request) -> "TelemetryLogger | None":
    # optional: curation works without it
    return getattr(request.app.state, "telemetry", None)


@dataclass(frozen=True)
class SupabaseCreds:
    url: str
    api_key: str


def get_supabase_creds(request: Request) -> SupabaseCreds:
    return SupabaseCreds(
        url=getattr(request.app.state, "supabase_url", ""),
        api_key=getattr(request.app.state, "supabase_api_key", ""),
    )
