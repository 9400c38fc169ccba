import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import find_dotenv, load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from pydantic_settings import BaseSettings, SettingsConfigDict

from moodreel_core.config import CHAT_COMPLETION_MODEL
from app.infrastructure.cache.redis_infra import make_redis_client
from .routers import all_routers

log = logging.getLogger(__name__)


class Settings(BaseSettings):
    app_name: str = "Moodreel Mood API"
    # credentials
    supabase_url: str | None = None
    supabase_api_key: str | None = None
    openai_api_key: str | None = None
    tmdb_api_key: str | None = None
    # llm
    llm_model: str = CHAT_COMPLETION_MODEL
    llm_timeout: float = 30.0
    llm_max_retries: int = 2
    # recommendation cache
    redis_url: str | None = None
    rec_cache_namespace: str = "moodreel:recs:"
    # telemetry
    telemetry_sample: float = 1.0
    # env config
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


def _should_init_clients() -> bool:
    flag = os.getenv("MOODREEL_SKIP_CLIENT_INIT", "")
    return flag.strip().lower() not in {"1", "true", "yes"}


def _init_clients(app: FastAPI) -> None:
    import httpx

    from moodreel_core.llm_client import LlmClient
    from moodreel_logging.rec_logger import TelemetryLogger
    from moodreel_tmdb.tmdb_client import TMDBClient

    startup_t0 = time.perf_counter()
    settings = app.state.settings

    required = {
        "SUPABASE_URL": settings.supabase_url,
        "SUPABASE_API_KEY": settings.supabase_api_key,
        "OPENAI_API_KEY": settings.openai_api_key,
        "TMDB_API_KEY": settings.tmdb_api_key,
        "REDIS_URL": settings.redis_url,
    }
    missing = [
        name for name, value in required.items() if not (value and value.strip())
    ]
    if missing:
        raise RuntimeError(
            "Missing API keys in environment: " + ", ".join(sorted(missing))
        )

    app.state.supabase_url = settings.supabase_url
    app.state.supabase_api_key = settings.supabase_api_key

    # one completion client per process, injected everywhere it's needed
    app.state.llm = LlmClient(
        model=settings.llm_model,
        timeout=settings.llm_timeout,
        api_key=settings.openai_api_key,
        max_retries=settings.llm_max_retries,
    )
    app.state.tmdb = TMDBClient(api_key=settings.tmdb_api_key)
    app.state.redis = make_redis_client(settings.redis_url)

    app.state.telemetry_http = httpx.AsyncClient()
    app.state.telemetry = TelemetryLogger(
        settings.supabase_url,
        settings.supabase_api_key,
        app.state.telemetry_http,
        sample=settings.telemetry_sample,
    )

    print(f"🔧 Total startup time: {time.perf_counter() - startup_t0:.2f}s")


async def _close_clients(app: FastAPI) -> None:
    tmdb = getattr(app.state, "tmdb", None)
    if tmdb is not None:
        await tmdb.aclose()
    redis_client = getattr(app.state, "redis", None)
    if redis_client is not None:
        await redis_client.aclose()
    http = getattr(app.state, "telemetry_http", None)
    if http is not None:
        await http.aclose()


@asynccontextmanager
async def lifespan(app: FastAPI):
    load_dotenv(find_dotenv(), override=False)

    settings = Settings()
    app.state.settings = settings

    if _should_init_clients():
        _init_clients(app)
    else:
        print("⚠️ Client initialization skipped by MOODREEL_SKIP_CLIENT_INIT")

    try:
        yield
    finally:
        await _close_clients(app)


app = FastAPI(title="Moodreel Mood API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    schema = get_openapi(
        title=app.title,
        version="0.1.0",
        description="Mood profiling and mood-based recommendations",
        routes=app.routes,
    )
    components = schema.setdefault("components", {})
    components.setdefault("securitySchemes", {})["BearerAuth"] = {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
    }
    for path_item in schema.get("paths", {}).values():
        for operation in path_item.values():
            operation.setdefault("security", []).append({"BearerAuth": []})
    app.openapi_schema = schema
    return app.openapi_schema


app.openapi = _custom_openapi


@app.get("/health")
def health():
    s = getattr(app.state, "settings", None)
    return {"status": "ok", "service": s.app_name if s else app.title}


for r in all_routers:
    app.include_router(r)
