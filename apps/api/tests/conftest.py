import pytest
from fastapi.testclient import TestClient

from fakes import (
    Clock,
    FakeCatalog,
    FakeCompletion,
    FakeHistory,
    FakeRedis,
    FakeSupabaseClient,
    build_services,
)

TEST_USER_ID = "00000000-0000-0000-0000-000000000000"


@pytest.fixture()
def services():
    return build_services(
        FakeSupabaseClient(), FakeRedis(), FakeCompletion(), FakeCatalog(), FakeHistory(), Clock()
    )


@pytest.fixture()
def test_client(services, monkeypatch):
    # No live Supabase / OpenAI / TMDB / Redis clients in tests
    monkeypatch.setenv("MOODREEL_SKIP_CLIENT_INIT", "1")

    # Import after env is set to avoid pydantic settings errors
    from app.deps.deps_services import (  # type: ignore
        get_curation_service,
        get_feedback_service,
        get_profile_service,
        get_title_resolver,
    )
    from app.deps.supabase_client import get_current_user_id  # type: ignore
    from app.main import app  # type: ignore

    app.dependency_overrides[get_current_user_id] = lambda: TEST_USER_ID
    app.dependency_overrides[get_profile_service] = lambda: services.profiles
    app.dependency_overrides[get_title_resolver] = lambda: services.resolver
    app.dependency_overrides[get_curation_service] = lambda: services.curation
    app.dependency_overrides[get_feedback_service] = lambda: services.feedback

    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def anon_client(monkeypatch):
    monkeypatch.setenv("MOODREEL_SKIP_CLIENT_INIT", "1")
    from app.main import app  # type: ignore

    return TestClient(app)
