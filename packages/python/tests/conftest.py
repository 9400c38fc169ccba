import pytest

from fakes import (
    Clock,
    FakeCatalog,
    FakeCompletion,
    FakeHistory,
    FakeRedis,
    FakeSupabaseClient,
    build_services,
)


@pytest.fixture()
def sb():
    return FakeSupabaseClient()


@pytest.fixture()
def redis_client():
    return FakeRedis()


@pytest.fixture()
def llm():
    return FakeCompletion()


@pytest.fixture()
def catalog():
    return FakeCatalog()


@pytest.fixture()
def history():
    return FakeHistory()


@pytest.fixture()
def clock():
    return Clock()


@pytest.fixture()
def services(sb, redis_client, llm, catalog, history, clock):
    return build_services(sb, redis_client, llm, catalog, history, clock)
