import httpx
import pytest

from moodreel_core.types import MediaType
from moodreel_tmdb.tmdb_client import TMDBClient, tmdb_language

MOVIE = {
    "id": 603,
    "title": "The Matrix",
    "overview": "A hacker learns the truth.",
    "poster_path": "/matrix.jpg",
    "release_date": "1999-03-30",
    "runtime": 136,
    "genres": [{"id": 28, "name": "Action"}, {"id": 878, "name": "Science Fiction"}],
}
CREDITS = {
    "crew": [{"name": "Bill Pope", "job": "Director of Photography"}, {"name": "Lana Wachowski", "job": "Director"}],
    "cast": [{"name": "Keanu Reeves"}, {"name": "Laurence Fishburne"}, {"name": "Carrie-Anne Moss"}, {"name": "Hugo Weaving"}],
}
KEYWORDS = {"keywords": [{"name": "simulation"}, {"name": "dystopia"}]}


def _client(routes: dict, seen: list | None = None) -> TMDBClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        body = routes.get(request.url.path)
        if body is None:
            return httpx.Response(404, json={"status_message": "not found"})
        return httpx.Response(200, json=body)

    return TMDBClient("key", transport=httpx.MockTransport(handler))


@pytest.mark.parametrize(
    "lang, expected",
    [(None, "en-US"), ("en", "en-US"), ("tr", "tr-TR"), ("pt-BR", "pt-BR")],
)
def test_tmdb_language(lang, expected):
    assert tmdb_language(lang) == expected


@pytest.mark.asyncio
async def test_search_returns_first_hit_and_sends_params():
    seen: list[httpx.Request] = []
    tmdb = _client({"/3/search/movie": {"results": [MOVIE, {"id": 1, "title": "Other"}]}}, seen)
    match = await tmdb.search(MediaType.MOVIE, "The Matrix", year=1999)
    await tmdb.aclose()

    assert match.media_id == 603 and match.title == "The Matrix"
    params = seen[0].url.params
    assert params["query"] == "The Matrix"
    assert params["year"] == "1999"
    assert params["api_key"] == "key"
    assert params["language"] == "en-US"


@pytest.mark.asyncio
async def test_search_without_results():
    tmdb = _client({"/3/search/movie": {"results": []}})
    assert await tmdb.search(MediaType.MOVIE, "zzz") is None
    await tmdb.aclose()


@pytest.mark.asyncio
async def test_get_details_merges_credits_and_keywords():
    tmdb = _client(
        {
            "/3/movie/603": MOVIE,
            "/3/movie/603/credits": CREDITS,
            "/3/movie/603/keywords": KEYWORDS,
        }
    )
    details = await tmdb.get_details(MediaType.MOVIE, 603, "en")
    await tmdb.aclose()

    assert details.title == "The Matrix"
    assert details.genres == ["Action", "Science Fiction"]
    assert details.director == "Lana Wachowski"
    assert details.stars == ["Keanu Reeves", "Laurence Fishburne", "Carrie-Anne Moss"]
    assert details.keywords == ["simulation", "dystopia"]
    assert details.runtime == 136


@pytest.mark.asyncio
async def test_get_swallows_http_errors():
    tmdb = _client({})
    assert await tmdb.get("/movie/1") is None
    await tmdb.aclose()


@pytest.mark.asyncio
async def test_get_popular_maps_results():
    tmdb = _client({"/3/movie/popular": {"results": [MOVIE]}})
    popular = await tmdb.get_popular(MediaType.MOVIE, language="tr")
    await tmdb.aclose()
    assert [m.media_id for m in popular] == [603]
    assert popular[0].release_date == "1999-03-30"
