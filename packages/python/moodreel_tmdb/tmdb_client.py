import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

import httpx

from moodreel_core.types import MediaType

log = logging.getLogger(__name__)

_TMDB_LANGUAGES = {
    "en": "en-US",
    "tr": "tr-TR",
}


def tmdb_language(code: str | None) -> str:
    """Map a short language code to the locale TMDB expects."""
    if not code:
        return "en-US"
    code = code.strip()
    if "-" in code:
        return code
    return _TMDB_LANGUAGES.get(code.lower(), "en-US")


@dataclass
class CatalogMatch:
    media_id: int
    media_type: MediaType
    title: str
    overview: str | None = None
    poster_path: str | None = None
    release_date: str | None = None
    genre_ids: list[int] = field(default_factory=list)


@dataclass
class CatalogDetails:
    media_id: int
    media_type: MediaType
    title: str
    overview: str | None = None
    poster_path: str | None = None
    release_date: str | None = None
    runtime: int | None = None
    genres: list[str] = field(default_factory=list)
    director: str | None = None
    stars: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)


class CatalogService(Protocol):
    async def search(
        self,
        media_type: MediaType,
        title: str,
        year: int | None = None,
        language: str | None = None,
    ) -> Optional[CatalogMatch]: ...

    async def get_details(
        self, media_type: MediaType, media_id: int, language: str | None = None
    ) -> Optional[CatalogDetails]: ...

    async def get_popular(
        self, media_type: MediaType, page: int = 1, language: str | None = None
    ) -> List[CatalogMatch]: ...


def _title_of(raw: dict) -> str:
    return raw.get("title") or raw.get("name") or ""


def _release_of(raw: dict) -> str | None:
    return raw.get("release_date") or raw.get("first_air_date") or None


def _to_match(raw: dict, media_type: MediaType) -> CatalogMatch:
    return CatalogMatch(
        media_id=int(raw["id"]),
        media_type=media_type,
        title=_title_of(raw),
        overview=raw.get("overview") or None,
        poster_path=raw.get("poster_path"),
        release_date=_release_of(raw),
        genre_ids=list(raw.get("genre_ids") or []),
    )


class TMDBClient:
    BASE_URL = "https://api.themoviedb.org/3"

    def __init__(
        self,
        api_key: str,
        max_connections: int = 15,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        limits = httpx.Limits(
            max_connections=max_connections, max_keepalive_connections=max_connections
        )
        self.client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            timeout=httpx.Timeout(timeout),
            limits=limits,
            headers={"Accept": "application/json"},
            transport=transport,
        )
        self.semaphore = asyncio.Semaphore(max_connections)

    async def get(self, path: str, params: dict | None = None):
        query = {"api_key": self.api_key, **(params or {})}
        async with self.semaphore:
            try:
                response = await self.client.get(path, params=query)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                log.warning("[HTTP Error] %s: %s", e.response.status_code, path)
            except httpx.RequestError as e:
                log.warning("[Request Error] %s: %s", path, e)
        return None

    async def get_with_retry(
        self, path: str, params: dict | None = None, retries: int = 2, delay: float = 1.0
    ):
        for attempt in range(retries + 1):
            result = await self.get(path, params)
            if result:
                return result
            if attempt < retries:
                await asyncio.sleep(delay * (2**attempt))  # Exponential backoff
        return None

    async def search(
        self,
        media_type: MediaType,
        title: str,
        year: int | None = None,
        language: str | None = None,
    ) -> Optional[CatalogMatch]:
        params: dict = {
            "query": title,
            "language": tmdb_language(language),
            "include_adult": "false",
        }
        if year:
            params["year" if media_type == MediaType.MOVIE else "first_air_date_year"] = year
        # A search with no hits is a valid answer; don't retry it.
        data = await self.get(f"/search/{media_type.value}", params)
        results = (data or {}).get("results") or []
        if not results:
            return None
        return _to_match(results[0], media_type)

    async def get_details(
        self, media_type: MediaType, media_id: int, language: str | None = None
    ) -> Optional[CatalogDetails]:
        base = f"/{media_type.value}/{media_id}"
        lang = {"language": tmdb_language(language)}
        credits_path = (
            f"{base}/credits" if media_type == MediaType.MOVIE else f"{base}/aggregate_credits"
        )

        details, credits_data, keywords_data = await asyncio.gather(
            self.get_with_retry(base, lang),
            self.get_with_retry(credits_path),
            self.get_with_retry(f"{base}/keywords"),
        )
        if not details:
            return None

        out = CatalogDetails(
            media_id=int(details.get("id") or media_id),
            media_type=media_type,
            title=_title_of(details),
            overview=details.get("overview") or None,
            poster_path=details.get("poster_path"),
            release_date=_release_of(details),
            runtime=details.get("runtime"),
            genres=[g["name"] for g in details.get("genres", []) if "name" in g],
        )

        if media_type == MediaType.MOVIE:
            if credits_data:
                crew = credits_data.get("crew", [])
                out.director = next(
                    (c["name"] for c in crew if c.get("job") == "Director"), None
                )
        else:
            creators = [c.get("name") for c in details.get("created_by", []) if "name" in c]
            out.director = creators[0] if creators else None

        if credits_data:
            cast = credits_data.get("cast", [])
            out.stars = [c.get("name") for c in cast[:3] if "name" in c]

        if keywords_data:
            keyword_key = "keywords" if media_type == MediaType.MOVIE else "results"
            out.keywords = [kw["name"] for kw in keywords_data.get(keyword_key, [])]

        return out

    async def get_popular(
        self, media_type: MediaType, page: int = 1, language: str | None = None
    ) -> List[CatalogMatch]:
        data = await self.get_with_retry(
            f"/{media_type.value}/popular",
            {"language": tmdb_language(language), "page": page},
        )
        return [_to_match(r, media_type) for r in (data or {}).get("results", [])]

    async def aclose(self):
        await self.client.aclose()
