from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

from moodreel_core.timestamps import utcnow
from pydantic import ValidationError
from redis.asyncio import Redis  # injected client type
from redis.exceptions import RedisError

from .schemas import RecommendationCacheEntry, RecommendationMode

log = logging.getLogger(__name__)


class RecommendationCache(Protocol):
    async def get(
        self, user_id: str, mode: RecommendationMode, *, now: datetime | None = None
    ) -> RecommendationCacheEntry | None: ...

    async def put(self, entry: RecommendationCacheEntry) -> None: ...

    async def invalidate(self, user_id: str, mode: RecommendationMode) -> None: ...


class RedisRecommendationCache:
    """
    Redis-backed recommendation sets. One key per (user, mode).
    Key:   {namespace}{user_id}:{mode}
    Value: JSON of RecommendationCacheEntry; Redis TTL mirrors expires_at.
    """

    def __init__(self, *, client: Redis, namespace: str = "moodreel:recs:") -> None:
        # client should be created with decode_responses=True
        self._r = client
        self._ns = namespace

    def _key(self, user_id: str, mode: RecommendationMode) -> str:
        return f"{self._ns}{user_id}:{mode.value}"

    async def get(
        self, user_id: str, mode: RecommendationMode, *, now: datetime | None = None
    ) -> RecommendationCacheEntry | None:
        key = self._key(user_id, mode)
        try:
            raw = await self._r.get(key)
        except (RedisError, RuntimeError) as e:
            # Treat Redis connection errors as cache misses.
            log.warning("Recommendation cache read failed for %s: %s", key, e)
            return None
        if not raw:
            return None

        try:
            entry = RecommendationCacheEntry.model_validate_json(raw)
        except ValidationError:
            log.warning("Dropping undecodable recommendation cache entry %s", key)
            await self._delete_quietly(key)
            return None

        if entry.expires_at <= (now or utcnow()):
            return None
        return entry

    async def put(self, entry: RecommendationCacheEntry) -> None:
        ttl_sec = int((entry.expires_at - entry.generated_at).total_seconds())
        if ttl_sec <= 0:
            return
        try:
            await self._r.set(
                self._key(entry.user_id, entry.mode), entry.model_dump_json(), ex=ttl_sec
            )
        except (RedisError, RuntimeError) as e:
            log.warning("Recommendation cache write failed for %s: %s", entry.user_id, e)

    async def invalidate(self, user_id: str, mode: RecommendationMode) -> None:
        # must not fail silently: a stale set would survive the feedback
        await self._r.delete(self._key(user_id, mode))

    async def _delete_quietly(self, key: str) -> None:
        try:
            await self._r.delete(key)
        except (RedisError, RuntimeError):
            return
