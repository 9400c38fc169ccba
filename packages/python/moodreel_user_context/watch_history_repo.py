from __future__ import annotations

import logging
from typing import Protocol

from anyio import to_thread
from moodreel_core.timestamps import ensure_ts
from moodreel_core.types import MediaType, WatchHistoryEntry

log = logging.getLogger(__name__)

TABLE_HISTORY = "user_watch_history"
_RATED_KINDS = [MediaType.MOVIE.value, MediaType.TV.value]


class WatchHistoryReader(Protocol):
    async def fetch_rated_history(self, user_id: str) -> list[WatchHistoryEntry]: ...

    async def fetch_watched_ids(self, user_id: str, media_type: MediaType) -> set[int]: ...

    async def count_rated(self, user_id: str, media_type: MediaType) -> int: ...


def _row_to_entry(row: dict) -> WatchHistoryEntry | None:
    ts = ensure_ts(row.get("watched_at"))
    if ts is None:
        return None
    try:
        media_type = MediaType(row.get("media_type"))
        media_id = int(row["media_id"])
    except (KeyError, TypeError, ValueError):
        return None
    return WatchHistoryEntry(
        media_type=media_type,
        media_id=media_id,
        title=row.get("title") or "",
        rating=row.get("rating"),
        watched_at=ts,
        overview=row.get("overview"),
    )


class SupabaseWatchHistoryRepo:
    def __init__(self, client, *, history_limit: int = 1000):
        self.client = client
        self.history_limit = history_limit

    # ---------- Async facade ----------
    async def fetch_rated_history(self, user_id: str) -> list[WatchHistoryEntry]:
        return await to_thread.run_sync(self._fetch_rated_history_sync, user_id)

    async def fetch_watched_ids(self, user_id: str, media_type: MediaType) -> set[int]:
        return await to_thread.run_sync(self._fetch_watched_ids_sync, user_id, media_type)

    async def count_rated(self, user_id: str, media_type: MediaType) -> int:
        return await to_thread.run_sync(self._count_rated_sync, user_id, media_type)

    # ---------- Private sync impls ----------
    def _fetch_rated_history_sync(self, user_id: str) -> list[WatchHistoryEntry]:
        res = (
            self.client.table(TABLE_HISTORY)
            .select("media_type, media_id, title, overview, rating, watched_at")
            .eq("user_id", user_id)
            .in_("media_type", _RATED_KINDS)
            .not_.is_("rating", None)
            .order("watched_at", desc=True)
            .limit(self.history_limit)
            .execute()
        )
        rows = list(getattr(res, "data", None) or [])
        out: list[WatchHistoryEntry] = []
        for r in rows:
            entry = _row_to_entry(r)
            if entry is None:
                log.warning("Skipping malformed history row for user %s: %s", user_id, r)
                continue
            out.append(entry)
        return out

    def _fetch_watched_ids_sync(self, user_id: str, media_type: MediaType) -> set[int]:
        # every history row counts, rated or not
        res = (
            self.client.table(TABLE_HISTORY)
            .select("media_id")
            .eq("user_id", user_id)
            .eq("media_type", media_type.value)
            .execute()
        )
        return {int(r["media_id"]) for r in res.data or [] if r.get("media_id") is not None}

    def _count_rated_sync(self, user_id: str, media_type: MediaType) -> int:
        res = (
            self.client.table(TABLE_HISTORY)
            .select("media_id", count="exact")
            .eq("user_id", user_id)
            .eq("media_type", media_type.value)
            .not_.is_("rating", None)
            .execute()
        )
        if res.count is not None:
            return int(res.count)
        return len(res.data or [])
