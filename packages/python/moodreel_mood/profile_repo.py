from __future__ import annotations

from datetime import date
from typing import Optional, Protocol

from anyio import to_thread
from moodreel_core.timestamps import ensure_ts, utcnow
from moodreel_core.types import MoodVector

from .schemas import MoodSnapshot, UserMoodProfile

TABLE_PROFILE = "user_mood_profile"
TABLE_SNAPSHOTS = "mood_snapshots"


class MoodProfileRepo(Protocol):
    async def get_profile(self, user_id: str) -> Optional[UserMoodProfile]: ...

    async def save_profile(self, profile: UserMoodProfile) -> None: ...

    async def upsert_snapshot(self, snapshot: MoodSnapshot) -> None: ...

    async def list_snapshots(self, user_id: str, since: date) -> list[MoodSnapshot]: ...


class SupabaseMoodProfileRepo:
    def __init__(self, client):
        self.client = client

    # ---------- Async facade ----------
    async def get_profile(self, user_id: str) -> Optional[UserMoodProfile]:
        return await to_thread.run_sync(self._get_profile_sync, user_id)

    async def save_profile(self, profile: UserMoodProfile) -> None:
        await to_thread.run_sync(self._save_profile_sync, profile)

    async def upsert_snapshot(self, snapshot: MoodSnapshot) -> None:
        await to_thread.run_sync(self._upsert_snapshot_sync, snapshot)

    async def list_snapshots(self, user_id: str, since: date) -> list[MoodSnapshot]:
        return await to_thread.run_sync(self._list_snapshots_sync, user_id, since)

    # ---------- Private sync impls ----------
    def _get_profile_sync(self, user_id: str) -> Optional[UserMoodProfile]:
        res = (
            self.client.table(TABLE_PROFILE)
            .select("user_id, mood_vector, last_computed")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        if not rows:
            return None
        r = rows[0]
        raw_vec = r.get("mood_vector")
        if not isinstance(raw_vec, dict):
            return None
        return UserMoodProfile(
            user_id=r["user_id"],
            mood_vector=MoodVector.clamped(raw_vec, default=50),
            # unparseable timestamp -> treat as stale
            last_computed=ensure_ts(r.get("last_computed")) or ensure_ts("1970-01-01T00:00:00Z"),
        )

    def _save_profile_sync(self, profile: UserMoodProfile) -> None:
        # full overwrite, one row per user
        payload = {
            "user_id": profile.user_id,
            "mood_vector": profile.mood_vector.as_dict(),
            "last_computed": profile.last_computed.isoformat(),
        }
        self.client.table(TABLE_PROFILE).upsert(payload, on_conflict="user_id").execute()

    def _upsert_snapshot_sync(self, snapshot: MoodSnapshot) -> None:
        # same-day recompute replaces that day's snapshot
        payload = {
            "user_id": snapshot.user_id,
            "mood_vector": snapshot.mood_vector.as_dict(),
            "snapshot_date": snapshot.snapshot_date.isoformat(),
            "created_at": snapshot.created_at.isoformat(),
            "trigger": snapshot.trigger,
        }
        (
            self.client.table(TABLE_SNAPSHOTS)
            .upsert(payload, on_conflict="user_id,snapshot_date")
            .execute()
        )

    def _list_snapshots_sync(self, user_id: str, since: date) -> list[MoodSnapshot]:
        res = (
            self.client.table(TABLE_SNAPSHOTS)
            .select("user_id, mood_vector, snapshot_date, created_at, trigger")
            .eq("user_id", user_id)
            .gte("snapshot_date", since.isoformat())
            .order("snapshot_date", desc=False)
            .execute()
        )
        out: list[MoodSnapshot] = []
        for r in res.data or []:
            raw_vec = r.get("mood_vector")
            if not isinstance(raw_vec, dict):
                continue
            out.append(
                MoodSnapshot(
                    user_id=r["user_id"],
                    mood_vector=MoodVector.clamped(raw_vec, default=50),
                    snapshot_date=date.fromisoformat(str(r["snapshot_date"])[:10]),
                    created_at=ensure_ts(r.get("created_at")) or utcnow(),
                    trigger=r.get("trigger"),
                )
            )
        return out
