from __future__ import annotations

from typing import Optional, Protocol

from anyio import to_thread

from .schemas import UserFeedbackState

TABLE = "user_feedback_state"


class FeedbackStateRepo(Protocol):
    async def get(self, user_id: str) -> Optional[UserFeedbackState]: ...

    async def save(self, state: UserFeedbackState) -> None: ...


class SupabaseFeedbackStateRepo:
    def __init__(self, client):
        self.client = client

    # ---------- Async facade ----------
    async def get(self, user_id: str) -> Optional[UserFeedbackState]:
        return await to_thread.run_sync(self._get_sync, user_id)

    async def save(self, state: UserFeedbackState) -> None:
        await to_thread.run_sync(self._save_sync, state)

    # ---------- Private sync impls ----------
    def _get_sync(self, user_id: str) -> Optional[UserFeedbackState]:
        res = (
            self.client.table(TABLE)
            .select("user_id, blacklist, quota_remaining, quota_month, quota_year")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        if not rows:
            return None
        r = rows[0]
        return UserFeedbackState(
            user_id=r["user_id"],
            blacklist=[int(x) for x in (r.get("blacklist") or [])],
            quota_remaining=int(r.get("quota_remaining") or 0),
            quota_month=int(r.get("quota_month") or 0),
            quota_year=int(r.get("quota_year") or 0),
        )

    def _save_sync(self, state: UserFeedbackState) -> None:
        self.client.table(TABLE).upsert(
            state.model_dump(mode="json"), on_conflict="user_id"
        ).execute()
