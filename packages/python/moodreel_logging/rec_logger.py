from __future__ import annotations

import logging
import random
from typing import Any, Sequence

import httpx
from fastapi.encoders import jsonable_encoder

log = logging.getLogger(__name__)


# ---------- Core logger ----------
class TelemetryLogger:
    """
    Curation telemetry written straight to Supabase REST.

    - rec_queries: one row per curation run
    - rec_results: one row per ranked recommendation

    Never raises; a failed POST is logged and dropped.
    """

    def __init__(
        self,
        supabase_url: str,
        api_key: str,
        client: httpx.AsyncClient | None = None,
        *,
        sample: float = 1.0,
        timeout_s: float = 5.0,
    ):
        self.supabase_url = (supabase_url or "").rstrip("/")
        self.api_key = api_key
        self.client = client
        self.sample = float(max(0.0, min(1.0, sample)))
        self.timeout_s = timeout_s

    def _enabled(self) -> bool:
        return bool(self.supabase_url and self.api_key and self.sample > 0)

    def _sampled(self) -> bool:
        return self.sample >= 1.0 or random.random() < self.sample

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Prefer": "resolution=merge-duplicates",
        }

    async def _post(
        self, client: httpx.AsyncClient, path: str, payload: list[dict[str, Any]]
    ) -> None:
        if not payload:
            return
        try:
            r = await client.post(
                f"{self.supabase_url}/rest/v1/{path}",
                headers=self._headers(),
                json=payload,
                timeout=self.timeout_s,
            )
            if r.status_code not in (200, 201, 204):
                log.warning("rec_logger POST %s failed %s: %s", path, r.status_code, r.text)
        except httpx.HTTPError as e:
            log.warning("rec_logger POST %s error: %s", path, e)

    @staticmethod
    def to_jsonable(x):
        return jsonable_encoder(x, exclude_none=True)

    # ---------- Public APIs ----------
    async def log_curation(
        self,
        *,
        query_id: str,
        user_id: str,
        mode: str,
        mood_description: str,
        target_genres: Sequence[str],
        candidates_requested: int,
        candidates_returned: int,
        results: Sequence[Any],
        language: str | None = None,
    ) -> None:
        """
        Insert one rec_queries row plus one rec_results row per recommendation.
        `results` items need `media_id`, `media_type` and `mood_similarity`.
        """
        if not self._enabled() or not self._sampled():
            return

        query_row = {
            "query_id": query_id,
            "user_id": user_id,
            "mode": mode,
            "mood_description": mood_description,
            "target_genres": list(target_genres),
            "candidates_requested": int(candidates_requested),
            "candidates_returned": int(candidates_returned),
            "results_count": len(results),
            "language": language,
        }
        result_rows = [
            {
                "query_id": query_id,
                "rank": rank,
                "media_id": int(r.media_id),
                "media_type": getattr(r.media_type, "value", r.media_type),
                "score": float(r.mood_similarity),
                "is_newly_discovered": bool(getattr(r, "is_newly_discovered", False)),
            }
            for rank, r in enumerate(results, start=1)
        ]

        if self.client is not None:
            await self._post(self.client, "rec_queries", [self.to_jsonable(query_row)])
            await self._post(self.client, "rec_results", self.to_jsonable(result_rows))
            return
        async with httpx.AsyncClient() as client:
            await self._post(client, "rec_queries", [self.to_jsonable(query_row)])
            await self._post(client, "rec_results", self.to_jsonable(result_rows))
