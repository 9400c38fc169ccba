from __future__ import annotations

from typing import Mapping, Protocol, Sequence

from anyio import to_thread
from moodreel_core.errors import Conflict, Forbidden
from moodreel_core.timestamps import ensure_ts, utcnow
from moodreel_core.types import MediaId, MediaType, MoodVector
from postgrest.exceptions import APIError as PostgrestAPIError

from .schemas import AnalyzedTitle, TitleTranslation

TABLE = "analyzed_titles"
MAX_IN = 200  # keep matches PostgREST URL/param safety
ON_CONFLICT = "media_id,media_type"


class FingerprintStore(Protocol):
    async def get(self, media_id: MediaId, media_type: MediaType) -> AnalyzedTitle | None: ...

    async def get_many(
        self, media_type: MediaType, ids: Sequence[MediaId]
    ) -> Mapping[MediaId, AnalyzedTitle]: ...

    async def find_by_title(
        self, title: str, media_type: MediaType = MediaType.MOVIE
    ) -> AnalyzedTitle | None: ...

    async def list_analyzed(
        self, media_type: MediaType, limit: int = 500
    ) -> list[AnalyzedTitle]: ...

    async def save_analysis(self, record: AnalyzedTitle) -> AnalyzedTitle: ...

    async def overwrite_mood(
        self, media_id: MediaId, media_type: MediaType, vector: MoodVector
    ) -> None: ...

    async def put_translation(
        self,
        media_id: MediaId,
        media_type: MediaType,
        language: str,
        translation: TitleTranslation,
    ) -> None: ...

    async def backfill_genres(
        self, media_id: MediaId, media_type: MediaType, genres: list[str]
    ) -> None: ...


def _map_pgrest(e: PostgrestAPIError) -> Exception:
    code = getattr(e, "code", None) or ""
    # 23505 unique_violation, 42501 insufficient_privilege (RLS)
    if code == "23505":
        return Conflict("duplicate")
    if code == "42501":
        return Forbidden("permission denied")
    return e  # let unexpected ones bubble up to 500


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_title(row: dict) -> AnalyzedTitle:
    raw_vec = row.get("mood_vector")
    translations = {
        lang: TitleTranslation(**t)
        for lang, t in (row.get("translations") or {}).items()
        if isinstance(t, dict) and t.get("title")
    }
    return AnalyzedTitle(
        media_id=int(row["media_id"]),
        media_type=MediaType(row["media_type"]),
        title=row.get("title") or "",
        overview=row.get("overview"),
        poster_path=row.get("poster_path"),
        genres=list(row.get("genres") or []),
        release_date=row.get("release_date"),
        mood_vector=MoodVector.clamped(raw_vec) if isinstance(raw_vec, dict) else None,
        translations=translations,
        analyzed_at=ensure_ts(row.get("analyzed_at")),
    )


def _title_to_row(record: AnalyzedTitle) -> dict:
    row = record.model_dump(mode="json")
    if record.mood_vector is not None and record.analyzed_at is None:
        row["analyzed_at"] = utcnow().isoformat()
    return row


class SupabaseFingerprintStore:
    """
    Analyzed-title cache keyed by (media_id, media_type).

    The mood vector is set once: concurrent first writers converge on
    whichever row commits first. Only `overwrite_mood` replaces it.
    """

    def __init__(self, client):
        self.client = client

    # ---------- Async facade ----------
    async def get(self, media_id: MediaId, media_type: MediaType) -> AnalyzedTitle | None:
        return await to_thread.run_sync(self._get_sync, media_id, media_type)

    async def get_many(
        self, media_type: MediaType, ids: Sequence[MediaId]
    ) -> Mapping[MediaId, AnalyzedTitle]:
        return await to_thread.run_sync(self._get_many_sync, media_type, ids)

    async def find_by_title(
        self, title: str, media_type: MediaType = MediaType.MOVIE
    ) -> AnalyzedTitle | None:
        return await to_thread.run_sync(self._find_by_title_sync, title, media_type)

    async def list_analyzed(
        self, media_type: MediaType, limit: int = 500
    ) -> list[AnalyzedTitle]:
        return await to_thread.run_sync(self._list_analyzed_sync, media_type, limit)

    async def save_analysis(self, record: AnalyzedTitle) -> AnalyzedTitle:
        return await to_thread.run_sync(self._save_analysis_sync, record)

    async def overwrite_mood(
        self, media_id: MediaId, media_type: MediaType, vector: MoodVector
    ) -> None:
        await to_thread.run_sync(self._overwrite_mood_sync, media_id, media_type, vector)

    async def put_translation(
        self,
        media_id: MediaId,
        media_type: MediaType,
        language: str,
        translation: TitleTranslation,
    ) -> None:
        await to_thread.run_sync(
            self._put_translation_sync, media_id, media_type, language, translation
        )

    async def backfill_genres(
        self, media_id: MediaId, media_type: MediaType, genres: list[str]
    ) -> None:
        await to_thread.run_sync(self._backfill_genres_sync, media_id, media_type, genres)

    # ---------- Private sync impls ----------
    def _get_sync(self, media_id: MediaId, media_type: MediaType) -> AnalyzedTitle | None:
        res = (
            self.client.table(TABLE)
            .select("*")
            .eq("media_id", media_id)
            .eq("media_type", media_type.value)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return _row_to_title(rows[0]) if rows else None

    def _get_many_sync(
        self, media_type: MediaType, ids: Sequence[MediaId]
    ) -> dict[MediaId, AnalyzedTitle]:
        unique = list(dict.fromkeys(int(i) for i in ids))
        out: dict[MediaId, AnalyzedTitle] = {}
        for i in range(0, len(unique), MAX_IN):
            chunk = unique[i : i + MAX_IN]
            res = (
                self.client.table(TABLE)
                .select("*")
                .eq("media_type", media_type.value)
                .in_("media_id", chunk)
                .execute()
            )
            for r in res.data or []:
                rec = _row_to_title(r)
                out[rec.media_id] = rec
        return out

    def _find_by_title_sync(
        self, title: str, media_type: MediaType
    ) -> AnalyzedTitle | None:
        needle = title.strip()
        if not needle:
            return None
        res = (
            self.client.table(TABLE)
            .select("*")
            .eq("media_type", media_type.value)
            .ilike("title", _escape_like(needle))
            .not_.is_("mood_vector", None)
            .limit(5)
            .execute()
        )
        # ilike without wildcards is already exact; re-check so escaping quirks can't widen it
        for r in res.data or []:
            if (r.get("title") or "").strip().casefold() == needle.casefold():
                return _row_to_title(r)
        return None

    def _list_analyzed_sync(self, media_type: MediaType, limit: int) -> list[AnalyzedTitle]:
        res = (
            self.client.table(TABLE)
            .select("*")
            .eq("media_type", media_type.value)
            .not_.is_("mood_vector", None)
            .order("analyzed_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [_row_to_title(r) for r in res.data or []]

    def _save_analysis_sync(self, record: AnalyzedTitle) -> AnalyzedTitle:
        if record.mood_vector is None:
            raise ValueError("save_analysis requires a mood vector")
        row = _title_to_row(record)
        try:
            # 1) insert if absent; an existing row is left untouched
            (
                self.client.table(TABLE)
                .upsert(row, on_conflict=ON_CONFLICT, ignore_duplicates=True)
                .execute()
            )
            # 2) an existing row without a vector gets ours; one with a vector keeps it
            (
                self.client.table(TABLE)
                .update(
                    {"mood_vector": row["mood_vector"], "analyzed_at": row["analyzed_at"]}
                )
                .eq("media_id", record.media_id)
                .eq("media_type", record.media_type.value)
                .is_("mood_vector", None)
                .execute()
            )
        except PostgrestAPIError as e:
            raise _map_pgrest(e)

        stored = self._get_sync(record.media_id, record.media_type)
        return stored or record

    def _overwrite_mood_sync(
        self, media_id: MediaId, media_type: MediaType, vector: MoodVector
    ) -> None:
        try:
            (
                self.client.table(TABLE)
                .update(
                    {
                        "mood_vector": vector.as_dict(),
                        "analyzed_at": utcnow().isoformat(),
                    }
                )
                .eq("media_id", media_id)
                .eq("media_type", media_type.value)
                .execute()
            )
        except PostgrestAPIError as e:
            raise _map_pgrest(e)

    def _put_translation_sync(
        self,
        media_id: MediaId,
        media_type: MediaType,
        language: str,
        translation: TitleTranslation,
    ) -> None:
        # Read-modify-write on the jsonb map; one entry per language code.
        res = (
            self.client.table(TABLE)
            .select("translations")
            .eq("media_id", media_id)
            .eq("media_type", media_type.value)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        if not rows:
            return
        translations = dict(rows[0].get("translations") or {})
        translations[language] = translation.model_dump(mode="json")
        try:
            (
                self.client.table(TABLE)
                .update({"translations": translations})
                .eq("media_id", media_id)
                .eq("media_type", media_type.value)
                .execute()
            )
        except PostgrestAPIError as e:
            raise _map_pgrest(e)

    def _backfill_genres_sync(
        self, media_id: MediaId, media_type: MediaType, genres: list[str]
    ) -> None:
        if not genres:
            return
        try:
            (
                self.client.table(TABLE)
                .update({"genres": genres})
                .eq("media_id", media_id)
                .eq("media_type", media_type.value)
                .execute()
            )
        except PostgrestAPIError as e:
            raise _map_pgrest(e)
