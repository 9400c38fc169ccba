from typing import Optional

from app.deps.deps import SupabaseCreds, get_supabase_creds
from fastapi import Depends, Header, HTTPException, status
from moodreel_user_context.watch_history_repo import SupabaseWatchHistoryRepo


def require_bearer_token(authorization: Optional[str] = Header(None)) -> str:
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
        )
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format",
        )
    return token.strip()


def get_supabase_client(
    user_token: str = Depends(require_bearer_token),
    creds: SupabaseCreds = Depends(get_supabase_creds),
):
    """Supabase client scoped to the caller: PostgREST runs with the user's JWT so RLS applies."""
    from supabase import Client, create_client

    try:
        client: Client = create_client(creds.url, creds.api_key)
        client.postgrest.auth(user_token)
        return client
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Supabase init failed: {exc}",
        )


def get_current_user_id(
    client=Depends(get_supabase_client), user_token: str = Depends(require_bearer_token)
) -> str:
    """Resolve the caller's user id (UUID) through GoTrue."""
    try:
        resp = client.auth.get_user(user_token)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Failed to resolve user: {exc}",
        )
    user = getattr(resp, "user", None)
    user_id = getattr(user, "id", None) if user else None
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return str(user_id)


def get_watch_history_repo(sb=Depends(get_supabase_client)) -> SupabaseWatchHistoryRepo:
    return SupabaseWatchHistoryRepo(client=sb)
