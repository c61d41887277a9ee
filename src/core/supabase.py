"""Supabase client singleton for database operations."""

from functools import lru_cache
from typing import Any

from supabase import Client, create_client

from src.core.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    """Get cached Supabase client singleton for database operations.

    Uses secret key (sb_secret_) for backend operations, which bypasses RLS
    at the PostgREST level. This should only be used for server-side
    database operations where proper authorization has already been verified.

    Returns:
        Client: Supabase client instance.
    """
    settings = get_settings()
    return create_client(
        settings.supabase_url,
        settings.supabase_secret_key,
    )


async def check_database_connection() -> dict[str, Any]:
    """Check if database connection is healthy.

    Performs a simple query to verify database connectivity.

    Returns:
        dict: Connection status with 'healthy' boolean and optional 'error' message.
    """
    try:
        client = get_supabase_client()
        client.table("products").select("id").limit(1).execute()
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": str(e)}


_LIKE_ESCAPES = str.maketrans({"\\": "\\\\", "%": "\\%", "_": "\\_"})


def ilike_pattern(search: str) -> str:
    """Build a quoted ``%term%`` value for ``ilike`` inside an ``or_`` filter.

    Wildcards typed by the user match literally, and the quotes keep
    commas and parentheses from splitting the PostgREST filter.
    """
    term = search.strip().replace("*", "").translate(_LIKE_ESCAPES)
    term = term.replace("\\", "\\\\").replace('"', '\\"')
    return f'"%{term}%"'
