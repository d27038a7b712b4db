"""
Database client singletons.

This module provides singleton instances for the catalog and preference
store connections, ensuring efficient resource usage across the application.
"""

from functools import lru_cache
from typing import Optional

from supabase import Client, create_client

from config.settings import get_settings


class SupabaseClientError(Exception):
    """Raised when Supabase client cannot be created."""
    pass


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Get the singleton Supabase client instance.

    Returns:
        Client: The Supabase client instance

    Raises:
        SupabaseClientError: If Supabase is not configured or the client
            cannot be created
    """
    settings = get_settings()
    if not settings.supabase_configured:
        raise SupabaseClientError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
    try:
        return create_client(settings.supabase_url, settings.supabase_service_key)
    except Exception as e:
        raise SupabaseClientError(f"Failed to create Supabase client: {e}") from e


def get_supabase_client_optional() -> Optional[Client]:
    """
    Get the Supabase client, returning None if it cannot be created.

    Useful for graceful degradation when Supabase is not configured.
    """
    try:
        return get_supabase_client()
    except SupabaseClientError:
        return None


def get_redis_client(redis_url: Optional[str] = None):
    """
    Create a Redis client for the preference store.

    Args:
        redis_url: Connection URL (default from settings)

    Returns:
        redis.Redis client with decoded responses
    """
    import redis

    url = redis_url or get_settings().redis_url
    return redis.from_url(url, decode_responses=True)
