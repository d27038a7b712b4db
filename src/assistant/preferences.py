"""
Preference Store.

Per-session shopper profiles: recently viewed items, liked items, weighted
category affinities and the explicit style/season/occasion/color choices.

Supports two backends:
1. In-memory: For development/testing (default)
2. Redis: For production (REDIS_ENABLED=true)

Profiles are stored as JSON, so a profile handed out by read() is always a
fresh copy and callers cannot alter stored state without write().
"""

import time
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from assistant.models import LikedItem, PreferenceProfile, ViewedItem
from config.constants import DEFAULT_PREFERENCE_CONFIG, PreferenceConfig
from core.logging import get_logger
from core.utils import dedupe_preserving_order, normalize_tag

logger = get_logger(__name__)


class PreferenceStoreError(Exception):
    """Raised when a preference backend cannot be read or written."""
    pass


def _decode(session_key: str, raw: Optional[str]) -> Optional[PreferenceProfile]:
    if raw is None:
        return None
    try:
        return PreferenceProfile.model_validate_json(raw)
    except ValidationError as e:
        # A corrupt profile is discarded rather than blocking the session
        logger.warning("Discarding unreadable preference profile", session_key=session_key, error=str(e))
        return None


# =============================================================================
# In-Memory Backend
# =============================================================================

class InMemoryPreferenceBackend:
    """
    In-memory profile storage for development/testing.

    Note: Profiles are lost on server restart.
    Use the Redis backend for production.
    """

    def __init__(self, ttl_seconds: int = 86400 * 30):
        self._profiles: Dict[str, Tuple[str, float]] = {}
        self._lock = Lock()
        self._ttl = ttl_seconds

    def _sweep_expired(self, now: float) -> int:
        """Drop every expired profile. Caller holds the lock."""
        expired = [key for key, (_, stored_at) in self._profiles.items() if now - stored_at > self._ttl]
        for key in expired:
            del self._profiles[key]
        return len(expired)

    def get(self, session_key: str) -> Optional[str]:
        with self._lock:
            entry = self._profiles.get(session_key)
            if entry is None:
                return None
            raw, stored_at = entry
            if time.time() - stored_at > self._ttl:
                del self._profiles[session_key]
                return None
            return raw

    def set(self, session_key: str, raw: str) -> None:
        with self._lock:
            now = time.time()
            removed = self._sweep_expired(now)
            self._profiles[session_key] = (raw, now)
        if removed:
            logger.debug("Expired preference profiles removed", count=removed)

    def delete(self, session_key: str) -> None:
        with self._lock:
            self._profiles.pop(session_key, None)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            self._sweep_expired(time.time())
            profiles = len(self._profiles)
        return {
            "backend": "in_memory",
            "profiles": profiles,
            "ttl_seconds": self._ttl,
        }


# =============================================================================
# Redis Backend
# =============================================================================

class RedisPreferenceBackend:
    """Redis-based profile storage for production."""

    KEY_PREFIX = "prefs:"

    def __init__(self, client, ttl_seconds: int = 86400 * 30):
        """
        Args:
            client: redis.Redis created with decode_responses=True
            ttl_seconds: Profile TTL, refreshed on every write
        """
        self._redis = client
        self._ttl = ttl_seconds

    @classmethod
    def from_url(cls, redis_url: str, ttl_seconds: int = 86400 * 30) -> "RedisPreferenceBackend":
        from config.database import get_redis_client

        client = get_redis_client(redis_url)
        try:
            client.ping()
        except Exception as e:
            raise PreferenceStoreError(f"Redis unavailable at {redis_url.split('@')[-1]}: {e}") from e
        logger.info("Connected to Redis preference store", redis=redis_url.split("@")[-1])
        return cls(client, ttl_seconds=ttl_seconds)

    def _key(self, session_key: str) -> str:
        return f"{self.KEY_PREFIX}{session_key}"

    def get(self, session_key: str) -> Optional[str]:
        try:
            return self._redis.get(self._key(session_key))
        except Exception as e:
            raise PreferenceStoreError(f"Redis read failed: {e}") from e

    def set(self, session_key: str, raw: str) -> None:
        try:
            self._redis.setex(self._key(session_key), self._ttl, raw)
        except Exception as e:
            raise PreferenceStoreError(f"Redis write failed: {e}") from e

    def delete(self, session_key: str) -> None:
        try:
            self._redis.delete(self._key(session_key))
        except Exception as e:
            raise PreferenceStoreError(f"Redis delete failed: {e}") from e

    def get_stats(self) -> Dict[str, Any]:
        count = 0
        cursor = 0
        while True:
            cursor, keys = self._redis.scan(cursor, match=f"{self.KEY_PREFIX}*", count=1000)
            count += len(keys)
            if cursor == 0:
                break
        return {
            "backend": "redis",
            "profiles": count,
            "ttl_seconds": self._ttl,
        }


# =============================================================================
# Preference Service
# =============================================================================

class PreferenceService:
    """
    High-level preference operations.

    Every mutating operation is read-modify-write on the backend and returns
    the updated profile. Session keys are opaque to this service.
    """

    def __init__(self, backend=None, config: PreferenceConfig = DEFAULT_PREFERENCE_CONFIG):
        self._backend = backend or InMemoryPreferenceBackend()
        self.config = config
        self._lock = Lock()

    # =========================================================
    # Store interface
    # =========================================================

    def read(self, session_key: str) -> PreferenceProfile:
        """Profile for session_key (empty profile if none stored)."""
        return _decode(session_key, self._backend.get(session_key)) or PreferenceProfile()

    def write(self, session_key: str, profile: PreferenceProfile) -> None:
        self._backend.set(session_key, profile.model_dump_json())

    def clear(self, session_key: str) -> PreferenceProfile:
        """Reset the profile to empty."""
        self._backend.delete(session_key)
        logger.info("Preferences cleared", session_key=session_key)
        return PreferenceProfile()

    # =========================================================
    # Tracking
    # =========================================================

    def track_view(
        self,
        session_key: str,
        item_id: str,
        category: str = "",
        sub_category: str = "",
        name: str = "",
        timestamp: Optional[float] = None,
    ) -> PreferenceProfile:
        """
        Record a product view.

        Moves the item to the front of the viewed list (bounded to the most
        recent MAX_VIEWED_ITEMS) and adds affinity weight to its category and
        subcategory.
        """
        if not item_id:
            raise ValueError("item_id is required")

        with self._lock:
            profile = self.read(session_key)
            entry = ViewedItem(
                item_id=item_id,
                category=category or "",
                sub_category=sub_category or "",
                name=name or "",
                timestamp=timestamp if timestamp is not None else time.time(),
            )
            others = [v for v in profile.viewed_items if v.item_id != item_id]
            profile.viewed_items = [entry] + others[: self.config.MAX_VIEWED_ITEMS - 1]

            self._add_affinity(profile, category, self.config.CATEGORY_VIEW_WEIGHT)
            self._add_affinity(profile, sub_category, self.config.SUBCATEGORY_VIEW_WEIGHT)

            self.write(session_key, profile)
            return profile

    def track_like(self, session_key: str, item_id: str, timestamp: Optional[float] = None) -> PreferenceProfile:
        """Record a like. Liking an already-liked item changes nothing."""
        if not item_id:
            raise ValueError("item_id is required")

        with self._lock:
            profile = self.read(session_key)
            if item_id in profile.liked_item_ids():
                return profile
            profile.liked_items.append(
                LikedItem(item_id=item_id, timestamp=timestamp if timestamp is not None else time.time())
            )
            self.write(session_key, profile)
            return profile

    def track_unlike(self, session_key: str, item_id: str) -> PreferenceProfile:
        with self._lock:
            profile = self.read(session_key)
            remaining = [liked for liked in profile.liked_items if liked.item_id != item_id]
            if len(remaining) != len(profile.liked_items):
                profile.liked_items = remaining
                self.write(session_key, profile)
            return profile

    # =========================================================
    # Explicit tags (replaced wholesale)
    # =========================================================

    def update_styles(self, session_key: str, styles: Iterable[str]) -> PreferenceProfile:
        return self._replace_tags(session_key, "preferred_styles", styles)

    def update_seasons(self, session_key: str, seasons: Iterable[str]) -> PreferenceProfile:
        return self._replace_tags(session_key, "preferred_seasons", seasons)

    def update_occasions(self, session_key: str, occasions: Iterable[str]) -> PreferenceProfile:
        return self._replace_tags(session_key, "preferred_occasions", occasions)

    def update_colors(self, session_key: str, colors: Iterable[str]) -> PreferenceProfile:
        return self._replace_tags(session_key, "preferred_colors", colors)

    def _replace_tags(self, session_key: str, field: str, tags: Iterable[str]) -> PreferenceProfile:
        cleaned: List[str] = dedupe_preserving_order(t.strip() for t in (tags or []) if t and t.strip())
        with self._lock:
            profile = self.read(session_key)
            setattr(profile, field, cleaned)
            self.write(session_key, profile)
            return profile

    @staticmethod
    def _add_affinity(profile: PreferenceProfile, tag: str, weight: float) -> None:
        key = normalize_tag(tag)
        if not key:
            return
        profile.category_affinity[key] = profile.category_affinity.get(key, 0.0) + weight

    def get_stats(self) -> Dict[str, Any]:
        return self._backend.get_stats()


def create_preference_service(settings=None) -> PreferenceService:
    """
    Build the preference service for the configured backend.

    Uses Redis when REDIS_ENABLED is set and reachable, in-memory otherwise.
    """
    if settings is None:
        from config.settings import get_settings
        settings = get_settings()

    ttl = settings.preference_ttl_seconds
    if settings.redis_enabled:
        try:
            return PreferenceService(RedisPreferenceBackend.from_url(settings.redis_url, ttl_seconds=ttl))
        except (PreferenceStoreError, ImportError) as e:
            logger.warning("Redis unavailable, using in-memory preference store", error=str(e))

    return PreferenceService(InMemoryPreferenceBackend(ttl_seconds=ttl))
