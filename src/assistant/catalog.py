"""
Catalog collaborators.

The engine only talks to the catalog through the CatalogClient protocol:

    query_by_category(term)  items whose category, subcategory, name or
                             keywords contain term (case-insensitive)
    query_by_ids(ids)        items with the given ids
    query_newest(limit)      newest items first
    query_by_color(colors)   items whose color tags intersect colors
    all_items()              full snapshot (cache warmup / refresh)

Every query returns newest-first and returns [] on "no matches".
Connectivity problems raise CatalogError; callers decide how to degrade.

Implementations:
- InMemoryCatalog: immutable snapshot (tests, dev seed files, cache backing)
- SupabaseCatalog: products table via supabase-py
- CachedCatalog: caller-owned TTL cache with explicit invalidate()
"""

import json
import re
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence

from assistant.models import CatalogItem
from core.logging import get_logger
from core.utils import normalize_string_set, normalize_tag

logger = get_logger(__name__)


class CatalogError(Exception):
    """Raised when the catalog backend cannot be reached or returns garbage."""
    pass


class CatalogClient(Protocol):
    """Read-only catalog interface consumed by the candidate generators."""

    def query_by_category(self, term: str) -> List[CatalogItem]: ...

    def query_by_ids(self, ids: Sequence[str]) -> List[CatalogItem]: ...

    def query_newest(self, limit: int) -> List[CatalogItem]: ...

    def query_by_color(self, colors: Sequence[str]) -> List[CatalogItem]: ...

    def all_items(self) -> List[CatalogItem]: ...


def newest_first(items: Iterable[CatalogItem]) -> List[CatalogItem]:
    """Sort newest first; id breaks ties so the order is total."""
    return sorted(items, key=lambda i: (-i.created_at.timestamp(), i.id))


def item_contains(item: CatalogItem, term: str) -> bool:
    """True if category, subcategory, name or keywords contain term (case-insensitive)."""
    needle = normalize_tag(term)
    if not needle:
        return False
    haystack = " | ".join((item.category, item.sub_category, item.name, item.keywords)).lower()
    return needle in haystack


# =============================================================================
# In-Memory Catalog
# =============================================================================

class InMemoryCatalog:
    """
    Immutable catalog snapshot held in process memory.

    Used directly in tests and dev, and as the snapshot behind CachedCatalog.
    """

    def __init__(self, items: Iterable[CatalogItem] = ()):
        self._items: tuple = tuple(newest_first(items))

    @classmethod
    def from_rows(cls, rows: Iterable[Dict[str, Any]]) -> "InMemoryCatalog":
        return cls(CatalogItem.from_row(row) for row in rows)

    @classmethod
    def from_json_file(cls, path: Path) -> "InMemoryCatalog":
        """
        Load a catalog from a JSON file holding a list of product rows
        (or {"products": [...]}).
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise CatalogError(f"Failed to load catalog seed {path}: {e}") from e
        if isinstance(data, dict):
            data = data.get("products", [])
        return cls.from_rows(data)

    def __len__(self) -> int:
        return len(self._items)

    def query_by_category(self, term: str) -> List[CatalogItem]:
        return [item for item in self._items if item_contains(item, term)]

    def query_by_ids(self, ids: Sequence[str]) -> List[CatalogItem]:
        wanted = set(ids)
        return [item for item in self._items if item.id in wanted]

    def query_newest(self, limit: int) -> List[CatalogItem]:
        if limit <= 0:
            return []
        return list(self._items[:limit])

    def query_by_color(self, colors: Sequence[str]) -> List[CatalogItem]:
        wanted = normalize_string_set(colors)
        if not wanted:
            return []
        return [item for item in self._items if normalize_string_set(item.color_tags) & wanted]

    def all_items(self) -> List[CatalogItem]:
        return list(self._items)

    def known_categories(self) -> List[str]:
        return sorted({i.category for i in self._items if i.category})

    def known_sub_categories(self) -> List[str]:
        return sorted({i.sub_category for i in self._items if i.sub_category})

    def recent_items(self, hours: int = 24, now: Optional[datetime] = None) -> List[CatalogItem]:
        """Items created within the last `hours` hours."""
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=hours)
        return [i for i in self._items if i.created_at > cutoff]


# =============================================================================
# Supabase Catalog
# =============================================================================

# Characters with meaning inside a PostgREST or_() filter string
_POSTGREST_RESERVED = re.compile(r"[,()*%\\]")


class SupabaseCatalog:
    """
    Catalog backed by a Supabase (PostgREST) products table.

    Expected columns: id, name, category, sub_category, price, created_at,
    color_tags (text[]), size_tags (text[]), keywords, image_url.
    """

    SEARCH_COLUMNS = ("category", "sub_category", "name", "keywords")

    def __init__(self, client, table: str = "products", page_size: int = 1000, max_pages: int = 50):
        self._client = client
        self._table = table
        self._page_size = page_size
        self._max_pages = max_pages

    def _select(self):
        return self._client.table(self._table).select("*")

    def _execute(self, query, operation: str) -> List[CatalogItem]:
        try:
            result = query.execute()
        except Exception as e:
            raise CatalogError(f"Supabase {operation} failed: {e}") from e
        return [CatalogItem.from_row(row) for row in (result.data or [])]

    def query_by_category(self, term: str) -> List[CatalogItem]:
        needle = _POSTGREST_RESERVED.sub(" ", normalize_tag(term)).strip()
        if not needle:
            return []
        condition = ",".join(f"{col}.ilike.*{needle}*" for col in self.SEARCH_COLUMNS)
        query = self._select().or_(condition).order("created_at", desc=True).limit(self._page_size)
        return self._execute(query, "query_by_category")

    def query_by_ids(self, ids: Sequence[str]) -> List[CatalogItem]:
        ids = [i for i in ids if i]
        if not ids:
            return []
        query = self._select().in_("id", list(ids)).order("created_at", desc=True)
        return self._execute(query, "query_by_ids")

    def query_newest(self, limit: int) -> List[CatalogItem]:
        if limit <= 0:
            return []
        query = self._select().order("created_at", desc=True).limit(limit)
        return self._execute(query, "query_newest")

    def query_by_color(self, colors: Sequence[str]) -> List[CatalogItem]:
        wanted = sorted(normalize_string_set(colors))
        if not wanted:
            return []
        query = self._select().overlaps("color_tags", wanted).order("created_at", desc=True)
        return self._execute(query, "query_by_color")

    def all_items(self) -> List[CatalogItem]:
        items: List[CatalogItem] = []
        for page in range(self._max_pages):
            start = page * self._page_size
            query = self._select().order("created_at", desc=True).range(start, start + self._page_size - 1)
            batch = self._execute(query, "all_items")
            items.extend(batch)
            if len(batch) < self._page_size:
                break
        return items


# =============================================================================
# Cached Catalog
# =============================================================================

class CachedCatalog:
    """
    Caller-owned catalog cache.

    Loads a full snapshot from the source catalog and answers every query
    from it until the snapshot is older than ttl_seconds or invalidate()
    is called. If a reload fails while a stale snapshot exists, the stale
    snapshot keeps serving and the failure is logged; with no snapshot at
    all the CatalogError propagates.
    """

    def __init__(
        self,
        source: CatalogClient,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._source = source
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = Lock()
        self._snapshot: Optional[InMemoryCatalog] = None
        self._loaded_at: Optional[float] = None
        self._loaded_wall: Optional[datetime] = None

    # =========================================================
    # Snapshot management
    # =========================================================

    def _is_fresh(self) -> bool:
        return (
            self._snapshot is not None
            and self._loaded_at is not None
            and self._clock() - self._loaded_at < self._ttl
        )

    def _load(self) -> InMemoryCatalog:
        items = self._source.all_items()
        self._snapshot = InMemoryCatalog(items)
        self._loaded_at = self._clock()
        self._loaded_wall = datetime.now(timezone.utc)
        logger.info("Catalog snapshot loaded", item_count=len(self._snapshot))
        return self._snapshot

    def snapshot(self) -> InMemoryCatalog:
        """
        Current snapshot, reloading it first if missing or expired.

        Only the first load waits for the lock. Once a snapshot exists, a
        caller that finds another thread mid-reload gets the stale snapshot
        instead of queueing behind a slow source.
        """
        if self._is_fresh():
            return self._snapshot
        stale = self._snapshot
        if stale is not None:
            if not self._lock.acquire(blocking=False):
                return stale
        else:
            self._lock.acquire()
        try:
            if self._is_fresh():
                return self._snapshot
            try:
                return self._load()
            except CatalogError as e:
                if self._snapshot is None:
                    raise
                logger.warning("Catalog reload failed, serving stale snapshot", error=str(e))
                return self._snapshot
        finally:
            self._lock.release()

    def invalidate(self) -> None:
        """Mark the snapshot stale; the next query reloads it."""
        with self._lock:
            self._loaded_at = None
        logger.info("Catalog cache invalidated")

    def refresh(self) -> InMemoryCatalog:
        """Invalidate and reload immediately. Raises CatalogError on failure."""
        with self._lock:
            return self._load()

    # =========================================================
    # CatalogClient interface
    # =========================================================

    def query_by_category(self, term: str) -> List[CatalogItem]:
        return self.snapshot().query_by_category(term)

    def query_by_ids(self, ids: Sequence[str]) -> List[CatalogItem]:
        return self.snapshot().query_by_ids(ids)

    def query_newest(self, limit: int) -> List[CatalogItem]:
        return self.snapshot().query_newest(limit)

    def query_by_color(self, colors: Sequence[str]) -> List[CatalogItem]:
        return self.snapshot().query_by_color(colors)

    def all_items(self) -> List[CatalogItem]:
        return self.snapshot().all_items()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "loaded": self._snapshot is not None,
            "fresh": self._is_fresh(),
            "item_count": len(self._snapshot) if self._snapshot is not None else 0,
            "loaded_at": self._loaded_wall.isoformat() if self._loaded_wall else None,
            "ttl_seconds": self._ttl,
        }
