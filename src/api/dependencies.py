"""
Service singletons for the API layer.

Everything is created lazily on first use and shared across requests.
Routes depend on get_assistant_service(); tests swap it through
app.dependency_overrides or call reset_services().
"""

import threading
from dataclasses import replace
from typing import Optional

from assistant.catalog import CachedCatalog, CatalogError, InMemoryCatalog, SupabaseCatalog
from assistant.chat_service import AssistantService
from assistant.engine import RecommendationEngine
from assistant.preferences import create_preference_service
from assistant.reply_generator import OpenAIReplyGenerator
from config.constants import DEFAULT_ENGINE_CONFIG
from config.settings import get_settings
from core.logging import get_logger

logger = get_logger(__name__)


_service: Optional[AssistantService] = None
_service_lock = threading.Lock()


def build_catalog(settings) -> CachedCatalog:
    """
    Catalog for the configured backend, wrapped in the TTL cache.

    Supabase when configured and reachable, else the JSON seed file, else an
    empty catalog.
    """
    client = None
    if settings.supabase_configured:
        from config.database import get_supabase_client_optional

        client = get_supabase_client_optional()
        if client is None:
            logger.error("Supabase client unavailable, falling back to local catalog")

    if client is not None:
        source = SupabaseCatalog(client, table=settings.products_table)
        logger.info("Using Supabase catalog", table=settings.products_table)
    elif settings.catalog_seed_path:
        try:
            source = InMemoryCatalog.from_json_file(settings.catalog_seed_path)
            logger.info("Using seed catalog", path=str(settings.catalog_seed_path), item_count=len(source))
        except CatalogError as e:
            logger.error("Seed catalog unreadable, starting with an empty catalog", error=str(e))
            source = InMemoryCatalog()
    else:
        logger.warning("No catalog configured (set SUPABASE_URL or CATALOG_SEED_PATH)")
        source = InMemoryCatalog()

    return CachedCatalog(source, ttl_seconds=settings.catalog_cache_ttl_seconds)


def build_assistant_service(settings=None) -> AssistantService:
    settings = settings or get_settings()
    catalog = build_catalog(settings)
    config = replace(
        DEFAULT_ENGINE_CONFIG,
        DEFAULT_LIMIT=min(settings.default_result_limit, settings.max_result_limit),
        MAX_LIMIT=settings.max_result_limit,
    )
    engine = RecommendationEngine(
        catalog,
        config=config,
        generator_timeout=settings.generator_timeout_seconds,
    )
    return AssistantService(
        engine=engine,
        preferences=create_preference_service(settings),
        reply_generator=OpenAIReplyGenerator.from_settings(settings, catalog=catalog),
        catalog=catalog,
    )


def get_assistant_service() -> AssistantService:
    """Get or create the AssistantService singleton (thread-safe)."""
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = build_assistant_service()
    return _service


def reset_services() -> None:
    """Drop the singleton (closes its engine)."""
    global _service
    with _service_lock:
        if _service is not None:
            _service.engine.close()
        _service = None
