"""
FastAPI Application Factory.

This module provides a clean, configurable FastAPI application setup.

Usage:
    # Development
    uvicorn api.app:create_app --factory --reload

    # Production
    uvicorn api.app:app --host 0.0.0.0 --port 8080 --workers 4

    # Or use the convenience function
    from api.app import create_app
    app = create_app()
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import get_settings
from core.logging import configure_logging, get_logger
from core.middleware import RequestTracingMiddleware


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Runs on startup:
    - Initialize logging
    - Build services and warm the catalog cache

    Runs on shutdown:
    - Close the engine (logs generator calls still running)
    """
    settings = get_settings()

    configure_logging(
        json_logs=settings.is_production,
        log_level="DEBUG" if settings.debug else "INFO",
    )

    logger.info(
        "Starting shopping assistant API",
        environment=settings.environment,
        port=settings.port,
    )

    from api.dependencies import get_assistant_service, reset_services
    from assistant.catalog import CatalogError
    from config.database import SupabaseClientError

    try:
        service = get_assistant_service()
        items = service.catalog.all_items()
        logger.info("Catalog cache warmed", item_count=len(items))
    except (CatalogError, SupabaseClientError) as e:
        logger.warning("Could not warm catalog cache", error=str(e))

    yield  # Application is running

    logger.info("Shutting down shopping assistant API")
    reset_services()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    app = FastAPI(
        title="Shopping Assistant API",
        description="""
        Conversational shopping assistant with audience-safe product recommendations.

        ## Main Endpoints

        - `/api/assistant/chat` - Assistant reply plus recommendations
        - `/api/assistant/recommendations` - Recommendations for a query/reply pair
        - `/api/assistant/personalized` - Profile-only recommendations
        - `/api/assistant/preferences/*` - Viewed/liked items and preference tags
        - `/api/assistant/catalog/refresh` - Reload the catalog cache

        ## Health Checks

        - `/health` - Basic health check
        - `/health/detailed` - Detailed health with dependency status
        - `/ready` - Kubernetes readiness probe
        - `/live` - Kubernetes liveness probe
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # =========================================================================
    # Middleware (order matters - first added = outermost)
    # =========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request tracing (adds X-Request-ID, logs timing)
    app.add_middleware(RequestTracingMiddleware)

    # =========================================================================
    # Routes
    # =========================================================================

    from api.routes.health import router as health_router
    app.include_router(health_router, tags=["Health"])

    from api.routes.assistant import router as assistant_router
    app.include_router(assistant_router)

    return app


# Create default app instance for uvicorn
# Usage: uvicorn api.app:app
app = create_app()
