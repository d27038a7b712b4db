"""
Health check endpoints.

Provides endpoints for monitoring application health and status.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from api.dependencies import get_assistant_service
from assistant.catalog import CachedCatalog
from assistant.chat_service import AssistantService
from config.settings import get_settings


router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Returns:
        Health status with basic info
    """
    return {
        "status": "healthy",
        "service": "shopping-assistant-api",
    }


@router.get("/health/detailed")
def detailed_health_check(
    service: AssistantService = Depends(get_assistant_service),
) -> Dict[str, Any]:
    """
    Detailed health check with dependency status.

    Checks:
    - Configuration loaded
    - Catalog cache state
    - Preference store backend
    - Reply generator configuration
    """
    settings = get_settings()
    catalog = service.catalog
    catalog_stats = catalog.get_stats() if isinstance(catalog, CachedCatalog) else {"loaded": True}

    return {
        "status": "healthy" if catalog_stats.get("loaded") else "degraded",
        "service": "shopping-assistant-api",
        "environment": settings.environment,
        "checks": {
            "config": "ok",
            "catalog": catalog_stats,
            "preferences": service.preferences.get_stats(),
            "reply_generator": "configured" if getattr(service.reply_generator, "enabled", True) else "fallback_only",
        },
    }


@router.get("/ready")
def readiness_check(
    service: AssistantService = Depends(get_assistant_service),
) -> Dict[str, str]:
    """
    Kubernetes-style readiness probe.

    Ready once a catalog snapshot has been loaded.
    """
    catalog = service.catalog
    if isinstance(catalog, CachedCatalog) and not catalog.get_stats()["loaded"]:
        return {"status": "not_ready", "reason": "catalog_not_loaded"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes-style liveness probe.

    Returns 200 if the service is alive.
    """
    return {"status": "alive"}
