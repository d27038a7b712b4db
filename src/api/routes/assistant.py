"""
Shopping Assistant API Routes.

Chat, recommendations, preference tracking and catalog cache refresh.

NOTE: Routes use `def` (not `async def`) because the engine, the OpenAI
client, Supabase and Redis calls are all synchronous. FastAPI runs sync
handlers in a thread pool.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from api.dependencies import get_assistant_service
from assistant.catalog import CatalogError
from assistant.chat_service import AssistantService
from assistant.models import ChatMessage, PreferenceProfile, RecommendationResult
from assistant.preferences import PreferenceStoreError
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/assistant", tags=["Assistant"])


# =============================================================================
# Request Models
# =============================================================================

class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, description="Shopper message")
    history: List[ChatMessage] = Field(default_factory=list, description="Previous turns, oldest first")
    session_id: Optional[str] = Field(default=None, description="Preference profile key")
    limit: Optional[int] = Field(default=None, ge=0, description="Max recommendations")


class RecommendationRequest(BaseModel):
    query: str = Field(default="", description="Shopper query text")
    reply: str = Field(default="", description="Assistant reply text for the same turn")
    session_id: Optional[str] = Field(default=None, description="Preference profile key")
    profile: Optional[PreferenceProfile] = Field(default=None, description="Inline profile (overrides session_id)")
    limit: Optional[int] = Field(default=None, ge=0)
    seed: Optional[int] = Field(default=None, description="Fixed shuffle seed")


class PersonalizedRequest(BaseModel):
    session_id: Optional[str] = None
    profile: Optional[PreferenceProfile] = None
    limit: Optional[int] = Field(default=None, ge=0)
    seed: Optional[int] = None


class ViewRequest(BaseModel):
    item_id: str = Field(..., min_length=1)
    category: str = ""
    sub_category: str = ""
    name: str = ""


class LikeRequest(BaseModel):
    item_id: str = Field(..., min_length=1)


class TagsRequest(BaseModel):
    """Only the lists that are present are replaced."""
    styles: Optional[List[str]] = None
    seasons: Optional[List[str]] = None
    occasions: Optional[List[str]] = None
    colors: Optional[List[str]] = None


# =============================================================================
# Helpers
# =============================================================================

def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _format_result(result: RecommendationResult) -> Dict[str, Any]:
    return {
        "recommendations": [item.to_display() for item in result.items],
        "count": len(result.items),
        "diagnostics": result.diagnostics(),
    }


def _profile_response(session_id: str, profile: PreferenceProfile) -> Dict[str, Any]:
    return {"session_id": session_id, "preferences": profile.model_dump()}


# =============================================================================
# Chat & Recommendations
# =============================================================================

@router.post("/chat", summary="Assistant reply plus product recommendations")
def chat(
    body: ChatRequest,
    request: Request,
    service: AssistantService = Depends(get_assistant_service),
) -> Dict[str, Any]:
    try:
        turn = service.chat(
            body.message,
            body.history,
            session_key=body.session_id,
            limit=body.limit,
            request_id=_request_id(request),
        )
    except PreferenceStoreError as e:
        logger.error("Preference store unavailable", error=str(e))
        raise HTTPException(status_code=503, detail="Preference store unavailable")
    return turn.to_dict()


@router.post("/recommendations", summary="Recommend products for a query/reply pair")
def recommendations(
    body: RecommendationRequest,
    request: Request,
    service: AssistantService = Depends(get_assistant_service),
) -> Dict[str, Any]:
    try:
        result = service.recommend(
            body.query,
            body.reply,
            session_key=body.session_id,
            profile=body.profile,
            limit=body.limit,
            seed=body.seed,
            request_id=_request_id(request),
        )
    except PreferenceStoreError as e:
        logger.error("Preference store unavailable", error=str(e))
        raise HTTPException(status_code=503, detail="Preference store unavailable")
    return _format_result(result)


@router.post("/personalized", summary="Profile-only recommendations")
def personalized(
    body: PersonalizedRequest,
    request: Request,
    service: AssistantService = Depends(get_assistant_service),
) -> Dict[str, Any]:
    if body.profile is None and not body.session_id:
        raise HTTPException(status_code=400, detail="session_id or profile is required")
    try:
        result = service.personalized(
            session_key=body.session_id,
            profile=body.profile,
            limit=body.limit,
            seed=body.seed,
            request_id=_request_id(request),
        )
    except PreferenceStoreError as e:
        logger.error("Preference store unavailable", error=str(e))
        raise HTTPException(status_code=503, detail="Preference store unavailable")
    return _format_result(result)


# =============================================================================
# Preferences
# =============================================================================

@router.get("/preferences/{session_id}", summary="Get a preference profile")
def get_preferences(
    session_id: str,
    service: AssistantService = Depends(get_assistant_service),
) -> Dict[str, Any]:
    return _profile_response(session_id, service.preferences.read(session_id))


@router.delete("/preferences/{session_id}", summary="Clear a preference profile")
def clear_preferences(
    session_id: str,
    service: AssistantService = Depends(get_assistant_service),
) -> Dict[str, Any]:
    return _profile_response(session_id, service.preferences.clear(session_id))


@router.post("/preferences/{session_id}/views", summary="Record a product view")
def track_view(
    session_id: str,
    body: ViewRequest,
    service: AssistantService = Depends(get_assistant_service),
) -> Dict[str, Any]:
    profile = service.preferences.track_view(
        session_id,
        body.item_id,
        category=body.category,
        sub_category=body.sub_category,
        name=body.name,
    )
    return _profile_response(session_id, profile)


@router.post("/preferences/{session_id}/likes", summary="Like a product")
def track_like(
    session_id: str,
    body: LikeRequest,
    service: AssistantService = Depends(get_assistant_service),
) -> Dict[str, Any]:
    return _profile_response(session_id, service.preferences.track_like(session_id, body.item_id))


@router.delete("/preferences/{session_id}/likes/{item_id}", summary="Unlike a product")
def track_unlike(
    session_id: str,
    item_id: str,
    service: AssistantService = Depends(get_assistant_service),
) -> Dict[str, Any]:
    profile = service.preferences.read(session_id)
    if item_id not in profile.liked_item_ids():
        raise HTTPException(status_code=404, detail=f"Item {item_id} is not liked")
    return _profile_response(session_id, service.preferences.track_unlike(session_id, item_id))


@router.put("/preferences/{session_id}/tags", summary="Replace explicit preference tags")
def update_tags(
    session_id: str,
    body: TagsRequest,
    service: AssistantService = Depends(get_assistant_service),
) -> Dict[str, Any]:
    prefs = service.preferences
    if all(v is None for v in (body.styles, body.seasons, body.occasions, body.colors)):
        raise HTTPException(status_code=400, detail="No tag lists provided")

    profile = prefs.read(session_id)
    if body.styles is not None:
        profile = prefs.update_styles(session_id, body.styles)
    if body.seasons is not None:
        profile = prefs.update_seasons(session_id, body.seasons)
    if body.occasions is not None:
        profile = prefs.update_occasions(session_id, body.occasions)
    if body.colors is not None:
        profile = prefs.update_colors(session_id, body.colors)
    return _profile_response(session_id, profile)


# =============================================================================
# Catalog
# =============================================================================

@router.post("/catalog/refresh", summary="Reload the catalog cache")
def refresh_catalog(
    service: AssistantService = Depends(get_assistant_service),
) -> Dict[str, Any]:
    try:
        report = service.refresh_catalog()
    except CatalogError as e:
        logger.error("Catalog refresh failed", error=str(e))
        raise HTTPException(status_code=503, detail=f"Catalog refresh failed: {e}")
    return {"success": True, "message": "Product cache refreshed successfully", **report.to_dict()}
