"""
Assistant Service.

Ties the collaborators together for the HTTP layer:

    chat          reply generator -> recommendation engine
    recommend     engine over an explicit (query, reply) pair
    personalized  engine over the profile alone
    refresh       catalog cache reload + report

Preference profiles are looked up by session key unless the caller passes
one in directly.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from assistant.catalog import CachedCatalog, CatalogClient, InMemoryCatalog
from assistant.engine import RecommendationEngine
from assistant.models import ChatMessage, PreferenceProfile, RecommendationResult
from assistant.preferences import PreferenceService
from assistant.reply_generator import ReplyGenerationError, ReplyGenerator
from config.constants import FALLBACK_REPLY, RECENT_PRODUCTS_HOURS
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ChatTurn:
    """Reply plus recommendations for one chat message."""
    reply: str
    result: RecommendationResult
    reply_source: str = "model"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reply": self.reply,
            "reply_source": self.reply_source,
            "recommendations": [item.to_display() for item in self.result.items],
            "diagnostics": self.result.diagnostics(),
        }


@dataclass
class CatalogRefreshReport:
    product_count: int
    categories: List[str] = field(default_factory=list)
    sub_categories: List[str] = field(default_factory=list)
    recent_products: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_count": self.product_count,
            "categories": self.categories,
            "sub_categories": self.sub_categories,
            "recent_products": len(self.recent_products),
            "recent_product_names": self.recent_products,
            "timestamp": self.timestamp.isoformat(),
        }


class AssistantService:
    """Facade over engine, preference store, reply generator and catalog."""

    def __init__(
        self,
        engine: RecommendationEngine,
        preferences: PreferenceService,
        reply_generator: ReplyGenerator,
        catalog: Optional[CatalogClient] = None,
    ):
        self.engine = engine
        self.preferences = preferences
        self.reply_generator = reply_generator
        self.catalog = catalog or engine.catalog

    def _profile(self, session_key: Optional[str], profile: Optional[PreferenceProfile]) -> PreferenceProfile:
        if profile is not None:
            return profile
        if session_key:
            return self.preferences.read(session_key)
        return PreferenceProfile()

    # =========================================================
    # Chat
    # =========================================================

    def chat(
        self,
        message: str,
        history: Sequence[ChatMessage] = (),
        session_key: Optional[str] = None,
        limit: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> ChatTurn:
        """
        Answer a chat message and recommend products for it.

        A failed reply generator never fails the turn: the canned fallback
        reply is returned and recommendations run without reply text.
        """
        reply_source = "model"
        try:
            reply = self.reply_generator.generate(message, history)
            engine_reply = reply
        except ReplyGenerationError as e:
            logger.warning("Reply generation failed, using fallback reply", error=str(e))
            reply = FALLBACK_REPLY
            engine_reply = ""
            reply_source = "fallback"

        result = self.engine.run(
            message,
            engine_reply,
            self._profile(session_key, None),
            limit=limit,
            request_id=request_id,
        )
        return ChatTurn(reply=reply, result=result, reply_source=reply_source)

    # =========================================================
    # Recommendations
    # =========================================================

    def recommend(
        self,
        query: str,
        reply: str = "",
        session_key: Optional[str] = None,
        profile: Optional[PreferenceProfile] = None,
        limit: Optional[int] = None,
        seed: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> RecommendationResult:
        return self.engine.run(
            query,
            reply,
            self._profile(session_key, profile),
            limit=limit,
            seed=seed,
            request_id=request_id,
        )

    def personalized(
        self,
        session_key: Optional[str] = None,
        profile: Optional[PreferenceProfile] = None,
        limit: Optional[int] = None,
        seed: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> RecommendationResult:
        """Profile-only recommendations (no query or reply text)."""
        return self.recommend("", "", session_key, profile, limit=limit, seed=seed, request_id=request_id)

    # =========================================================
    # Catalog
    # =========================================================

    def refresh_catalog(self, recent_hours: int = RECENT_PRODUCTS_HOURS) -> CatalogRefreshReport:
        """
        Reload the catalog cache and summarize what it now holds.

        Raises:
            CatalogError: if the catalog cannot be loaded
        """
        if isinstance(self.catalog, CachedCatalog):
            snapshot = self.catalog.refresh()
        else:
            snapshot = InMemoryCatalog(self.catalog.all_items())

        report = CatalogRefreshReport(
            product_count=len(snapshot),
            categories=snapshot.known_categories(),
            sub_categories=snapshot.known_sub_categories(),
            recent_products=[i.name for i in snapshot.recent_items(hours=recent_hours)],
        )
        logger.info(
            "Catalog refreshed",
            product_count=report.product_count,
            categories=len(report.categories),
            sub_categories=len(report.sub_categories),
            recent_products=len(report.recent_products),
        )
        return report
