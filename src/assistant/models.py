"""
Models for the shopping assistant recommendation engine.

Models cover:
- Catalog items (read-only snapshot of the product catalog)
- Preference profiles (per-session shopper signals)
- Transient per-request values: intent signals, candidates, strategy attempts
- Ranked output items handed back to the caller
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.utils import normalize_tag


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# =============================================================================
# Enums
# =============================================================================

class Audience(str, Enum):
    """Shopper-targeting signal inferred from the conversation."""
    WOMEN = "women"
    MEN = "men"
    NEUTRAL = "neutral"


class StrategyTag(str, Enum):
    """Candidate generators, in cascade priority order."""
    RESPONSE_CATEGORY = "response_category"
    VIEWED_SIMILARITY = "viewed_similarity"
    CATEGORY_AFFINITY = "category_affinity"
    COLOR_AFFINITY = "color_affinity"
    FALLBACK = "fallback"


# =============================================================================
# Catalog
# =============================================================================

class CatalogItem(BaseModel):
    """
    A product as seen by the engine.

    Frozen: strategies share item instances, so none of them may
    modify one in place.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    category: str = ""
    sub_category: str = ""
    price: float = 0.0
    created_at: datetime = EPOCH
    color_tags: Tuple[str, ...] = ()
    size_tags: Tuple[str, ...] = ()
    keywords: str = ""
    image: Optional[str] = None

    @field_validator("created_at", mode="after")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "CatalogItem":
        """
        Build an item from a catalog row.

        Accepts both the Supabase column names (sub_category, color_tags,
        image_url, created_at) and the storefront document shape
        (_id, productName, subCategory, regularPrice, gallery, sizes, createdAt).
        """
        gallery = row.get("gallery") or []
        gallery_colors = [g.get("color") for g in gallery if isinstance(g, dict) and g.get("color")]
        gallery_image = next(
            (g.get("src") for g in gallery if isinstance(g, dict) and g.get("src")),
            None,
        )

        keywords = row.get("keywords") or ""
        if isinstance(keywords, (list, tuple)):
            keywords = " ".join(str(k) for k in keywords)

        created_at = row.get("created_at") or row.get("createdAt") or EPOCH

        return cls(
            id=str(row.get("id") or row.get("_id")),
            name=row.get("name") or row.get("productName") or "",
            category=row.get("category") or "",
            sub_category=row.get("sub_category") or row.get("subCategory") or "",
            price=float(row.get("price") or row.get("regularPrice") or 0.0),
            created_at=created_at,
            color_tags=tuple(row.get("color_tags") or row.get("colors") or gallery_colors),
            size_tags=tuple(row.get("size_tags") or row.get("sizes") or ()),
            keywords=keywords,
            image=row.get("image") or row.get("image_url") or gallery_image,
        )


# =============================================================================
# Preference Profile
# =============================================================================

class ViewedItem(BaseModel):
    """One entry of the recently-viewed list."""
    item_id: str
    category: str = ""
    sub_category: str = ""
    name: str = ""
    timestamp: float = 0.0


class LikedItem(BaseModel):
    """A liked product."""
    item_id: str
    timestamp: float = 0.0


class PreferenceProfile(BaseModel):
    """
    Accumulated shopper signals for one user/session.

    viewed_items is newest first and bounded; category_affinity maps a
    normalized category or subcategory name to a non-negative weight.
    The explicit tag lists are replaced wholesale when the shopper edits them.
    """
    viewed_items: List[ViewedItem] = Field(default_factory=list)
    liked_items: List[LikedItem] = Field(default_factory=list)
    category_affinity: Dict[str, float] = Field(default_factory=dict)
    preferred_styles: List[str] = Field(default_factory=list)
    preferred_seasons: List[str] = Field(default_factory=list)
    preferred_occasions: List[str] = Field(default_factory=list)
    preferred_colors: List[str] = Field(default_factory=list)

    def viewed_item_ids(self) -> List[str]:
        return [v.item_id for v in self.viewed_items]

    def liked_item_ids(self) -> List[str]:
        return [l.item_id for l in self.liked_items]

    def top_affinities(self, n: int) -> List[Tuple[str, float]]:
        """
        Highest-weight affinity entries, ties broken alphabetically.

        Zero-weight and blank entries are ignored.
        """
        entries = [
            (normalize_tag(tag), weight)
            for tag, weight in self.category_affinity.items()
            if normalize_tag(tag) and weight > 0
        ]
        entries.sort(key=lambda e: (-e[1], e[0]))
        return entries[:n]

    @property
    def is_empty(self) -> bool:
        return not (
            self.viewed_items
            or self.liked_items
            or self.category_affinity
            or self.preferred_styles
            or self.preferred_seasons
            or self.preferred_occasions
            or self.preferred_colors
        )


# =============================================================================
# Per-request values
# =============================================================================

@dataclass(frozen=True)
class IntentSignals:
    """What the intent extractor read out of (query, reply)."""
    audience: Audience = Audience.NEUTRAL
    mentioned_categories: Tuple[str, ...] = ()
    narrow_term: Optional[str] = None


@dataclass(frozen=True)
class Candidate:
    """A scored, provisional recommendation."""
    item: CatalogItem
    strategy_tag: StrategyTag
    score: float

    @property
    def item_id(self) -> str:
        return self.item.id


@dataclass
class StrategyAttempt:
    """Diagnostics for one generator run inside the cascade."""
    strategy: StrategyTag
    generated: int = 0
    kept: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "generated": self.generated,
            "kept": self.kept,
            "error": self.error,
        }


class RankedItem(BaseModel):
    """Item returned to the caller. strategy_tag is diagnostics only."""
    id: str
    name: str
    price: float
    image: Optional[str] = None
    category: str = ""
    sub_category: str = ""
    strategy_tag: Optional[StrategyTag] = None

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "RankedItem":
        item = candidate.item
        return cls(
            id=item.id,
            name=item.name,
            price=round(item.price, 2),
            image=item.image,
            category=item.category,
            sub_category=item.sub_category,
            strategy_tag=candidate.strategy_tag,
        )

    def to_display(self) -> Dict[str, Any]:
        """Dict for rendering, without the diagnostic strategy tag."""
        return self.model_dump(exclude={"strategy_tag"})


@dataclass
class RecommendationResult:
    """
    Full outcome of one recommendation request.

    ranked is the deterministic, pre-shuffle top-K; items is what the
    caller displays (shuffled, then safety-validated).
    """
    items: List[RankedItem] = field(default_factory=list)
    ranked: List[Candidate] = field(default_factory=list)
    strategy: Optional[StrategyTag] = None
    intent: IntentSignals = field(default_factory=IntentSignals)
    attempts: List[StrategyAttempt] = field(default_factory=list)
    seed: Optional[int] = None

    def diagnostics(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy.value if self.strategy else None,
            "audience": self.intent.audience.value,
            "mentioned_categories": list(self.intent.mentioned_categories),
            "narrow_term": self.intent.narrow_term,
            "attempts": [a.to_dict() for a in self.attempts],
            "seed": self.seed,
        }


class ChatMessage(BaseModel):
    """One turn of conversation history."""
    text: str
    is_user: bool = True
