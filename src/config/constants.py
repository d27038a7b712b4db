"""
Application constants and algorithm configuration.

These are values that don't change based on environment but may need
to be tuned or referenced across the codebase.
"""

from dataclasses import dataclass


# =============================================================================
# Recommendation Engine Configuration
# =============================================================================

@dataclass(frozen=True)
class EngineConfig:
    """Configuration for the recommendation cascade."""

    # Fixed strategy scores
    RESPONSE_CATEGORY_SCORE: float = 0.9
    VIEWED_SIMILARITY_SCORE: float = 0.8
    COLOR_AFFINITY_SCORE: float = 0.6
    FALLBACK_SCORE: float = 0.1

    # Size hint handed to each generator
    DEFAULT_SIZE_HINT: int = 8
    # Generators over-fetch so cross-cutting filters have room to work
    SIZE_HINT_MULTIPLIER: int = 3

    # Profile signal windows
    RECENT_VIEWS_WINDOW: int = 5
    TOP_AFFINITY_ENTRIES: int = 3

    # Top up an under-sized winning strategy with newest items
    MIN_RESULTS: int = 4

    # Output bounds
    DEFAULT_LIMIT: int = 4
    MAX_LIMIT: int = 8


DEFAULT_ENGINE_CONFIG = EngineConfig()


# =============================================================================
# Preference Profile Configuration
# =============================================================================

@dataclass(frozen=True)
class PreferenceConfig:
    """Weights and bounds for preference tracking."""

    MAX_VIEWED_ITEMS: int = 20
    CATEGORY_VIEW_WEIGHT: float = 1.0
    SUBCATEGORY_VIEW_WEIGHT: float = 0.5


DEFAULT_PREFERENCE_CONFIG = PreferenceConfig()


# =============================================================================
# Assistant Configuration
# =============================================================================

# Products embedded into the reply generator's system prompt
MAX_PROMPT_PRODUCTS: int = 20

# Window used by the catalog refresh report
RECENT_PRODUCTS_HOURS: int = 24

FALLBACK_REPLY: str = (
    "I'm having trouble connecting to my knowledge base right now. "
    "Please try again in a moment, or contact our customer service team "
    "for immediate assistance."
)
