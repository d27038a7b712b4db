"""
Shopping assistant recommendation engine.

Modules:
- models: catalog items, preference profiles, candidates, ranked output
- vocabulary: ordered keyword tables for audience and garment detection
- intent: audience / mentioned-category / narrow-term extraction
- catalog: catalog collaborators (in-memory, Supabase, TTL cache)
- generators: the five candidate strategies
- filters: audience and narrow-category filters, safety validator
- ranking: dedupe, rank, seeded shuffle
- engine: the recommendation cascade
- preferences: preference store (in-memory / Redis)
- reply_generator: OpenAI-backed assistant replies
- chat_service: facade used by the API
"""

from assistant.catalog import CachedCatalog, CatalogClient, CatalogError, InMemoryCatalog, SupabaseCatalog
from assistant.engine import RecommendationEngine
from assistant.intent import IntentExtractor
from assistant.models import (
    Audience,
    CatalogItem,
    PreferenceProfile,
    RankedItem,
    RecommendationResult,
    StrategyTag,
)
from assistant.preferences import PreferenceService, PreferenceStoreError
from assistant.reply_generator import OpenAIReplyGenerator, ReplyGenerationError

__all__ = [
    "Audience",
    "CachedCatalog",
    "CatalogClient",
    "CatalogError",
    "CatalogItem",
    "InMemoryCatalog",
    "IntentExtractor",
    "OpenAIReplyGenerator",
    "PreferenceProfile",
    "PreferenceService",
    "PreferenceStoreError",
    "RankedItem",
    "RecommendationEngine",
    "RecommendationResult",
    "ReplyGenerationError",
    "StrategyTag",
    "SupabaseCatalog",
]
