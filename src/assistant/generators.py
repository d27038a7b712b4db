"""
Candidate Generators.

Five independent strategies, tried by the engine in this priority order:

    1. ResponseCategoryGenerator   categories the assistant reply mentioned
    2. ViewedSimilarityGenerator   categories of recently viewed items
    3. CategoryAffinityGenerator   strongest category affinities
    4. ColorAffinityGenerator      preferred colors
    5. FallbackGenerator           newest catalog items (always available)

Generators only read: they receive a GenerationContext holding a private
copy of the profile and must not mutate the catalog items they return.
Catalog errors propagate; the engine turns them into an empty result.
"""

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Set

from assistant.catalog import CatalogClient
from assistant.models import Candidate, CatalogItem, IntentSignals, PreferenceProfile, StrategyTag
from assistant.vocabulary import category_stem
from config.constants import DEFAULT_ENGINE_CONFIG, EngineConfig
from core.logging import get_logger
from core.utils import dedupe_preserving_order, normalize_tag

logger = get_logger(__name__)


@dataclass(frozen=True)
class GenerationContext:
    """Inputs shared by every generator for one request."""
    intent: IntentSignals
    profile: PreferenceProfile
    size_hint: int = DEFAULT_ENGINE_CONFIG.DEFAULT_SIZE_HINT

    @classmethod
    def build(cls, intent: IntentSignals, profile: PreferenceProfile, size_hint: int) -> "GenerationContext":
        """Build a context around a deep copy of the caller's profile."""
        return cls(intent=intent, profile=profile.model_copy(deep=True), size_hint=size_hint)


def _matches_any_field(item: CatalogItem, wanted: Set[str]) -> bool:
    """True if the item's category or subcategory equals one of wanted (normalized)."""
    return normalize_tag(item.category) in wanted or normalize_tag(item.sub_category) in wanted


class CandidateGenerator:
    """Base class: one strategy of the cascade."""

    tag: StrategyTag

    def __init__(self, config: EngineConfig = DEFAULT_ENGINE_CONFIG):
        self.config = config

    def generate(self, catalog: CatalogClient, context: GenerationContext) -> List[Candidate]:
        raise NotImplementedError

    def _collect(
        self,
        items: Iterable[CatalogItem],
        score: float,
        size_hint: int,
        seen: Set[str],
        out: List[Candidate],
    ) -> bool:
        """
        Append unseen items to out as candidates.

        Returns True once out holds size_hint candidates.
        """
        for item in items:
            if len(out) >= size_hint:
                return True
            if item.id in seen:
                continue
            seen.add(item.id)
            out.append(Candidate(item=item, strategy_tag=self.tag, score=score))
        return len(out) >= size_hint

    def __repr__(self) -> str:
        return f"{type(self).__name__}(tag={self.tag.value})"


# =============================================================================
# 1. Response category
# =============================================================================

class ResponseCategoryGenerator(CandidateGenerator):
    """Items matching the garment terms the assistant reply mentioned."""

    tag = StrategyTag.RESPONSE_CATEGORY

    def generate(self, catalog: CatalogClient, context: GenerationContext) -> List[Candidate]:
        stems = dedupe_preserving_order(category_stem(t) for t in context.intent.mentioned_categories)
        out: List[Candidate] = []
        seen: Set[str] = set()
        for stem in stems:
            if self._collect(
                catalog.query_by_category(stem),
                self.config.RESPONSE_CATEGORY_SCORE,
                context.size_hint,
                seen,
                out,
            ):
                break
        return out


# =============================================================================
# 2. Viewed-item similarity
# =============================================================================

class ViewedSimilarityGenerator(CandidateGenerator):
    """
    Items sharing a category or subcategory with recently viewed items.

    Viewed entries recorded without a category are resolved through the
    catalog by id. Viewed items themselves are never returned.
    """

    tag = StrategyTag.VIEWED_SIMILARITY

    def _viewed_terms(self, catalog: CatalogClient, profile: PreferenceProfile) -> List[str]:
        recent = profile.viewed_items[: self.config.RECENT_VIEWS_WINDOW]
        terms: List[str] = []
        unresolved: List[str] = []
        for viewed in recent:
            if viewed.category or viewed.sub_category:
                terms.extend([viewed.category, viewed.sub_category])
            else:
                unresolved.append(viewed.item_id)

        if unresolved:
            for item in catalog.query_by_ids(unresolved):
                terms.extend([item.category, item.sub_category])

        return dedupe_preserving_order(t for t in (normalize_tag(t) for t in terms) if t)

    def generate(self, catalog: CatalogClient, context: GenerationContext) -> List[Candidate]:
        profile = context.profile
        if not profile.viewed_items:
            return []

        terms = self._viewed_terms(catalog, profile)
        if not terms:
            return []

        wanted = set(terms)
        viewed_ids = set(profile.viewed_item_ids())
        out: List[Candidate] = []
        seen: Set[str] = set(viewed_ids)
        for term in terms:
            matches = (i for i in catalog.query_by_category(term) if _matches_any_field(i, wanted))
            if self._collect(matches, self.config.VIEWED_SIMILARITY_SCORE, context.size_hint, seen, out):
                break
        return out


# =============================================================================
# 3. Category affinity
# =============================================================================

class CategoryAffinityGenerator(CandidateGenerator):
    """Items in the shopper's strongest categories, scored by relative weight."""

    tag = StrategyTag.CATEGORY_AFFINITY

    def generate(self, catalog: CatalogClient, context: GenerationContext) -> List[Candidate]:
        top = context.profile.top_affinities(self.config.TOP_AFFINITY_ENTRIES)
        if not top:
            return []

        max_weight = top[0][1]
        out: List[Candidate] = []
        seen: Set[str] = set()
        for tag, weight in top:
            matches = (i for i in catalog.query_by_category(tag) if _matches_any_field(i, {tag}))
            if self._collect(matches, weight / max_weight, context.size_hint, seen, out):
                break
        return out


# =============================================================================
# 4. Color affinity
# =============================================================================

class ColorAffinityGenerator(CandidateGenerator):
    """Items whose color tags intersect the shopper's preferred colors."""

    tag = StrategyTag.COLOR_AFFINITY

    def generate(self, catalog: CatalogClient, context: GenerationContext) -> List[Candidate]:
        colors = [c for c in (normalize_tag(c) for c in context.profile.preferred_colors) if c]
        if not colors:
            return []
        out: List[Candidate] = []
        self._collect(
            catalog.query_by_color(colors),
            self.config.COLOR_AFFINITY_SCORE,
            context.size_hint,
            set(),
            out,
        )
        return out


# =============================================================================
# 5. Fallback
# =============================================================================

class FallbackGenerator(CandidateGenerator):
    """Newest catalog items. Also used by the engine to top up short results."""

    tag = StrategyTag.FALLBACK

    def generate(self, catalog: CatalogClient, context: GenerationContext) -> List[Candidate]:
        out: List[Candidate] = []
        self._collect(
            catalog.query_newest(context.size_hint),
            self.config.FALLBACK_SCORE,
            context.size_hint,
            set(),
            out,
        )
        return out

    def top_up(
        self,
        catalog: CatalogClient,
        context: GenerationContext,
        exclude_ids: Sequence[str],
    ) -> List[Candidate]:
        """Newest items that are neither in exclude_ids nor already viewed."""
        excluded = set(exclude_ids) | set(context.profile.viewed_item_ids())
        # Over-fetch so exclusions do not starve the top-up
        fetched = catalog.query_newest(context.size_hint + len(excluded))
        out: List[Candidate] = []
        self._collect(fetched, self.config.FALLBACK_SCORE, context.size_hint, excluded, out)
        return out


def default_generators(config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> List[CandidateGenerator]:
    """The cascade in priority order."""
    return [
        ResponseCategoryGenerator(config),
        ViewedSimilarityGenerator(config),
        CategoryAffinityGenerator(config),
        ColorAffinityGenerator(config),
        FallbackGenerator(config),
    ]
