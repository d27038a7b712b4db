"""
Cross-cutting candidate filters.

- Audience filter: drops items aimed at the other audience. Applied to every
  strategy's output and, independently, once more over the final list by the
  safety validator.
- Narrow-category filter: when the shopper named a specific garment
  ("tees", "shorts"), keeps only items of that garment and drops the
  confusable neighbours (joggers, cargo pants, tanks, ...).

Uncertainty excludes: an item with no gender signal never passes a women
filter.
"""

from typing import Dict, List, Optional, Sequence

from assistant.models import Audience, Candidate, CatalogItem, RankedItem
from assistant.vocabulary import ItemGenderFacts, NarrowCategoryRule, classify_item, get_narrow_rule
from core.logging import get_logger

logger = get_logger(__name__)


def is_audience_admissible(facts: ItemGenderFacts, audience: Audience) -> bool:
    """
    Apply the audience rule to an item's gender facts.

    women: keep iff the item carries a women indicator or women category,
           and no men indicator.
    men:   drop anything with a women indicator or women category; keep the
           rest if it has a men indicator, a men category, or no gender
           signal at all.

    The rules are intentionally asymmetric: unisex/unlabelled items are
    offered to men but not to women.
    """
    if audience == Audience.WOMEN:
        return (facts.has_women_indicator or facts.has_women_category) and not facts.has_men_indicator

    if audience == Audience.MEN:
        if facts.has_women_indicator or facts.has_women_category:
            return False
        return facts.has_men_indicator or facts.has_men_category or not facts.has_gender_signal

    return True


def item_matches_audience(item: CatalogItem, audience: Audience) -> bool:
    if audience == Audience.NEUTRAL:
        return True
    return is_audience_admissible(classify_item(item), audience)


def filter_by_audience(candidates: Sequence[Candidate], audience: Audience) -> List[Candidate]:
    """Keep the candidates admissible for audience (neutral passes everything)."""
    if audience == Audience.NEUTRAL:
        return list(candidates)
    return [c for c in candidates if item_matches_audience(c.item, audience)]


def filter_by_narrow_category(
    candidates: Sequence[Candidate],
    narrow_term: Optional[str],
) -> List[Candidate]:
    """Keep the candidates admitted by the narrow-category rule (no rule passes everything)."""
    rule: Optional[NarrowCategoryRule] = get_narrow_rule(narrow_term)
    if rule is None:
        return list(candidates)
    return [c for c in candidates if rule.admits(c.item)]


def validate_audience(
    items: Sequence[RankedItem],
    candidates_by_id: Dict[str, Candidate],
    audience: Audience,
) -> List[RankedItem]:
    """
    Final safety check over the output list.

    Re-runs the audience classification on every output item and drops (never
    replaces) any violator, logging each drop.

    Args:
        items: Output items, in display order
        candidates_by_id: item id -> Candidate, used to reach the full catalog item
        audience: Detected audience

    Returns:
        Items that pass, in the same order
    """
    if audience == Audience.NEUTRAL:
        return list(items)

    validated: List[RankedItem] = []
    for ranked in items:
        candidate = candidates_by_id.get(ranked.id)
        if candidate is not None and item_matches_audience(candidate.item, audience):
            validated.append(ranked)
            continue
        logger.warning(
            "Safety validator dropped item",
            item_id=ranked.id,
            item_name=ranked.name,
            audience=audience.value,
            strategy=ranked.strategy_tag.value if ranked.strategy_tag else None,
        )
    return validated
