"""
Classification vocabulary.

Every keyword rule the engine applies lives here as data: ordered
(pattern, classification) tables evaluated top to bottom. New terms are
added by extending a table, never by editing control flow.

Tables:
- AUDIENCE_TERMS: conversation text -> Audience
- ITEM_GENDER_PATTERNS: item text -> gender facts
- GARMENT_MENTIONS: reply text -> mentioned category term (+ match stem)
- NARROW_CATEGORY_RULES: query text -> include/exclude rule pair
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Pattern, Tuple

from assistant.models import Audience, CatalogItem


# Straight or curly apostrophe, then an optional possessive "s"
_POSSESSIVE = r"(?:['’]s?)?"


def _words(*alternatives: str) -> Pattern:
    """Compile a case-insensitive whole-word pattern for the alternatives."""
    return re.compile(r"\b(?:" + "|".join(alternatives) + r")" + _POSSESSIVE + r"\b", re.IGNORECASE)


def _prefix(stem: str) -> Pattern:
    """Compile a case-insensitive pattern matching words that start with stem."""
    return re.compile(r"\b" + re.escape(stem), re.IGNORECASE)


# =============================================================================
# Audience detection (conversation text)
# =============================================================================

AUDIENCE_TERMS: Tuple[Tuple[Pattern, Audience], ...] = (
    (_words("women", "woman", "ladies", "lady"), Audience.WOMEN),
    (_words("men", "man", "guys", "male"), Audience.MEN),
)


# =============================================================================
# Item gender classification (catalog text)
# =============================================================================

class GenderSignal(str, Enum):
    """Facts an item's text can carry about its intended audience."""
    WOMEN_INDICATOR = "women_indicator"
    MEN_INDICATOR = "men_indicator"
    WOMEN_CATEGORY = "women_category"
    MEN_CATEGORY = "men_category"


ITEM_GENDER_PATTERNS: Tuple[Tuple[Pattern, GenderSignal], ...] = (
    # Explicit gender words
    (_words("women", "woman", "womens", "ladies", "lady", "womenswear"), GenderSignal.WOMEN_INDICATOR),
    (_words("men", "man", "mens", "menswear", "male", "males", "guys", "guy", "boy", "boys"),
     GenderSignal.MEN_INDICATOR),
    # Garments intrinsically associated with one audience
    (_prefix("dress"), GenderSignal.WOMEN_CATEGORY),
    (_words("skirt", "skirts"), GenderSignal.WOMEN_CATEGORY),
    (_prefix("crop"), GenderSignal.WOMEN_CATEGORY),
    (_words("legging", "leggings"), GenderSignal.WOMEN_CATEGORY),
    (_words("bra", "bras"), GenderSignal.WOMEN_CATEGORY),
    (_words("blouse", "blouses"), GenderSignal.WOMEN_CATEGORY),
    (_words("suit", "suits"), GenderSignal.MEN_CATEGORY),
    (_words("tie", "ties"), GenderSignal.MEN_CATEGORY),
    (_words("boxer", "boxers"), GenderSignal.MEN_CATEGORY),
    (_words("brief", "briefs"), GenderSignal.MEN_CATEGORY),
)


@dataclass(frozen=True)
class ItemGenderFacts:
    """The four boolean facts the audience rule is written against."""
    has_women_indicator: bool = False
    has_men_indicator: bool = False
    has_women_category: bool = False
    has_men_category: bool = False

    @property
    def has_gender_signal(self) -> bool:
        return (
            self.has_women_indicator
            or self.has_men_indicator
            or self.has_women_category
            or self.has_men_category
        )


def item_text(item: CatalogItem) -> str:
    """Text the gender classifier reads: category, subcategory, name, keywords."""
    return " | ".join((item.category, item.sub_category, item.name, item.keywords))


def classify_item(
    item: CatalogItem,
    patterns: Iterable[Tuple[Pattern, GenderSignal]] = ITEM_GENDER_PATTERNS,
) -> ItemGenderFacts:
    """
    Classify an item's gender signals.

    Args:
        item: Catalog item
        patterns: Ordered (pattern, signal) table

    Returns:
        ItemGenderFacts with each signal set if any of its patterns matched
    """
    text = item_text(item)
    found = {signal for pattern, signal in patterns if pattern.search(text)}
    return ItemGenderFacts(
        has_women_indicator=GenderSignal.WOMEN_INDICATOR in found,
        has_men_indicator=GenderSignal.MEN_INDICATOR in found,
        has_women_category=GenderSignal.WOMEN_CATEGORY in found,
        has_men_category=GenderSignal.MEN_CATEGORY in found,
    )


# =============================================================================
# Garment mentions (assistant reply text)
# =============================================================================

# (literal term, stem used to match catalog text). Longer phrases come first
# so "crop tops" wins over "crop top" and "shorts" over "short".
GARMENT_MENTIONS: Tuple[Tuple[str, str], ...] = (
    ("crop tops", "crop"),
    ("crop top", "crop"),
    ("tank tops", "tank"),
    ("tank top", "tank"),
    ("dresses", "dress"),
    ("dress", "dress"),
    ("skirts", "skirt"),
    ("skirt", "skirt"),
    ("leggings", "legging"),
    ("legging", "legging"),
    ("tanks", "tank"),
    ("tank", "tank"),
    ("shorts", "short"),
    ("short", "short"),
)

GARMENT_STEMS: Dict[str, str] = dict(GARMENT_MENTIONS)

GARMENT_MENTION_PATTERN: Pattern = re.compile(
    r"\b(" + "|".join(re.escape(term) for term, _ in GARMENT_MENTIONS) + r")\b",
    re.IGNORECASE,
)


def category_stem(term: str) -> str:
    """Stem used to match a mentioned term against catalog text ("dresses" -> "dress")."""
    normalized = " ".join(term.lower().split())
    return GARMENT_STEMS.get(normalized, normalized)


# =============================================================================
# Narrow-category rules (shopper query text)
# =============================================================================

@dataclass(frozen=True)
class NarrowCategoryRule:
    """
    Strict include/exclude pair for a specific garment named in the query.

    An item passes when its name, category or subcategory matches the
    include pattern AND its name or subcategory contains none of the
    confusable terms.
    """
    name: str
    query_pattern: Pattern
    include_pattern: Pattern
    exclude_terms: Tuple[str, ...]

    def matches_query(self, query: str) -> bool:
        return bool(self.query_pattern.search(query))

    def admits(self, item: CatalogItem) -> bool:
        include_text = " | ".join((item.name, item.category, item.sub_category))
        if not self.include_pattern.search(include_text):
            return False
        exclude_text = f"{item.name} | {item.sub_category}".lower()
        return not any(term in exclude_text for term in self.exclude_terms)


NARROW_CATEGORY_RULES: Tuple[NarrowCategoryRule, ...] = (
    NarrowCategoryRule(
        name="tee",
        query_pattern=re.compile(r"\b(?:tees?|t-shirts?|tshirts?)\b", re.IGNORECASE),
        include_pattern=re.compile(r"\b(?:tees?|t-shirts?|tshirts?)\b", re.IGNORECASE),
        exclude_terms=("jogger", "cargo", "pant", "tank", "crop"),
    ),
    NarrowCategoryRule(
        name="shorts",
        query_pattern=re.compile(r"\bshorts\b", re.IGNORECASE),
        include_pattern=re.compile(r"\bshorts?\b", re.IGNORECASE),
        exclude_terms=("shirt", "pant", "cargo", "jogger", "jean"),
    ),
)

_RULES_BY_NAME: Dict[str, NarrowCategoryRule] = {rule.name: rule for rule in NARROW_CATEGORY_RULES}


def get_narrow_rule(name: Optional[str]) -> Optional[NarrowCategoryRule]:
    """Look up a narrow-category rule by name (None for unknown names)."""
    if not name:
        return None
    return _RULES_BY_NAME.get(name)
