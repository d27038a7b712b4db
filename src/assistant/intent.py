"""
Intent Extractor.

Reads two signals out of a conversation turn:
- audience: women / men / neutral, from the shopper query plus the
  assistant reply
- mentioned categories: garment terms the reply actually offered

and, from the query alone, the narrow garment term (if any) that switches on
the strict include/exclude category filter.

Detection is symmetric: ambiguity or silence yields
neutral, which means no audience restriction downstream.
"""

from typing import Iterable, Optional, Pattern, Tuple

from assistant.models import Audience, IntentSignals
from assistant.vocabulary import (
    AUDIENCE_TERMS,
    GARMENT_MENTION_PATTERN,
    NARROW_CATEGORY_RULES,
    NarrowCategoryRule,
)
from core.logging import get_logger
from core.utils import dedupe_preserving_order

logger = get_logger(__name__)


class IntentExtractor:
    """
    Derives IntentSignals from (query, reply).

    The term tables are injectable so tests and future locales can supply
    their own vocabulary.
    """

    def __init__(
        self,
        audience_terms: Iterable[Tuple[Pattern, Audience]] = AUDIENCE_TERMS,
        garment_pattern: Pattern = GARMENT_MENTION_PATTERN,
        narrow_rules: Iterable[NarrowCategoryRule] = NARROW_CATEGORY_RULES,
    ):
        self._audience_terms = tuple(audience_terms)
        self._garment_pattern = garment_pattern
        self._narrow_rules = tuple(narrow_rules)

    def detect_audience(self, query: str, reply: str) -> Audience:
        """
        Detect the audience preference from query and reply together.

        Only women terms -> WOMEN, only men terms -> MEN, both or neither -> NEUTRAL.
        """
        combined = f"{(query or '').lower()} {(reply or '').lower()}"
        found = {audience for pattern, audience in self._audience_terms if pattern.search(combined)}

        if found == {Audience.WOMEN}:
            return Audience.WOMEN
        if found == {Audience.MEN}:
            return Audience.MEN
        return Audience.NEUTRAL

    def detect_mentioned_categories(self, reply: str) -> Tuple[str, ...]:
        """
        Garment terms mentioned in the reply.

        Returns literal (lower-cased) terms in order of first appearance,
        without duplicates. The query is not consulted.
        """
        if not reply:
            return ()
        terms = (m.group(1).lower() for m in self._garment_pattern.finditer(reply))
        return tuple(dedupe_preserving_order(terms))

    def detect_narrow_term(self, query: str) -> Optional[str]:
        """Name of the first narrow-category rule the query triggers, or None."""
        if not query:
            return None
        for rule in self._narrow_rules:
            if rule.matches_query(query):
                return rule.name
        return None

    def extract(self, query: str, reply: str) -> IntentSignals:
        """Run all detectors once for a request."""
        signals = IntentSignals(
            audience=self.detect_audience(query, reply),
            mentioned_categories=self.detect_mentioned_categories(reply),
            narrow_term=self.detect_narrow_term(query),
        )
        logger.debug(
            "Intent extracted",
            audience=signals.audience.value,
            mentioned_categories=list(signals.mentioned_categories),
            narrow_term=signals.narrow_term,
        )
        return signals
