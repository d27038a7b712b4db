"""
Core Utility Functions.

Common utilities used across the application.
"""

import hashlib
from typing import Iterable, List, Optional, Set


def normalize_tag(value: Optional[str]) -> str:
    """
    Normalize a free-text tag (category, color, style) for comparison.

    Args:
        value: Raw tag (may be None)

    Returns:
        Lowercase, stripped, whitespace-collapsed string ("" for None)
    """
    if not value:
        return ""
    return " ".join(value.lower().split())


def normalize_string_set(items: Optional[Iterable[str]]) -> Set[str]:
    """
    Normalize strings to a set of lowercase, stripped strings.

    Args:
        items: Strings (may contain None, empty strings)

    Returns:
        Set of normalized, non-empty strings
    """
    if not items:
        return set()
    return {normalize_tag(s) for s in items if s and normalize_tag(s)}


def dedupe_preserving_order(items: Iterable[str]) -> List[str]:
    """
    Remove duplicates from a sequence while keeping first-seen order.

    Example:
        >>> dedupe_preserving_order(["dress", "skirt", "dress"])
        ['dress', 'skirt']
    """
    seen: Set[str] = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def stable_seed(value: str) -> int:
    """
    Derive a deterministic 64-bit seed from a string (e.g. a request id).

    Python's built-in hash() is salted per process, so it can't be used
    to reproduce an ordering across runs.
    """
    digest = hashlib.sha256(value.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")
