"""
Ranker & Deduplicator.

merge -> rank -> shuffle:
- merge_candidates: one candidate per item id, keeping the highest score
  (first seen wins ties)
- rank_candidates: stable sort by score descending, truncated to the limit
- shuffle_top: seeded shuffle of the retained set only, for presentation

Everything before the shuffle is deterministic for identical inputs.
"""

import random
from typing import Dict, List, Optional, Sequence

from assistant.models import Candidate


def merge_candidates(*groups: Sequence[Candidate]) -> List[Candidate]:
    """
    Merge candidate groups, deduplicating by item id.

    The surviving candidate for an id is the highest-scoring one; its
    position is the id's first appearance.
    """
    best: Dict[str, Candidate] = {}
    order: List[str] = []
    for group in groups:
        for candidate in group:
            current = best.get(candidate.item_id)
            if current is None:
                best[candidate.item_id] = candidate
                order.append(candidate.item_id)
            elif candidate.score > current.score:
                best[candidate.item_id] = candidate
    return [best[item_id] for item_id in order]


def rank_candidates(candidates: Sequence[Candidate], limit: int) -> List[Candidate]:
    """Stable descending sort by score, truncated to limit."""
    if limit <= 0:
        return []
    ranked = sorted(candidates, key=lambda c: -c.score)
    return ranked[:limit]


def make_rng(seed: Optional[int]) -> random.Random:
    return random.Random(seed)


def shuffle_top(candidates: Sequence[Candidate], seed: Optional[int]) -> List[Candidate]:
    """Return a shuffled copy. Only the retained top set is ever passed in."""
    shuffled = list(candidates)
    make_rng(seed).shuffle(shuffled)
    return shuffled
