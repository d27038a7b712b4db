"""
Recommendation Engine.

Pipeline for one request:

    1. Intent extraction (audience, mentioned categories, narrow term)
    2. Candidate generators in priority order; each result goes through the
       audience filter and the narrow-category filter, and the first
       strategy with survivors wins
    3. Optional top-up with newest items when the winner came up short
    4. Merge/dedupe, stable rank, truncate to limit
    5. Seeded shuffle of the retained set
    6. Safety validator (audience re-check, drop-only)

Each generator runs on a worker thread under a time budget. A generator that
raises or times out contributes nothing and the cascade moves on.
recommend() never raises: anything unexpected is logged and yields [].

Usage:
    engine = RecommendationEngine(catalog)
    items = engine.recommend("do you have dresses", reply, profile, limit=4)
"""

import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Callable, List, Optional, Sequence, Set

from assistant.catalog import CatalogClient
from assistant.filters import filter_by_audience, filter_by_narrow_category, validate_audience
from assistant.generators import CandidateGenerator, FallbackGenerator, GenerationContext, default_generators
from assistant.intent import IntentExtractor
from assistant.models import (
    Candidate,
    PreferenceProfile,
    RankedItem,
    RecommendationResult,
    StrategyAttempt,
    StrategyTag,
)
from assistant.ranking import merge_candidates, rank_candidates, shuffle_top
from config.constants import DEFAULT_ENGINE_CONFIG, EngineConfig
from core.logging import get_logger
from core.utils import stable_seed

logger = get_logger(__name__)


# Winners that are never topped up: a reply-driven result must stay on the
# categories the reply offered, and the fallback already is the newest items.
_NO_TOP_UP = frozenset({StrategyTag.RESPONSE_CATEGORY, StrategyTag.FALLBACK})


def resolve_seed(seed: Optional[int] = None, request_id: Optional[str] = None) -> int:
    """
    Pick the shuffle seed for a request.

    Explicit seed first, then a stable hash of the request id, then a fresh
    random seed (logged so the ordering can be reproduced).
    """
    if seed is not None:
        return seed
    if request_id:
        return stable_seed(request_id)
    generated = uuid.uuid4().int & ((1 << 63) - 1)
    logger.debug("Generated shuffle seed", seed=generated)
    return generated


class RecommendationEngine:
    """
    Cascade recommender with audience and narrow-category guarantees.

    The engine holds no per-request state; one instance serves concurrent
    requests. The profile passed in is never mutated.
    """

    def __init__(
        self,
        catalog: CatalogClient,
        intent_extractor: Optional[IntentExtractor] = None,
        generators: Optional[Sequence[CandidateGenerator]] = None,
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
        generator_timeout: float = 4.0,
    ):
        """
        Args:
            catalog: Catalog collaborator
            intent_extractor: Defaults to the built-in vocabulary
            generators: Cascade in priority order (defaults to the five built-ins)
            config: Scores, size hints and output bounds
            generator_timeout: Per-generator time budget in seconds
        """
        self.catalog = catalog
        self.intent_extractor = intent_extractor or IntentExtractor()
        self.generators: List[CandidateGenerator] = list(generators or default_generators(config))
        self.config = config
        self.generator_timeout = generator_timeout

        self._abandoned: Set[Future] = set()
        self._abandoned_lock = threading.Lock()

        self._fallback = next(
            (g for g in self.generators if isinstance(g, FallbackGenerator)),
            FallbackGenerator(config),
        )

    # =========================================================
    # Public API
    # =========================================================

    def recommend(
        self,
        query: str,
        reply: str,
        profile: Optional[PreferenceProfile] = None,
        limit: Optional[int] = None,
        seed: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> List[RankedItem]:
        """Ranked, audience-safe items for display (possibly empty)."""
        return self.run(query, reply, profile, limit=limit, seed=seed, request_id=request_id).items

    def run(
        self,
        query: str,
        reply: str,
        profile: Optional[PreferenceProfile] = None,
        limit: Optional[int] = None,
        seed: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> RecommendationResult:
        """
        Run the full pipeline and return items plus diagnostics.

        Args:
            query: Shopper's free-text message
            reply: Assistant reply text for the same turn ("" if none)
            profile: Preference profile (treated as empty if None)
            limit: Maximum items to return; clamped to the configured maximum
            seed: Explicit shuffle seed (tests)
            request_id: Used to derive the shuffle seed when seed is None

        Returns:
            RecommendationResult; items is [] when nothing qualifies
        """
        start = time.time()
        limit = self._clamp_limit(limit)
        result = RecommendationResult()
        if limit == 0:
            return result

        try:
            result.seed = resolve_seed(seed, request_id)
            self._run_pipeline(query or "", reply or "", profile or PreferenceProfile(), limit, result)
        except Exception as e:
            logger.exception("Recommendation pipeline failed", error=str(e))
            result.items = []
            return result

        logger.info(
            "Recommendations generated",
            strategy=result.strategy.value if result.strategy else None,
            audience=result.intent.audience.value,
            narrow_term=result.intent.narrow_term,
            count=len(result.items),
            limit=limit,
            duration_ms=round((time.time() - start) * 1000, 2),
        )
        return result

    @property
    def abandoned_calls(self) -> int:
        """Timed-out generator calls whose worker thread is still running."""
        with self._abandoned_lock:
            return len(self._abandoned)

    def close(self) -> None:
        pending = self.abandoned_calls
        if pending:
            logger.warning("Closing engine with generator calls still running", pending=pending)

    def __enter__(self) -> "RecommendationEngine":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # =========================================================
    # Pipeline
    # =========================================================

    def _clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            limit = self.config.DEFAULT_LIMIT
        try:
            limit = int(limit)
        except (TypeError, ValueError, OverflowError):
            logger.warning("Invalid limit, using default", limit=repr(limit))
            limit = self.config.DEFAULT_LIMIT
        return max(0, min(limit, self.config.MAX_LIMIT))

    def _size_hint(self, limit: int) -> int:
        return max(self.config.DEFAULT_SIZE_HINT, limit * self.config.SIZE_HINT_MULTIPLIER)

    def _run_pipeline(
        self,
        query: str,
        reply: str,
        profile: PreferenceProfile,
        limit: int,
        result: RecommendationResult,
    ) -> None:
        intent = self.intent_extractor.extract(query, reply)
        result.intent = intent
        context = GenerationContext.build(intent, profile, self._size_hint(limit))

        # Step 1: cascade
        survivors: List[Candidate] = []
        for generator in self.generators:
            attempt = StrategyAttempt(strategy=generator.tag)
            result.attempts.append(attempt)

            raw = self._call_with_timeout(generator.generate, attempt, self.catalog, context)
            attempt.generated = len(raw)
            kept = self._apply_filters(raw, context)
            attempt.kept = len(kept)

            if kept:
                result.strategy = generator.tag
                survivors = kept
                break

        if not survivors:
            logger.info("All strategies exhausted", audience=intent.audience.value)
            return

        # Step 2: top-up
        if result.strategy not in _NO_TOP_UP and len(survivors) < min(limit, self.config.MIN_RESULTS):
            survivors = self._top_up(survivors, context, result)

        # Step 3: rank, shuffle, validate
        ranked = rank_candidates(merge_candidates(survivors), limit)
        result.ranked = ranked

        shuffled = shuffle_top(ranked, result.seed)
        items = [RankedItem.from_candidate(c) for c in shuffled]
        result.items = validate_audience(items, {c.item_id: c for c in ranked}, intent.audience)

    def _apply_filters(self, candidates: Sequence[Candidate], context: GenerationContext) -> List[Candidate]:
        kept = filter_by_audience(candidates, context.intent.audience)
        return filter_by_narrow_category(kept, context.intent.narrow_term)

    def _top_up(
        self,
        survivors: List[Candidate],
        context: GenerationContext,
        result: RecommendationResult,
    ) -> List[Candidate]:
        attempt = StrategyAttempt(strategy=StrategyTag.FALLBACK)
        present = [c.item_id for c in survivors]
        extra = self._call_with_timeout(self._fallback.top_up, attempt, self.catalog, context, present)
        attempt.generated = len(extra)
        extra = self._apply_filters(extra, context)
        attempt.kept = len(extra)
        result.attempts.append(attempt)

        if extra:
            logger.debug("Topped up short result", strategy=result.strategy.value, added=len(extra))
        return survivors + extra

    def _call_with_timeout(
        self,
        fn: Callable[..., List[Candidate]],
        attempt: StrategyAttempt,
        *args: Any,
    ) -> List[Candidate]:
        """
        Run a generator call on its own worker; failure or timeout yields [].

        Each call gets a fresh single-worker executor, so a call that hangs
        past its budget only holds its own thread and never delays later
        generators or other requests.
        """
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"recgen-{attempt.strategy.value}")
        future = executor.submit(fn, *args)
        try:
            return list(future.result(timeout=self.generator_timeout))
        except FuturesTimeoutError:
            attempt.error = "timeout"
            self._track_abandoned(future)
            logger.warning(
                "Generator timed out",
                strategy=attempt.strategy.value,
                timeout_seconds=self.generator_timeout,
            )
        except Exception as e:
            attempt.error = str(e)
            logger.warning("Generator failed", strategy=attempt.strategy.value, error=str(e))
        finally:
            executor.shutdown(wait=False)
        return []

    def _track_abandoned(self, future: Future) -> None:
        with self._abandoned_lock:
            self._abandoned.add(future)
        future.add_done_callback(self._forget_abandoned)

    def _forget_abandoned(self, future: Future) -> None:
        with self._abandoned_lock:
            self._abandoned.discard(future)
