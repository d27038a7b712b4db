"""
Tests for the recommendation engine cascade.

Covers the storefront regression scenarios and the engine-wide guarantees:
audience safety, determinism before the shuffle, bounded output, cascade
precedence and graceful degradation.
"""

import threading
import time

import pytest

from assistant.catalog import CatalogError, InMemoryCatalog
from assistant.engine import RecommendationEngine, resolve_seed
from assistant.generators import CandidateGenerator, FallbackGenerator
from assistant.models import Audience, PreferenceProfile, StrategyTag, ViewedItem
from assistant.vocabulary import classify_item


@pytest.fixture
def make_engine():
    engines = []

    def _make(items, **kwargs):
        kwargs.setdefault("generator_timeout", 2.0)
        eng = RecommendationEngine(InMemoryCatalog(items), **kwargs)
        engines.append(eng)
        return eng

    yield _make
    for eng in engines:
        eng.close()


# =============================================================================
# Regression scenarios
# =============================================================================

class TestScenarios:

    def test_dresses_for_women(self, make_engine, make_item):
        """Women's dress reply keeps the dress and never offers men's joggers."""
        eng = make_engine([
            make_item("dress-1", "Delia Dress", "Women", "Dresses", age_days=2),
            make_item("jogger-1", "Sanit Joggers", "Men", "Joggers", age_days=1),
        ])
        reply = "Yes! Our Women's category has lovely options, like the Delia Dress."

        result = eng.run("do you have dresses", reply, PreferenceProfile(), seed=1)

        assert result.intent.audience == Audience.WOMEN
        assert result.strategy == StrategyTag.RESPONSE_CATEGORY
        assert [i.id for i in result.items] == ["dress-1"]

    def test_women_fallback_drops_men_items(self, make_engine, make_item):
        eng = make_engine([
            make_item("dress-1", "Delia Dress", "Women", "Dresses", age_days=2),
            make_item("jogger-1", "Sanit Joggers", "Men", "Joggers", age_days=1),
        ])
        result = eng.run("what's new for women", "Here are our latest arrivals", PreferenceProfile(), seed=1)

        assert result.strategy == StrategyTag.FALLBACK
        assert [i.id for i in result.items] == ["dress-1"]

    def test_tees_only(self, make_engine, make_item):
        """A tee query returns only the t-shirt, not joggers or cargo pants."""
        eng = make_engine([
            make_item("tee-1", "Graphic T-Shirt", "Tops", "T-Shirts", age_days=3),
            make_item("jogger-1", "Sanit Joggers", "Bottoms", "Joggers", age_days=1),
            make_item("cargo-1", "Parker Cargo Pant", "Bottoms", "Pants", age_days=2),
        ])
        result = eng.run("do you have tees", "Yes, we have several tees available.", PreferenceProfile(), seed=1)

        assert result.intent.narrow_term == "tee"
        assert [i.id for i in result.items] == ["tee-1"]

    def test_narrow_filter_empties_reply_strategy(self, make_engine, make_item):
        """Reply offers crop tops and tanks for a tee query: the cascade moves past them."""
        eng = make_engine([
            make_item("tee-1", "Graphic T-Shirt", "Tops", "T-Shirts", age_days=3),
            make_item("crop-1", "Ribbed Crop Top", "Women", "Tops", age_days=1),
            make_item("jogger-1", "Sanit Joggers", "Bottoms", "Joggers", age_days=2),
        ])
        result = eng.run("do you have tees", "We have crop tops and tanks", PreferenceProfile(), seed=1)

        first = result.attempts[0]
        assert first.strategy == StrategyTag.RESPONSE_CATEGORY
        assert first.generated > 0
        assert first.kept == 0
        assert result.strategy == StrategyTag.FALLBACK
        assert [i.id for i in result.items] == ["tee-1"]

    def test_neutral_outfit_query(self, engine, empty_profile):
        """No audience terms: the audience filter is a no-op."""
        result = engine.run("Build me a casual weekend outfit", "", empty_profile, limit=4, seed=1)

        assert result.intent.audience == Audience.NEUTRAL
        assert result.strategy == StrategyTag.FALLBACK
        assert [c.item_id for c in result.ranked] == ["dress-1", "jogger-1", "tee-1", "cargo-1"]

    def test_empty_catalog(self, make_engine):
        eng = make_engine([])
        result = eng.run("do you have dresses", "We have dresses", PreferenceProfile())
        assert result.items == []
        assert result.strategy is None


# =============================================================================
# Guarantees
# =============================================================================

class TestAudienceInvariant:

    @pytest.mark.parametrize("query,audience", [
        ("show me something for men", Audience.MEN),
        ("gifts for ladies", Audience.WOMEN),
    ])
    def test_no_wrong_audience_item_returned(self, engine, query, audience):
        profile = PreferenceProfile(
            category_affinity={"women": 3.0, "men": 3.0},
            preferred_colors=["black", "white", "blue"],
        )
        items = engine.recommend(query, "", profile, limit=8, seed=5)
        by_id = {i.id: i for i in engine.catalog.all_items()}

        assert items
        for ranked in items:
            facts = classify_item(by_id[ranked.id])
            if audience == Audience.MEN:
                assert not (facts.has_women_indicator or facts.has_women_category)
            else:
                assert (facts.has_women_indicator or facts.has_women_category) and not facts.has_men_indicator


class TestDeterminism:

    def test_same_inputs_same_output(self, engine):
        profile = PreferenceProfile(preferred_colors=["black"])
        first = engine.recommend("anything", "", profile, limit=4, seed=9)
        second = engine.recommend("anything", "", profile, limit=4, seed=9)
        assert first == second

    def test_ranked_independent_of_seed(self, engine, empty_profile):
        a = engine.run("hi", "", empty_profile, limit=6, seed=1)
        b = engine.run("hi", "", empty_profile, limit=6, seed=2)
        assert [c.item_id for c in a.ranked] == [c.item_id for c in b.ranked]
        assert {i.id for i in a.items} == {i.id for i in b.items}

    def test_request_id_seed_is_stable(self):
        assert resolve_seed(None, "req-123") == resolve_seed(None, "req-123")
        assert resolve_seed(5, "req-123") == 5


class TestBoundedOutput:

    @pytest.mark.parametrize("limit", [1, 2, 4, 8])
    def test_len_and_unique_ids(self, engine, empty_profile, limit):
        items = engine.recommend("hi", "", empty_profile, limit=limit, seed=3)
        assert len(items) <= limit
        assert len({i.id for i in items}) == len(items)

    def test_limit_is_clamped(self, engine, empty_profile):
        assert len(engine.recommend("hi", "", empty_profile, limit=100, seed=3)) <= 8

    def test_zero_limit(self, engine, empty_profile):
        assert engine.recommend("hi", "", empty_profile, limit=0) == []

    def test_default_limit(self, engine, empty_profile):
        assert len(engine.recommend("hi", "", empty_profile, seed=3)) == 4

    @pytest.mark.parametrize("limit", [float("nan"), float("inf"), "many"])
    def test_unusable_limit_falls_back_to_default(self, engine, empty_profile, limit):
        assert len(engine.recommend("hi", "", empty_profile, limit=limit, seed=3)) == 4


class TestCascadePrecedence:

    def test_response_category_beats_profile_signals(self, engine):
        profile = PreferenceProfile(
            viewed_items=[ViewedItem(item_id="jogger-1", category="Men", sub_category="Joggers")],
            category_affinity={"men": 5.0},
            preferred_colors=["blue"],
        )
        result = engine.run("what do you suggest", "Our skirts are popular right now", profile, seed=1)

        assert result.strategy == StrategyTag.RESPONSE_CATEGORY
        assert all(i.strategy_tag == StrategyTag.RESPONSE_CATEGORY for i in result.items)
        assert [i.id for i in result.items] == ["skirt-1"]

    def test_filtered_out_strategy_does_not_win(self, engine):
        """Viewed similarity only finds men's items; a women query skips it."""
        profile = PreferenceProfile(
            viewed_items=[ViewedItem(item_id="jogger-1", category="Men", sub_category="Joggers")],
            preferred_colors=["black"],
        )
        result = engine.run("for women", "", profile, seed=1)

        assert result.attempts[1].strategy == StrategyTag.VIEWED_SIMILARITY
        assert result.attempts[1].generated > 0
        assert result.attempts[1].kept == 0
        assert result.strategy == StrategyTag.COLOR_AFFINITY
        assert result.ranked[0].item_id == "skirt-1"
        # Topped up with newest women's items; viewed joggers never come back
        assert {i.id for i in result.items} == {"skirt-1", "dress-1", "crop-1"}

    def test_short_result_is_topped_up(self, make_engine, make_item):
        eng = make_engine([
            make_item("a", "Cable Cardigan", "Knitwear", "Cardigans", age_days=5),
            make_item("b", "Chunky Cardigan", "Knitwear", "Cardigans", age_days=4),
            make_item("c", "Everyday Hoodie", "Tops", "Hoodies", age_days=3),
            make_item("d", "Zip Hoodie", "Tops", "Hoodies", age_days=2),
            make_item("e", "Rain Jacket", "Outerwear", "Jackets", age_days=1),
        ])
        profile = PreferenceProfile(viewed_items=[ViewedItem(item_id="b", category="Knitwear", sub_category="Cardigans")])

        result = eng.run("", "", profile, limit=4, seed=1)

        assert result.strategy == StrategyTag.VIEWED_SIMILARITY
        assert [c.item_id for c in result.ranked] == ["a", "e", "d", "c"]
        assert result.ranked[0].strategy_tag == StrategyTag.VIEWED_SIMILARITY
        assert "b" not in {i.id for i in result.items}


# =============================================================================
# Degradation
# =============================================================================

class _SlowGenerator(CandidateGenerator):
    tag = StrategyTag.RESPONSE_CATEGORY

    def generate(self, catalog, context):
        time.sleep(0.5)
        return FallbackGenerator().generate(catalog, context)


class _FailingCatalog(InMemoryCatalog):
    def query_by_category(self, term):
        raise CatalogError("connection reset")


class _HangingCategoryCatalog(InMemoryCatalog):
    """query_by_category blocks until released; other queries answer normally."""

    def __init__(self, items):
        super().__init__(items)
        self.release = threading.Event()

    def query_by_category(self, term):
        self.release.wait(5.0)
        return super().query_by_category(term)


class _ExplodingExtractor:
    def extract(self, query, reply):
        raise RuntimeError("boom")


class TestDegradation:

    def test_timed_out_generator_yields_nothing(self, catalog, empty_profile):
        with RecommendationEngine(
            catalog,
            generators=[_SlowGenerator(), FallbackGenerator()],
            generator_timeout=0.05,
        ) as eng:
            result = eng.run("hi", "We have dresses", empty_profile, seed=1)

        assert result.attempts[0].error == "timeout"
        assert result.strategy == StrategyTag.FALLBACK
        assert result.items

    def test_hung_catalog_calls_do_not_starve_fallback(self, storefront_items, empty_profile):
        catalog = _HangingCategoryCatalog(storefront_items)
        eng = RecommendationEngine(catalog, generator_timeout=0.1)
        try:
            counts = [len(eng.recommend("hi", "We have dresses", empty_profile, seed=1)) for _ in range(6)]

            assert counts == [4] * 6
            assert eng.abandoned_calls >= 4
        finally:
            catalog.release.set()
            eng.close()

    def test_catalog_error_advances_cascade(self, storefront_items, empty_profile):
        with RecommendationEngine(_FailingCatalog(storefront_items)) as eng:
            result = eng.run("dresses?", "We have dresses", empty_profile, seed=1)

        assert "connection reset" in result.attempts[0].error
        assert result.strategy == StrategyTag.FALLBACK

    def test_unexpected_error_returns_empty(self, catalog, empty_profile):
        with RecommendationEngine(catalog, intent_extractor=_ExplodingExtractor()) as eng:
            assert eng.recommend("hi", "", empty_profile) == []

    def test_profile_not_mutated(self, engine):
        profile = PreferenceProfile(
            viewed_items=[ViewedItem(item_id="jogger-1", category="Men", sub_category="Joggers")],
            category_affinity={"men": 2.0},
            preferred_colors=["blue"],
        )
        before = profile.model_dump()
        engine.recommend("for men", "", profile, seed=1)
        assert profile.model_dump() == before

    def test_none_profile_treated_as_empty(self, engine):
        assert len(engine.recommend("hi", "", None, seed=1)) == 4
