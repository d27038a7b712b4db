"""
Pytest configuration and shared fixtures for the shopping assistant tests.
"""
import os
import sys
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Sequence

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))


BASE_TIME = datetime(2024, 5, 1, tzinfo=timezone.utc)


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

@pytest.fixture
def make_item() -> Callable:
    """Factory for CatalogItem; `age_days` counts back from BASE_TIME + 30 days."""
    from assistant.models import CatalogItem

    def _make(
        item_id: str,
        name: str,
        category: str = "",
        sub_category: str = "",
        price: float = 49.99,
        age_days: int = 0,
        colors: Sequence[str] = (),
        sizes: Sequence[str] = ("S", "M", "L"),
        keywords: str = "",
    ) -> CatalogItem:
        return CatalogItem(
            id=item_id,
            name=name,
            category=category,
            sub_category=sub_category,
            price=price,
            created_at=BASE_TIME + timedelta(days=30 - age_days),
            color_tags=tuple(colors),
            size_tags=tuple(sizes),
            keywords=keywords,
            image=f"https://cdn.example.com/{item_id}.jpg",
        )

    return _make


@pytest.fixture
def storefront_items(make_item) -> List:
    """Mixed catalog, newest first by age_days."""
    return [
        make_item("dress-1", "Delia Dress", "Women", "Dresses", 59.0, age_days=1, colors=["red"]),
        make_item("jogger-1", "Sanit Joggers", "Men", "Joggers", 45.0, age_days=2, colors=["black"]),
        make_item("tee-1", "Graphic T-Shirt", "Tops", "T-Shirts", 19.0, age_days=3, colors=["white"]),
        make_item("cargo-1", "Parker Cargo Pant", "Men", "Pants", 55.0, age_days=4, colors=["green"]),
        make_item("shorts-1", "MVT Shorts", "Men", "Shorts", 29.0, age_days=5, colors=["blue"]),
        make_item("skirt-1", "Pleated Midi Skirt", "Women", "Skirts", 39.0, age_days=6, colors=["black"]),
        make_item("hoodie-1", "Everyday Hoodie", "Tops", "Hoodies", 49.0, age_days=7, colors=["black"]),
        make_item("crop-1", "Ribbed Crop Top", "Women", "Tops", 24.0, age_days=8, colors=["white"]),
        make_item("shirt-1", "Oxford Shirt", "Men", "Shirts", 42.0, age_days=9, colors=["blue"]),
        make_item("suit-1", "Tailored Suit Jacket", "Formal", "Suits", 199.0, age_days=10, colors=["navy"]),
    ]


@pytest.fixture
def catalog(storefront_items):
    """In-memory catalog over storefront_items."""
    from assistant.catalog import InMemoryCatalog
    return InMemoryCatalog(storefront_items)


@pytest.fixture
def empty_profile():
    from assistant.models import PreferenceProfile
    return PreferenceProfile()


@pytest.fixture
def engine(catalog):
    """Engine over the storefront catalog with a short generator budget."""
    from assistant.engine import RecommendationEngine
    eng = RecommendationEngine(catalog, generator_timeout=2.0)
    yield eng
    eng.close()


# ============================================================================
# Fixtures: Mock Services
# ============================================================================

class StubReplyGenerator:
    """Reply generator returning a fixed reply (or raising)."""

    def __init__(self, reply: str = "", error: Exception = None):
        self.reply = reply
        self.error = error
        self.calls = []

    @property
    def enabled(self) -> bool:
        return True

    def generate(self, message, history=()):
        self.calls.append((message, list(history)))
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def stub_reply_generator():
    return StubReplyGenerator(reply="We have lovely dresses in our women's collection, like the Delia Dress.")


@pytest.fixture
def preference_service():
    from assistant.preferences import InMemoryPreferenceBackend, PreferenceService
    return PreferenceService(InMemoryPreferenceBackend())


@pytest.fixture
def assistant_service(catalog, stub_reply_generator, preference_service):
    """AssistantService wired to in-memory collaborators."""
    from assistant.catalog import CachedCatalog
    from assistant.chat_service import AssistantService
    from assistant.engine import RecommendationEngine

    cached = CachedCatalog(catalog, ttl_seconds=300)
    eng = RecommendationEngine(cached, generator_timeout=2.0)
    service = AssistantService(
        engine=eng,
        preferences=preference_service,
        reply_generator=stub_reply_generator,
        catalog=cached,
    )
    yield service
    eng.close()


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client for unit tests."""
    from unittest.mock import MagicMock

    mock_client = MagicMock()
    mock_client.table.return_value.select.return_value.execute.return_value.data = []
    return mock_client


# ============================================================================
# Fixtures: FastAPI Test Client
# ============================================================================

@pytest.fixture
def app(assistant_service):
    """FastAPI application with the assistant service overridden."""
    from api.app import create_app
    from api.dependencies import get_assistant_service

    application = create_app()
    application.dependency_overrides[get_assistant_service] = lambda: assistant_service
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Synchronous test client (lifespan not started)."""
    from fastapi.testclient import TestClient
    return TestClient(app)


# ============================================================================
# Markers auto-use
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "supabase: marks tests that require Supabase")


# ============================================================================
# Skip conditions
# ============================================================================

def pytest_collection_modifyitems(config, items):
    """Auto-skip integration tests if no server URL is configured."""
    skip_integration = pytest.mark.skip(reason="Integration tests require running server")
    skip_supabase = pytest.mark.skip(reason="Supabase tests require credentials")

    server_url = os.getenv("TEST_SERVER_URL")
    supabase_url = os.getenv("SUPABASE_URL")

    for item in items:
        if "integration" in item.keywords and not server_url:
            item.add_marker(skip_integration)
        if "supabase" in item.keywords and not supabase_url:
            item.add_marker(skip_supabase)
