"""
Tests for API service wiring.
"""

import json

import pytest

from api import dependencies
from assistant.catalog import CachedCatalog
from config.settings import get_settings_for_testing


@pytest.fixture
def seed_file(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"products": [
        {"_id": "p1", "productName": "Delia Dress", "category": "Women", "subCategory": "Dresses",
         "regularPrice": 8.4, "createdAt": "2024-05-05T00:00:00Z"},
        {"_id": "p2", "productName": "Sanit Joggers", "category": "Men", "subCategory": "Joggers",
         "regularPrice": 20, "createdAt": "2024-05-04T00:00:00Z"},
    ]}))
    return path


class TestBuildCatalog:

    def test_seed_file(self, seed_file):
        catalog = dependencies.build_catalog(get_settings_for_testing(catalog_seed_path=seed_file))

        assert isinstance(catalog, CachedCatalog)
        assert [i.id for i in catalog.query_newest(5)] == ["p1", "p2"]

    def test_unreadable_seed_gives_empty_catalog(self, tmp_path):
        settings = get_settings_for_testing(catalog_seed_path=tmp_path / "missing.json")
        assert dependencies.build_catalog(settings).all_items() == []

    def test_nothing_configured(self):
        assert dependencies.build_catalog(get_settings_for_testing()).all_items() == []

    def test_unreachable_supabase_falls_back_to_seed(self, seed_file, monkeypatch):
        from config import database

        monkeypatch.setattr(database, "get_supabase_client_optional", lambda: None)
        settings = get_settings_for_testing(
            supabase_url="https://test.supabase.co",
            supabase_service_key="test-key",
            catalog_seed_path=seed_file,
        )

        assert len(dependencies.build_catalog(settings).all_items()) == 2


class TestBuildAssistantService:

    def test_limits_come_from_settings(self):
        settings = get_settings_for_testing(default_result_limit=10, max_result_limit=6)
        service = dependencies.build_assistant_service(settings)
        try:
            assert service.engine.config.MAX_LIMIT == 6
            assert service.engine.config.DEFAULT_LIMIT == 6
            assert service.catalog is service.engine.catalog
            assert service.reply_generator.enabled is False
            assert service.preferences.get_stats()["backend"] == "in_memory"
        finally:
            service.engine.close()

    def test_singleton_and_reset(self, monkeypatch):
        monkeypatch.setattr(dependencies, "get_settings", lambda: get_settings_for_testing())
        dependencies.reset_services()
        try:
            first = dependencies.get_assistant_service()
            assert dependencies.get_assistant_service() is first
            dependencies.reset_services()
            assert dependencies.get_assistant_service() is not first
        finally:
            dependencies.reset_services()
