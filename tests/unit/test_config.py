"""
Tests for the configuration module.
"""

from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest


class TestSettings:
    """Tests for Settings class."""

    def test_defaults(self):
        """Test that defaults are applied when nothing is configured."""
        from config.settings import get_settings_for_testing

        settings = get_settings_for_testing()

        assert settings.host == "0.0.0.0"
        assert settings.port == 8080
        assert settings.products_table == "products"
        assert settings.generator_timeout_seconds == 4.0
        assert settings.default_result_limit == 4
        assert settings.max_result_limit == 8
        assert settings.assistant_timeout_seconds == 15.0

    def test_is_development_property(self):
        """Test is_development property."""
        from config.settings import get_settings_for_testing

        for env in ["development", "dev", "local"]:
            assert get_settings_for_testing(environment=env).is_development is True

        assert get_settings_for_testing(environment="production").is_development is False

    def test_is_production_property(self):
        """Test is_production property."""
        from config.settings import get_settings_for_testing

        for env in ["production", "prod"]:
            assert get_settings_for_testing(environment=env).is_production is True

        assert get_settings_for_testing(environment="development").is_production is False

    def test_cors_origins_parsing(self):
        """Test that CORS origins can be parsed from comma-separated string."""
        from config.settings import get_settings_for_testing

        settings = get_settings_for_testing(cors_origins="http://localhost:3000,http://localhost:5173")

        assert settings.cors_origins == ["http://localhost:3000", "http://localhost:5173"]

    def test_assistant_models_parsing(self):
        """Test that the model priority list keeps its order."""
        from config.settings import get_settings_for_testing

        settings = get_settings_for_testing(assistant_models="model-b, model-a")

        assert settings.assistant_models == ["model-b", "model-a"]

    def test_comma_separated_models_from_env(self, monkeypatch):
        from config.settings import get_settings_for_testing

        monkeypatch.setenv("ASSISTANT_MODELS", "model-x,model-y")

        assert get_settings_for_testing().assistant_models == ["model-x", "model-y"]

    def test_supabase_configured(self):
        from config.settings import get_settings_for_testing

        assert get_settings_for_testing().supabase_configured is False
        assert get_settings_for_testing(
            supabase_url="https://test.supabase.co",
            supabase_service_key="test-key",
        ).supabase_configured is True

    def test_catalog_seed_path(self):
        from config.settings import get_settings_for_testing

        settings = get_settings_for_testing(catalog_seed_path="/tmp/catalog.json")
        assert settings.catalog_seed_path == Path("/tmp/catalog.json")

    def test_generator_timeout_bounds(self):
        from pydantic import ValidationError
        from config.settings import get_settings_for_testing

        with pytest.raises(ValidationError):
            get_settings_for_testing(generator_timeout_seconds=0)

    def test_settings_for_testing(self):
        """Test get_settings_for_testing function."""
        from config.settings import get_settings_for_testing

        settings = get_settings_for_testing(debug=False)

        assert settings.environment == "testing"
        assert settings.debug is False
        assert settings.openai_api_key == ""
        assert settings.redis_enabled is False


class TestConstants:
    """Tests for constants module."""

    def test_engine_config_defaults(self):
        from config.constants import DEFAULT_ENGINE_CONFIG

        assert DEFAULT_ENGINE_CONFIG.RESPONSE_CATEGORY_SCORE == 0.9
        assert DEFAULT_ENGINE_CONFIG.VIEWED_SIMILARITY_SCORE == 0.8
        assert DEFAULT_ENGINE_CONFIG.COLOR_AFFINITY_SCORE == 0.6
        assert DEFAULT_ENGINE_CONFIG.FALLBACK_SCORE == 0.1
        assert DEFAULT_ENGINE_CONFIG.DEFAULT_SIZE_HINT == 8

    def test_engine_config_is_frozen(self):
        from config.constants import DEFAULT_ENGINE_CONFIG

        with pytest.raises(FrozenInstanceError):
            DEFAULT_ENGINE_CONFIG.FALLBACK_SCORE = 0.5

    def test_preference_config_defaults(self):
        from config.constants import DEFAULT_PREFERENCE_CONFIG

        assert DEFAULT_PREFERENCE_CONFIG.MAX_VIEWED_ITEMS == 20
        assert DEFAULT_PREFERENCE_CONFIG.CATEGORY_VIEW_WEIGHT == 1.0
        assert DEFAULT_PREFERENCE_CONFIG.SUBCATEGORY_VIEW_WEIGHT == 0.5


class TestDatabase:
    """Tests for database module."""

    @pytest.mark.supabase
    def test_supabase_client_singleton(self):
        """Test that get_supabase_client returns singleton."""
        from config.database import get_supabase_client

        assert get_supabase_client() is get_supabase_client()

    def test_supabase_client_optional_returns_none_when_unconfigured(self, monkeypatch):
        from config import database
        from config.settings import get_settings_for_testing

        database.get_supabase_client.cache_clear()
        monkeypatch.setattr(database, "get_settings", lambda: get_settings_for_testing())
        try:
            assert database.get_supabase_client_optional() is None
        finally:
            database.get_supabase_client.cache_clear()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
