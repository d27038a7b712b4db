"""
Centralized settings management using pydantic-settings.

All environment variables and configuration values are defined here.
Use get_settings() to access the singleton settings instance.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Comma-separated in the environment ("a,b"); parsed by the validators below
# instead of the default JSON decoding.
CommaList = Annotated[List[str], NoDecode]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Optional environment variables:
        - SUPABASE_URL / SUPABASE_SERVICE_KEY: catalog backend (in-memory if unset)
        - REDIS_URL / REDIS_ENABLED: preference store backend
        - OPENAI_API_KEY: reply generator
        - CATALOG_SEED_PATH: JSON catalog used when Supabase is not configured
        - ENVIRONMENT: Environment name (development, staging, production)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    # ==========================================================================
    # Server Configuration
    # ==========================================================================
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    cors_origins: CommaList = Field(
        default=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        description="Allowed CORS origins"
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # ==========================================================================
    # Catalog (Supabase)
    # ==========================================================================
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_service_key: str = Field(default="", description="Supabase service role key")
    products_table: str = Field(default="products", description="Catalog table name")
    catalog_seed_path: Optional[Path] = Field(
        default=None,
        description="JSON file with catalog items, used when Supabase is not configured"
    )
    catalog_cache_ttl_seconds: int = Field(
        default=300,
        description="How long a loaded catalog snapshot is served before reloading"
    )

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)

    # ==========================================================================
    # Preference Store (Redis)
    # ==========================================================================
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )
    redis_enabled: bool = Field(
        default=False,
        description="Store preference profiles in Redis instead of process memory"
    )
    preference_ttl_seconds: int = Field(
        default=86400 * 30,
        description="Preference profile TTL in seconds (30 days)"
    )

    # ==========================================================================
    # Reply Generator (OpenAI)
    # ==========================================================================
    openai_api_key: str = Field(default="", description="OpenAI API key for the assistant")
    assistant_models: CommaList = Field(
        default=["gpt-4o-mini", "gpt-4.1-mini"],
        description="Models tried in order until one answers"
    )
    assistant_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for a single reply generation call (seconds)"
    )
    assistant_max_tokens: int = Field(default=500, description="Max reply tokens")
    assistant_temperature: float = Field(default=0.7, description="Reply sampling temperature")

    @field_validator("assistant_models", mode="before")
    @classmethod
    def parse_assistant_models(cls, v):
        if isinstance(v, str):
            return [m.strip() for m in v.split(",") if m.strip()]
        return v

    # ==========================================================================
    # Recommendation Engine
    # ==========================================================================
    generator_timeout_seconds: float = Field(
        default=4.0,
        ge=0.1,
        le=30.0,
        description="Time budget for a single candidate generator"
    )
    default_result_limit: int = Field(default=4, ge=1, description="Default recommendations per reply")
    max_result_limit: int = Field(default=8, ge=1, description="Upper bound on requested limit")


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure only one instance is created.
    Settings are loaded from environment variables and .env file.

    Returns:
        Settings: The application settings instance
    """
    env_file = Path(__file__).parent.parent.parent / ".env"
    return Settings(_env_file=env_file if env_file.exists() else None)


def get_settings_for_testing(**overrides) -> Settings:
    """
    Create a settings instance for testing with optional overrides.

    This bypasses the cache to allow different settings in tests.

    Args:
        **overrides: Setting values to override

    Returns:
        Settings: A new settings instance with overrides applied
    """
    test_defaults = {
        "environment": "testing",
        "debug": True,
        "supabase_url": "",
        "supabase_service_key": "",
        "openai_api_key": "",
        "redis_enabled": False,
    }
    test_defaults.update(overrides)

    return Settings(_env_file=None, **test_defaults)
