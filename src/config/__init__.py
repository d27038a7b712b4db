"""
Configuration module for the shopping assistant.

This module provides centralized configuration management using pydantic-settings.
All environment variables and configuration values should be accessed through this module.

Usage:
    from config import get_settings

    settings = get_settings()
    timeout = settings.generator_timeout_seconds
"""

from config.settings import Settings, get_settings, get_settings_for_testing
from config.constants import DEFAULT_ENGINE_CONFIG, DEFAULT_PREFERENCE_CONFIG, EngineConfig, PreferenceConfig

__all__ = [
    "Settings",
    "get_settings",
    "get_settings_for_testing",
    "EngineConfig",
    "PreferenceConfig",
    "DEFAULT_ENGINE_CONFIG",
    "DEFAULT_PREFERENCE_CONFIG",
]
