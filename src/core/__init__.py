"""
Core module for cross-cutting concerns.

This module provides:
- Structured logging configuration
- Request tracing middleware
- Common utilities
"""

from core.logging import bind_context, clear_context, configure_logging, get_logger
from core.utils import dedupe_preserving_order, normalize_string_set, normalize_tag, stable_seed

__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    "dedupe_preserving_order",
    "normalize_string_set",
    "normalize_tag",
    "stable_seed",
]
