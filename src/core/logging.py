"""
Structured logging configuration using structlog.

Development runs get a colored console renderer, production runs emit JSON
lines so request-scoped context (request_id, session_key, strategy) can be
indexed.

Usage:
    from core.logging import configure_logging, get_logger

    configure_logging(json_logs=False)
    logger = get_logger(__name__)
    logger.info("Strategy selected", strategy="response_category", count=4)
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import Processor


# Third-party loggers that are too chatty at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "openai", "uvicorn.access")


def configure_logging(
    json_logs: bool = False,
    log_level: str = "INFO",
    include_timestamp: bool = True,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        json_logs: If True, output JSON format (for production).
                   If False, output colored console format (for development).
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_timestamp: Whether to include timestamp in logs
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if include_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_logs:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        ))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    # basicConfig is a no-op once handlers exist
    logging.getLogger().setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__). If None, returns root logger.
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """
    Bind context variables to all subsequent logs in the current context.

    Usage:
        bind_context(request_id="abc", session_key="sess_123")
        logger.info("Recommending")  # includes request_id and session_key
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables (call at the end of a request)."""
    structlog.contextvars.clear_contextvars()


def get_context() -> dict:
    """Return a copy of the currently bound context variables."""
    return dict(structlog.contextvars.get_contextvars())
