"""
FastAPI middleware for request tracing and logging.

Every request gets a request_id (taken from X-Request-ID when the caller
sends one). The id is bound into the structlog context, echoed back in the
response headers, and stored on request.state so routes can derive the
presentation-shuffle seed from it.
"""

import re
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging import bind_context, clear_context, get_logger


logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 64

_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]+$")


def resolve_request_id(header_value: Optional[str]) -> str:
    """
    Caller-supplied request id, or a fresh 12-char hex id.

    Header values that are empty, too long or carry characters outside
    [A-Za-z0-9._:-] are replaced, since the id ends up in log lines and
    response headers.
    """
    candidate = (header_value or "").strip()
    if candidate and len(candidate) <= MAX_REQUEST_ID_LENGTH and _REQUEST_ID_PATTERN.match(candidate):
        return candidate
    return uuid.uuid4().hex[:12]


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """Binds request_id/method/path for the request's logs and times it."""

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id

        bind_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise
        else:
            response.headers[REQUEST_ID_HEADER] = request_id
            level = logger.warning if response.status_code >= 500 else logger.info
            level(
                "Request completed",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            return response
        finally:
            clear_context()
