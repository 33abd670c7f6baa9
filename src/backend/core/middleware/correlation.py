"""
Correlation ID middleware for request tracing.

Adds an X-Correlation-ID header to every HTTP request and response and
exposes the current ID to log records through CorrelationIdFilter.
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Context variable to store correlation ID for the current request
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Correlation ID for the current request, or "" outside a request."""
    return correlation_id_var.get("")


class CorrelationIdFilter(logging.Filter):
    """Stamp every record with ``correlation_id`` ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "-"
        return True


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    - Extracts or generates X-Correlation-ID for each request
    - Stores it in a context variable for logs and services
    - Echoes it in the response headers
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        token = correlation_id_var.set(correlation_id)
        try:
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token)

        response.headers["X-Correlation-ID"] = correlation_id
        return response
