"""Middleware for request processing."""
import contextvars
import logging
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-Id"

# Correlation id of the request being handled, for log records
correlation_id_context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)


class CorrelationIdFilter(logging.Filter):
    """Add correlation_id to log records, '-' outside of a request."""

    def filter(self, record):
        if not hasattr(record, "correlation_id"):
            record.correlation_id = correlation_id_context.get() or "-"
        return True


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Propagates X-Correlation-Id, generating one when the caller sends none."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        correlation_id_context.set(correlation_id)

        logger.info(f"Request started: {request.method} {request.url.path}")
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        logger.info(f"Request completed: {request.method} {request.url.path} - {response.status_code}")

        return response
