"""Middleware for request tracing and access logging."""

import time
from uuid import uuid4

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag every request with a correlation ID and log its outcome.

    - Uses the X-Correlation-Id header if present, otherwise a new UUID4
    - Binds the ID to the structlog context for all logging in the request
    - Logs method, path, status, client IP and latency; 5xx at error level,
      4xx at warning level
    - Echoes the ID in the X-Correlation-Id response header
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = request.headers.get("X-Correlation-Id", str(uuid4()))
        request.state.correlation_id = correlation_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - start) * 1000, 2)

        fields = {
            "status": response.status_code,
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
            "duration_ms": duration_ms,
        }
        if response.status_code >= 500:
            logger.error("request_failed", **fields)
        elif response.status_code >= 400:
            logger.warning("request_rejected", **fields)
        else:
            logger.info("request_completed", **fields)

        response.headers["X-Correlation-Id"] = correlation_id
        return response
