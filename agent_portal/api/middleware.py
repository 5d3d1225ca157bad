"""Middleware for request processing and observability."""

import time
from uuid import uuid4

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from agent_portal.api.dependencies import get_client_ip

logger = structlog.get_logger(__name__)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Tag every request with a correlation ID and log its outcome.

    - Uses the X-Correlation-Id header if present, otherwise a new UUID4
    - Stores it in request.state.correlation_id
    - Binds correlation_id and client_ip to the structlog context
    - Echoes X-Correlation-Id on the response
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = request.headers.get("X-Correlation-Id", str(uuid4()))
        request.state.correlation_id = correlation_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            client_ip=get_client_ip(request),
        )

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = int((time.perf_counter() - started) * 1000)

        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )

        response.headers["X-Correlation-Id"] = correlation_id
        return response
