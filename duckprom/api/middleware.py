"""FastAPI middleware for the duckprom API.

This module provides middleware for:
- Request ID tracking
- Request/response logging
"""

import time
from typing import Callable
from uuid import uuid4

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from duckprom.remote.parser import RemoteRequestParser

logger = structlog.get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add unique request ID to each request.

    The request ID is:
    - Stored in request.state.request_id
    - Bound into structlog context variables for the request
    - Added to response headers as X-Request-ID

    Example:
        app.add_middleware(RequestIDMiddleware)
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log all requests with timing and status.

    Example:
        app.add_middleware(LoggingMiddleware)
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        client_host = request.client.host if request.client else "unknown"
        logger.debug(
            "request_started",
            method=request.method,
            path=request.url.path,
            client=client_host,
            user_agent=RemoteRequestParser.get_user_agent(request.headers),
        )

        response = await call_next(request)

        duration = time.time() - start_time
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_seconds=round(duration, 6),
        )

        return response
