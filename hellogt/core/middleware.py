"""
Request logging middleware for FastAPI.
"""

import logging
import time
import uuid
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


logger = logging.getLogger(__name__)

QUIET_PATHS = {"/", "/health", "/docs", "/openapi.json"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging all API requests.
    Tags every response with an X-Request-ID for tracing.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Record start time
        start_time = time.time()
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        # Process request
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        # Calculate duration
        duration_ms = (time.time() - start_time) * 1000

        # Don't log health checks to reduce noise
        if request.url.path not in QUIET_PATHS:
            logger.info(
                "[API] %s %s - %s (%.2fms) id=%s",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                request_id,
            )

        return response
