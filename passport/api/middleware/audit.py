"""Request logging middleware for FastAPI.

Logs every API request with:
- A short request ID (also returned as ``X-Request-ID``)
- HTTP method and path
- Response status and duration
- Client IP address

Domain-level audit records are written by ``passport.services.audit``;
this middleware only feeds the application log.
"""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Paths that should not be logged (health checks, docs)
EXCLUDED_PATHS = {
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/favicon.ico",
}


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    # Check X-Forwarded-For header (set by reverse proxies)
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # Take the first IP (original client)
        return forwarded.split(",")[0].strip()

    # Check X-Real-IP header
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    # Fall back to direct client
    if request.client:
        return request.client.host

    return "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that logs all API requests to the application log.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Generate request ID for tracing
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        if request.url.path in EXCLUDED_PATHS:
            return await call_next(request)

        start_time = time.time()
        client_ip = get_client_ip(request)

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.exception(
                f"[{request_id}] {request.method} {request.url.path} failed after {duration_ms}ms "
                f"from {client_ip}"
            )
            raise

        duration_ms = int((time.time() - start_time) * 1000)
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(
            level,
            f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} "
            f"in {duration_ms}ms from {client_ip}",
        )

        response.headers["X-Request-ID"] = request_id
        return response
