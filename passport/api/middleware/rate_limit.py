"""Rate limiting middleware for FastAPI.

Provides per-user and per-IP rate limiting using Redis as a backend.

Features:
- Per-user limits for requests carrying a valid bearer token
- Per-IP limits for unauthenticated requests
- Stricter limit for the login endpoint
- Proper HTTP 429 responses with Retry-After header
- Rate limit headers (X-RateLimit-*)
"""

import hashlib
import logging
import time
import uuid
from typing import Optional, Tuple

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
import redis.asyncio as redis

from passport.core.config import get_settings
from passport.core.security import decode_token
from passport.api.middleware.audit import get_client_ip

logger = logging.getLogger(__name__)

# Paths excluded from rate limiting
EXCLUDED_PATHS = {
    "/health",
}


class RateLimiter:
    """
    Sliding window rate limiter using Redis sorted sets.

    Falls back to allowing requests if Redis is unavailable.
    """

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None):
        self.settings = get_settings()
        self.redis_url = redis_url or self.settings.redis_url
        self._redis: Optional[redis.Redis] = client

        self.default_limit = self.settings.rate_limit_default
        self.default_window = self.settings.rate_limit_window
        self.auth_limit = self.settings.rate_limit_auth
        self.login_limit = self.settings.rate_limit_login

    async def get_redis(self) -> Optional[redis.Redis]:
        """Get or create Redis connection."""
        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                )
                # Test connection
                await self._redis.ping()
            except Exception:
                logger.warning(f"Redis unavailable at {self.redis_url}, rate limiting disabled")
                self._redis = None
        return self._redis

    def _get_key(self, identifier: str, endpoint: str = "default") -> str:
        """Generate Redis key for rate limiting."""
        # Hash the identifier for privacy
        hashed = hashlib.sha256(identifier.encode()).hexdigest()[:16]
        return f"ratelimit:{endpoint}:{hashed}"

    async def is_allowed(
        self,
        identifier: str,
        endpoint: str = "default",
        limit: Optional[int] = None,
        window: Optional[int] = None,
    ) -> Tuple[bool, int, int, int]:
        """
        Check if request is allowed under rate limit.

        Returns:
            Tuple of (allowed, remaining, limit, reset_time)
        """
        limit = limit or self.default_limit
        window = window or self.default_window

        r = await self.get_redis()
        if r is None:
            # Redis unavailable - allow request but don't count it
            return True, limit, limit, 0

        key = self._get_key(identifier, endpoint)
        now = time.time()
        window_start = now - window
        member = f"{now}:{uuid.uuid4().hex[:8]}"

        try:
            async with r.pipeline(transaction=True) as pipe:
                # Remove old entries
                pipe.zremrangebyscore(key, 0, window_start)
                # Count current requests
                pipe.zcard(key)
                # Add current request
                pipe.zadd(key, {member: now})
                # Set expiry
                pipe.expire(key, window)

                results = await pipe.execute()

            current_count = results[1]
            remaining = max(0, limit - current_count - 1)
            reset_time = int(now) + window

            if current_count >= limit:
                return False, 0, limit, reset_time

            return True, remaining, limit, reset_time

        except Exception:
            logger.exception("Rate limit check failed, allowing request")
            return True, limit, limit, 0


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware for rate limiting.

    Applies different rate limits based on:
    - Authentication status (user ID vs IP)
    - Endpoint (stricter limits for login)
    """

    def __init__(self, app, limiter: Optional[RateLimiter] = None):
        super().__init__(app)
        self.limiter = limiter or RateLimiter()

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path in EXCLUDED_PATHS:
            return await call_next(request)

        identifier, limit, endpoint = self._get_rate_params(request)

        allowed, remaining, total, reset_time = await self.limiter.is_allowed(
            identifier=identifier,
            endpoint=endpoint,
            limit=limit,
        )

        if not allowed:
            retry_after = reset_time - int(time.time())
            logger.warning(f"Rate limit exceeded for {endpoint} client on {request.url.path}")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "error": "rate_limited",
                    "detail": "Rate limit exceeded. Please try again later.",
                    "code": status.HTTP_429_TOO_MANY_REQUESTS,
                },
                headers={
                    "Retry-After": str(max(1, retry_after)),
                    "X-RateLimit-Limit": str(total),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(reset_time),
                },
            )

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(total)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        if reset_time:
            response.headers["X-RateLimit-Reset"] = str(reset_time)

        return response

    def _get_rate_params(self, request: Request) -> Tuple[str, int, str]:
        """
        Determine rate limit parameters based on request.

        Returns:
            Tuple of (identifier, limit, endpoint_category)
        """
        path = request.url.path

        # Login endpoint has stricter limits
        if path.endswith("/auth/login"):
            return get_client_ip(request), self.limiter.login_limit, "login"

        auth_header = request.headers.get("authorization", "")
        if auth_header.lower().startswith("bearer "):
            actor = decode_token(auth_header[7:])
            if actor is not None:
                return f"user:{actor.user_id}", self.limiter.auth_limit, "auth"

        return get_client_ip(request), self.limiter.default_limit, "default"
