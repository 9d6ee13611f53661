from passport.api.middleware.audit import RequestLoggingMiddleware, get_client_ip
from passport.api.middleware.rate_limit import RateLimitMiddleware, RateLimiter

__all__ = [
    "RequestLoggingMiddleware",
    "get_client_ip",
    "RateLimitMiddleware",
    "RateLimiter",
]
