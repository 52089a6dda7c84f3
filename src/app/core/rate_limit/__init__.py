"""Rate limiting with a Redis sliding window.

The middleware applies the global per-user/per-IP limit; the decorator
tightens individual routes such as login; API keys are limited by their
own ``per_minute`` setting.
"""

from app.core.rate_limit.backend import RateLimitResult, SlidingWindowRateLimiter, rate_limiter
from app.core.rate_limit.decorators import rate_limit
from app.core.rate_limit.middleware import RateLimitMiddleware


__all__ = [
    "RateLimitMiddleware",
    "RateLimitResult",
    "SlidingWindowRateLimiter",
    "rate_limit",
    "rate_limiter",
]
