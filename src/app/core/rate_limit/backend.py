"""Redis sliding window rate limiter.

Each identifier owns a sorted set of request timestamps; entries older
than the window are trimmed before counting, so limits hold across
window boundaries.
"""

import time
from dataclasses import dataclass

from app.config import settings
from app.core.cache.redis import redis_client
from app.core.errors import RateLimitError


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_time: int
    retry_after: int | None = None

    @property
    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_time),
        }
        if self.retry_after is not None:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class SlidingWindowRateLimiter:
    def __init__(self, prefix: str = "ratelimit") -> None:
        self.prefix = prefix

    def _build_key(self, identifier: str, endpoint: str | None = None) -> str:
        if endpoint:
            return f"{self.prefix}:{identifier}:{endpoint.strip('/').replace('/', '_')}"
        return f"{self.prefix}:{identifier}"

    async def is_allowed(
        self,
        identifier: str,
        limit: int,
        window: int,
        endpoint: str | None = None,
    ) -> RateLimitResult:
        """Record one request for ``identifier`` and report whether it fits.

        Args:
            identifier: ``user:<id>``, ``ip:<addr>`` or ``apikey:<key_id>``
            limit: Maximum requests in the window
            window: Window length in seconds
            endpoint: Optional path for per-route limits

        Returns:
            RateLimitResult with the decision and header values
        """
        key = self._build_key(identifier, endpoint)
        now = time.time()

        async with redis_client() as client, client.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(key, 0, now - window)
            pipe.zadd(key, {str(now): now})
            pipe.zcard(key)
            pipe.expire(key, window)
            results = await pipe.execute()
            count = results[2]

        allowed = count <= limit
        return RateLimitResult(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - count),
            reset_time=int(now + window),
            retry_after=None if allowed else window,
        )

    async def enforce(
        self,
        identifier: str,
        limit: int,
        window: int,
        endpoint: str | None = None,
    ) -> RateLimitResult | None:
        """Like ``is_allowed`` but raise when the limit is exceeded.

        Returns None without touching Redis when rate limiting is disabled.

        Raises:
            RateLimitError: If the request does not fit the window
        """
        if not settings.rate_limit_enabled:
            return None
        result = await self.is_allowed(identifier, limit, window, endpoint)
        if not result.allowed:
            raise RateLimitError(
                f"Rate limit exceeded. Limit: {limit} requests per {window} seconds.",
                details={"limit": limit, "window": window, "retry_after": result.retry_after},
            )
        return result

    async def reset(self, identifier: str, endpoint: str | None = None) -> bool:
        async with redis_client() as client:
            return await client.delete(self._build_key(identifier, endpoint)) > 0


rate_limiter = SlidingWindowRateLimiter()
