"""Redis client configuration and connection management.

One connection pool is shared by the rate limiter, the one-time code
store used by MFA and the readiness check.
"""

import secrets
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from app.config import settings


_pool: ConnectionPool | None = None


def _get_pool() -> ConnectionPool:
    """Get or create the Redis connection pool."""
    global _pool
    if _pool is None:
        _pool = ConnectionPool.from_url(
            str(settings.redis_url),
            max_connections=50,
            decode_responses=True,
        )
    return _pool


@asynccontextmanager
async def redis_client() -> AsyncGenerator[redis.Redis, None]:  # type: ignore[type-arg]
    """Context manager for a pooled Redis client.

    Usage:
        async with redis_client() as client:
            await client.set("key", "value")
    """
    client = redis.Redis(connection_pool=_get_pool())
    try:
        yield client
    finally:
        await client.aclose()


async def ping_redis() -> bool:
    async with redis_client() as client:
        return bool(await client.ping())


async def close_redis_pool() -> None:
    """Close the Redis connection pool.

    Call this during application shutdown.
    """
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None


class RedisCache:
    """Prefixed string cache with TTLs."""

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> str | None:
        async with redis_client() as client:
            return await client.get(self._key(key))

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        async with redis_client() as client:
            if ttl_seconds:
                await client.setex(self._key(key), ttl_seconds, value)
            else:
                await client.set(self._key(key), value)

    async def delete(self, key: str) -> bool:
        async with redis_client() as client:
            return await client.delete(self._key(key)) > 0


class OneTimeCodeStore:
    """Numeric one-time codes, e.g. for SMS and email verification.

    A code is valid once, until it expires or a new one is issued for
    the same key.
    """

    def __init__(self, cache: RedisCache, length: int, ttl_seconds: int) -> None:
        self.cache = cache
        self.length = length
        self.ttl_seconds = ttl_seconds

    async def issue(self, key: str) -> str:
        code = "".join(secrets.choice("0123456789") for _ in range(self.length))
        await self.cache.set(key, code, self.ttl_seconds)
        return code

    async def consume(self, key: str, code: str) -> bool:
        """Check ``code`` and burn the stored code on success."""
        stored = await self.cache.get(key)
        if stored is None or not secrets.compare_digest(stored, code.strip()):
            return False
        await self.cache.delete(key)
        return True
