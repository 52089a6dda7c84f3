"""Redis connection management and small cache helpers."""

from app.core.cache.redis import (
    OneTimeCodeStore,
    RedisCache,
    close_redis_pool,
    ping_redis,
    redis_client,
)


__all__ = [
    "OneTimeCodeStore",
    "RedisCache",
    "close_redis_pool",
    "ping_redis",
    "redis_client",
]
