"""ARQ connection pool and enqueueing helpers for the API process."""

from datetime import timedelta
from typing import Any

from arq import ArqRedis, create_pool
from arq.connections import RedisSettings

from app.config import settings


class ArqPoolHolder:
    """Holder for the ARQ connection pool."""

    pool: ArqRedis | None = None


def get_redis_settings() -> RedisSettings:
    """ARQ connection settings built from ``REDIS_URL``."""
    return RedisSettings.from_dsn(str(settings.redis_url))


async def init_arq_pool() -> ArqRedis:
    """Initialize the ARQ connection pool. Called during application startup."""
    if ArqPoolHolder.pool is None:
        ArqPoolHolder.pool = await create_pool(get_redis_settings())
    return ArqPoolHolder.pool


async def get_arq_pool() -> ArqRedis:
    """Get the ARQ connection pool.

    Raises:
        RuntimeError: If pool not initialized
    """
    if ArqPoolHolder.pool is None:
        raise RuntimeError("ARQ pool not initialized. Call init_arq_pool() during startup.")
    return ArqPoolHolder.pool


async def close_arq_pool() -> None:
    if ArqPoolHolder.pool is not None:
        await ArqPoolHolder.pool.close()
        ArqPoolHolder.pool = None


async def enqueue(
    job_name: str,
    *args: Any,
    _defer_by: timedelta | None = None,
    _job_id: str | None = None,
    **kwargs: Any,
) -> Any:
    """Enqueue a background job by name.

    Example:
        await enqueue("notify_trial_expirations", _job_id="trials:2026-10-18")
    """
    pool = await get_arq_pool()
    return await pool.enqueue_job(job_name, *args, _defer_by=_defer_by, _job_id=_job_id, **kwargs)
