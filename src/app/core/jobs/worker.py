"""ARQ worker configuration.

Run the worker with:
    arq app.core.jobs.worker.WorkerSettings
"""

from typing import Any, ClassVar

import structlog
from arq import cron
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import settings
from app.core.jobs.registry import get_redis_settings
from app.core.jobs.tasks import (
    cleanup_expired_tokens,
    deliver_mfa_code,
    end_expired_impersonations,
    expire_api_keys,
    expire_trials,
    notify_payment_failures,
    notify_trial_expirations,
)
from app.core.logging import configure_logging


log = structlog.get_logger()


async def startup(ctx: dict[str, Any]) -> None:
    """Create the worker's own engine and session factory."""
    configure_logging()
    log.info("worker_startup", environment=settings.environment)

    engine_options: dict[str, Any] = {"echo": settings.database_echo}
    if not settings.is_sqlite:
        engine_options.update(pool_size=5, max_overflow=10)
    engine = create_async_engine(settings.async_database_url, **engine_options)

    ctx["db_engine"] = engine
    ctx["db_session_factory"] = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def shutdown(ctx: dict[str, Any]) -> None:
    engine = ctx.get("db_engine")
    if engine:
        await engine.dispose()
    log.info("worker_shutdown")


class WorkerSettings:
    functions: ClassVar[list[Any]] = [
        cleanup_expired_tokens,
        deliver_mfa_code,
        end_expired_impersonations,
        expire_api_keys,
        expire_trials,
        notify_payment_failures,
        notify_trial_expirations,
    ]

    cron_jobs: ClassVar[list[Any]] = [
        cron(expire_trials, minute=5),
        cron(end_expired_impersonations, minute={0, 15, 30, 45}),
        cron(expire_api_keys, minute=10),
        # Daily at 09:00 UTC; the service skips tenants already notified today
        cron(notify_trial_expirations, hour=9, minute=0),
        cron(notify_payment_failures, hour={0, 6, 12, 18}, minute=20),
        cron(cleanup_expired_tokens, hour=3, minute=0),
    ]

    on_startup = startup
    on_shutdown = shutdown

    redis_settings = get_redis_settings()

    max_jobs = 10
    job_timeout = 300
    keep_result = 3600
    retry_jobs = True
    max_tries = 3
