"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from app.api import get_api_router
from app.config import settings
from app.core.audit.middleware import setup_audit_listeners
from app.core.auth import RequestIdMiddleware, TenantContextMiddleware
from app.core.cache import close_redis_pool
from app.core.errors import register_exception_handlers
from app.core.jobs import close_arq_pool, init_arq_pool
from app.core.logging import RequestLoggingMiddleware, configure_logging
from app.core.observability import setup_tracing, shutdown_tracing
from app.core.rate_limit import RateLimitMiddleware


logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(
        "application_startup",
        app_name=settings.app_name,
        environment=settings.environment,
    )

    # Jobs are optional for the API; the worker owns the schedule
    try:
        await init_arq_pool()
    except (RedisError, OSError) as e:
        logger.warning("arq_pool_init_failed", error=str(e))

    yield

    logger.info("application_shutdown")
    shutdown_tracing()
    await close_arq_pool()
    await close_redis_pool()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging()
    setup_audit_listeners()

    app = FastAPI(
        title=settings.app_name,
        description="Multi-tenant immigration portal API",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
    )

    cors_origins = settings.cors_origins
    if settings.is_development and not cors_origins:
        cors_origins = ["http://localhost:3000", "http://localhost:5173"]

    # Middleware added last runs first: request id -> tenant context ->
    # rate limit -> request logging -> CORS -> routes
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID", "X-API-Key"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(TenantContextMiddleware)
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)
    app.include_router(get_api_router())
    setup_tracing(app)

    return app

