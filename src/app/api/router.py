"""Root API router with health endpoints and module mounting."""

from typing import Any

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.api.dependencies import DBSession
from app.config import settings
from app.core.auth.routes import router as auth_router
from app.core.cache import ping_redis
from app.modules import discover_modules


log = structlog.get_logger()


class HealthResponse(BaseModel):
    status: str


class ReadinessResponse(BaseModel):
    status: str
    checks: dict[str, str]


api_router = APIRouter()

# Health check endpoints (no /api/v1 prefix)
health_router = APIRouter(tags=["health"])


@health_router.get("/health/live", response_model=HealthResponse, summary="Liveness check")
async def liveness() -> HealthResponse:
    return HealthResponse(status="alive")


@health_router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Checks database and Redis connectivity. Returns 503 when either is down.",
)
async def readiness(db: DBSession) -> JSONResponse:
    checks: dict[str, str] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as e:
        log.warning("readiness_database_failed", error=str(e))
        checks["database"] = "unavailable"

    try:
        checks["redis"] = "ok" if await ping_redis() else "unavailable"
    except (RedisError, OSError) as e:
        log.warning("readiness_redis_failed", error=str(e))
        checks["redis"] = "unavailable"

    all_ok = all(v == "ok" for v in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if all_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if all_ok else "degraded", "checks": checks},
    )


@health_router.get("/info", summary="Application info")
async def info() -> dict[str, Any]:
    return {
        "app": settings.app_name,
        "environment": settings.environment,
        "debug": settings.debug,
    }


v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(auth_router)

for module_router in discover_modules():
    v1_router.include_router(module_router)

api_router.include_router(health_router)
api_router.include_router(v1_router)
