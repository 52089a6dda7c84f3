"""Tests for health check endpoints."""

from unittest.mock import AsyncMock, patch

from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError


async def test_liveness_endpoint(client: AsyncClient):
    response = await client.get("/health/live")

    assert response.status_code == 200
    assert response.json()["status"] == "alive"


async def test_readiness_with_redis_up(client: AsyncClient):
    with patch("app.api.router.ping_redis", AsyncMock(return_value=True)):
        response = await client.get("/health/ready")

    assert response.status_code == 200
    assert response.json() == {"status": "ready", "checks": {"database": "ok", "redis": "ok"}}


async def test_readiness_degrades_without_redis(client: AsyncClient):
    """A Redis outage marks the service unready while the database stays ok."""
    failing = AsyncMock(side_effect=RedisConnectionError("connection refused"))
    with patch("app.api.router.ping_redis", failing):
        response = await client.get("/health/ready")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "degraded"
    assert data["checks"] == {"database": "ok", "redis": "unavailable"}


async def test_info_endpoint(client: AsyncClient):
    response = await client.get("/info")

    assert response.status_code == 200
    data = response.json()
    assert data["app"]
    assert data["environment"] == "test"
