"""Tests for the health check endpoint."""
from unittest.mock import MagicMock

from fastapi import FastAPI
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from fakes import FakeRedisClient


async def test_health_endpoint_returns_healthy_status(client: AsyncClient) -> None:
    """Test that the health endpoint reports every dependency healthy."""
    response = await client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "healthy", "cache": "healthy"}


async def test_health_endpoint_cache_unavailable_is_not_degraded(
    client: AsyncClient, app: FastAPI,
) -> None:
    """Test that losing the optional cache does not degrade the proxy."""
    app.state.redis_client = FakeRedisClient(connected=False)

    response = await client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "healthy", "cache": "unavailable"}


async def test_health_endpoint_database_failure_is_degraded(
    client: AsyncClient, app: FastAPI,
) -> None:
    """Test that an unreachable database degrades the status."""
    app.state.session_factory = MagicMock(
        side_effect=OperationalError("SELECT 1", {}, Exception("connection refused")),
    )

    response = await client.get("/healthz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["database"] == "unhealthy"

