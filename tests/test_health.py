"""Tests for the /health endpoint."""
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient


def _mock_session():
    mock_session = AsyncMock()
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=False)
    mock_session.execute = AsyncMock()
    return mock_session


@pytest.mark.asyncio
async def test_health_check_all_connected(client: AsyncClient):
    redis_client = AsyncMock()
    with (
        patch("driverhire.main.async_session", return_value=_mock_session()),
        patch("driverhire.main.aioredis.from_url", return_value=redis_client),
    ):
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "connected", "redis": "connected"}
    redis_client.ping.assert_awaited_once()


@pytest.mark.asyncio
async def test_health_check_database_down(client: AsyncClient):
    mock_session = _mock_session()
    mock_session.execute = AsyncMock(side_effect=ConnectionRefusedError("db down"))

    with patch("driverhire.main.async_session", return_value=mock_session):
        response = await client.get("/health")

    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"
    assert response.json()["database"] == "disconnected"


@pytest.mark.asyncio
async def test_health_check_redis_unavailable_is_not_fatal(client: AsyncClient):
    redis_client = AsyncMock()
    redis_client.ping = AsyncMock(side_effect=ConnectionError("redis down"))

    with (
        patch("driverhire.main.async_session", return_value=_mock_session()),
        patch("driverhire.main.aioredis.from_url", return_value=redis_client),
    ):
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["redis"] == "unavailable"
    # Development settings: degraded status is reserved for production
    assert response.json()["status"] == "ok"
