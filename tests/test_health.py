"""Health, readiness and version endpoints."""

import pytest
from httpx import AsyncClient

from brainbattle.db.models import Subject
from brainbattle.redis_client import set_redis

pytestmark = pytest.mark.asyncio


async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_ready(client: AsyncClient) -> None:
    response = await client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"] == {"database": "ok", "redis": "ok"}
    assert data["games"] == {"waiting_rooms": 0, "runners": 0}
    assert "total_connections" in data["websocket"]


async def test_ready_counts_waiting_rooms(authed_client: AsyncClient, math_subject: Subject) -> None:
    await authed_client.post(f"/api/v1/waiting-room/{math_subject.id}/basic")
    data = (await authed_client.get("/ready")).json()
    assert data["games"] == {"waiting_rooms": 1, "runners": 0}


async def test_ready_degraded_without_redis(client: AsyncClient, redis_client) -> None:
    set_redis(None)
    try:
        response = await client.get("/ready")
    finally:
        set_redis(redis_client)
    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["checks"]["redis"].startswith("error")
    assert response.json()["checks"]["database"] == "ok"


async def test_version(client: AsyncClient) -> None:
    response = await client.get("/version")
    assert response.status_code == 200
    assert set(response.json()) == {"version", "environment"}
