"""Liveness, readiness and version endpoints for the BrainBattle API."""

from fastapi import APIRouter, Depends
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.config import get_settings
from brainbattle.database import get_session
from brainbattle.game.runner import game_runners
from brainbattle.matchmaking.driver import waiting_rooms
from brainbattle.realtime.manager import manager
from brainbattle.redis_client import get_redis

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


async def _dependency_checks(db: AsyncSession) -> dict[str, str]:
    checks = {"database": "ok", "redis": "ok"}
    try:
        await db.scalar(text("SELECT 1"))
    except SQLAlchemyError as exc:
        checks["database"] = f"error: {exc}"
    try:
        await get_redis().ping()
    except (RedisError, RuntimeError) as exc:
        checks["redis"] = f"error: {exc}"
    return checks


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Database and Redis reachability, plus the game tasks this process is driving.

    Always 200; ``status`` is ``degraded`` when a dependency is down.
    """
    checks = await _dependency_checks(db)
    return {
        "status": "ready" if all(v == "ok" for v in checks.values()) else "degraded",
        "checks": checks,
        "games": {
            "waiting_rooms": waiting_rooms.active_count(),
            "runners": game_runners.active_count(),
        },
        "websocket": manager.get_stats(),
    }


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {"version": settings.app_version, "environment": settings.environment}
