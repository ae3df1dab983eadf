"""Leaderboard refresh arq worker — periodic rebuild of the Redis sorted set."""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from arq import cron
from arq.connections import RedisSettings

from brainbattle.config import get_settings
from brainbattle.database import close_db, get_session_factory, init_db
from brainbattle.leaderboard.service import rebuild_leaderboard

logger = logging.getLogger(__name__)


async def refresh_leaderboard(ctx: dict) -> int:
    """Rebuild ``leaderboard:alltime`` from profiles."""
    redis_client: aioredis.Redis = ctx["redis"]
    async with get_session_factory()() as db:
        count = await rebuild_leaderboard(redis_client, db)
    logger.info("Leaderboard refresh job done: %d entries", count)
    return count


async def leaderboard_startup(ctx: dict) -> None:
    """Initialize Redis + DB connections on worker startup."""
    settings = get_settings()
    await init_db(settings.database_url)
    ctx["redis"] = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )
    logger.info("Leaderboard worker started")


async def leaderboard_shutdown(ctx: dict) -> None:
    """Clean up on worker shutdown."""
    redis_client = ctx.get("redis")
    if redis_client:
        await redis_client.aclose()
    await close_db()
    logger.info("Leaderboard worker shut down")


def refresh_minutes(interval_seconds: int) -> set[int]:
    """Minutes of the hour at which the cron fires for a given interval."""
    step = max(interval_seconds // 60, 1)
    return set(range(0, 60, step))


class WorkerSettings:
    """arq worker settings: ``arq brainbattle.leaderboard.worker.WorkerSettings``."""

    functions = [refresh_leaderboard]
    cron_jobs = [
        cron(
            refresh_leaderboard,
            minute=refresh_minutes(get_settings().leaderboard_refresh_seconds),
            run_at_startup=True,
        ),
    ]
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    on_startup = leaderboard_startup
    on_shutdown = leaderboard_shutdown
    max_jobs = 2
    job_timeout = 300
