"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from brainbattle.auth.router import router as auth_router
from brainbattle.catalog.router import router as catalog_router
from brainbattle.catalog.seed import seed_badges, seed_subjects
from brainbattle.config import get_settings
from brainbattle.database import close_db, get_session_factory, init_db
from brainbattle.game.router import router as game_router
from brainbattle.game.runner import game_runners
from brainbattle.generation.router import router as generation_router
from brainbattle.health.router import router as health_router
from brainbattle.leaderboard.router import router as leaderboard_router
from brainbattle.matchmaking.driver import waiting_rooms
from brainbattle.matchmaking.router import router as matchmaking_router
from brainbattle.middleware import setup_middleware
from brainbattle.realtime.bridge import PubSubBridge
from brainbattle.realtime.router import router as ws_router
from brainbattle.redis_client import close_redis, get_redis, init_redis
from brainbattle.users.router import router as users_router

logger = logging.getLogger(__name__)


async def seed_reference_data() -> None:
    """Seed subjects and badge definitions (idempotent)."""
    try:
        async with get_session_factory()() as db:
            await seed_subjects(db)
            await seed_badges(db)
    except SQLAlchemyError:
        logger.warning("Reference data seeding failed (tables may not exist yet)", exc_info=True)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    await seed_reference_data()

    # Start the Redis pub/sub -> WebSocket bridge
    bridge = PubSubBridge(get_redis())
    bridge_task = asyncio.create_task(bridge.start())

    yield

    # Timers first: they write through the DB and Redis closed below
    await waiting_rooms.cancel_all()
    await game_runners.cancel_all()

    await bridge.stop()
    bridge_task.cancel()
    with suppress(asyncio.CancelledError):
        await bridge_task

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="BrainBattle API",
        description="Matchmade trivia battles with AI-generated questions and lessons",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(catalog_router)
    app.include_router(generation_router)
    app.include_router(matchmaking_router)
    app.include_router(game_router)
    app.include_router(leaderboard_router)
    app.include_router(ws_router)

    return app


app = create_app()
