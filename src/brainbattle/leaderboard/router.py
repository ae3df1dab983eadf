"""Leaderboard API."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.auth.dependencies import get_optional_user
from brainbattle.config import get_settings
from brainbattle.database import get_session
from brainbattle.db.models import User
from brainbattle.leaderboard.schemas import LeaderboardResponse
from brainbattle.leaderboard.service import get_leaderboard
from brainbattle.redis_client import get_redis

router = APIRouter(prefix="/api/v1/leaderboard", tags=["Leaderboard"])


@router.get("", response_model=LeaderboardResponse)
async def leaderboard(
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),
) -> LeaderboardResponse:
    """Top players by cumulative points; ``my_*`` fields only for authenticated callers."""
    data = await get_leaderboard(
        get_redis(),
        db,
        limit=get_settings().leaderboard_size,
        current_user_id=user.id if user else None,
    )
    return LeaderboardResponse(**data)
