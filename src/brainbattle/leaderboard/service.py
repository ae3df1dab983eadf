"""Leaderboard service — Redis sorted set as the precomputed all-time view.

Reads go through Redis. ``profiles.total_points`` is the source of truth the
set is rebuilt from (cold cache and the periodic arq job).
"""

from __future__ import annotations

import logging
import uuid

from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.db.models import Profile

logger = logging.getLogger(__name__)

LEADERBOARD_KEY = "leaderboard:alltime"


def window_rank(window_totals: list[int], my_points: int) -> int:
    """Rank against a descending window: first position whose total is <= mine.

    Users below the window get ``len(window_totals) + 1``. Users tied with
    others outside the window can be misranked; ``exact_rank`` does not have
    that problem.
    """
    for position, total in enumerate(window_totals, start=1):
        if total <= my_points:
            return position
    return len(window_totals) + 1


async def exact_rank(redis: Redis, my_points: int) -> int:
    """1 + number of members with strictly more points."""
    higher = await redis.zcount(LEADERBOARD_KEY, f"({my_points}", "+inf")
    return int(higher) + 1


async def rebuild_leaderboard(redis: Redis, db: AsyncSession) -> int:
    """Replace the sorted set with every profile's ``total_points``."""
    result = await db.execute(select(Profile.user_id, Profile.total_points))
    rows = result.all()

    pipe = redis.pipeline()
    pipe.delete(LEADERBOARD_KEY)
    if rows:
        pipe.zadd(LEADERBOARD_KEY, {str(row.user_id): row.total_points or 0 for row in rows})
    await pipe.execute()

    logger.info("All-time leaderboard rebuilt: %d entries", len(rows))
    return len(rows)


async def add_points(redis: Redis, user_id: uuid.UUID, points: int) -> None:
    """Mirror a profile increment into the set. A cold set is left for the next rebuild."""
    if points <= 0:
        return
    if await redis.exists(LEADERBOARD_KEY):
        await redis.zincrby(LEADERBOARD_KEY, points, str(user_id))


async def get_leaderboard(
    redis: Redis,
    db: AsyncSession,
    limit: int = 100,
    current_user_id: uuid.UUID | None = None,
) -> dict:
    """Top ``limit`` entries enriched with profile data, plus the caller's rank when known."""
    if not await redis.exists(LEADERBOARD_KEY):
        await rebuild_leaderboard(redis, db)

    raw = await redis.zrevrange(LEADERBOARD_KEY, 0, limit - 1, withscores=True)
    user_ids = [uuid.UUID(uid) for uid, _ in raw]

    profiles: dict[uuid.UUID, Profile] = {}
    if user_ids:
        result = await db.execute(select(Profile).where(Profile.user_id.in_(user_ids)))
        profiles = {p.user_id: p for p in result.scalars()}

    entries = []
    for position, (uid_str, score) in enumerate(raw, start=1):
        user_id = uuid.UUID(uid_str)
        profile = profiles.get(user_id)
        entries.append({
            "rank": position,
            "user_id": str(user_id),
            "username": profile.username if profile else None,
            "avatar_url": profile.avatar_url if profile else None,
            "total_points": int(score),
            "is_current_user": user_id == current_user_id if current_user_id else False,
        })

    response: dict = {"entries": entries, "total": await redis.zcard(LEADERBOARD_KEY)}
    if current_user_id is not None:
        result = await db.execute(select(Profile.total_points).where(Profile.user_id == current_user_id))
        my_points = result.scalar_one_or_none() or 0
        response["my_points"] = my_points
        response["my_rank"] = window_rank([e["total_points"] for e in entries], my_points)
        response["my_exact_rank"] = await exact_rank(redis, my_points)
    return response
