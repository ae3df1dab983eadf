"""Profile business logic."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.auth.service import get_profile, get_profile_by_username
from brainbattle.db.models import Profile, User

logger = structlog.get_logger()


async def get_or_create_profile(db: AsyncSession, user: User) -> Profile:
    """Accounts created before profiles existed get an empty one lazily."""
    profile = await get_profile(db, user.id)
    if profile is None:
        profile = Profile(user_id=user.id, total_points=0)
        db.add(profile)
        await db.flush()
    return profile


async def update_profile(
    db: AsyncSession,
    user: User,
    username: str | None = None,
    avatar_url: str | None = None,
) -> Profile:
    """
    Update username/avatar. ``total_points`` is never writable from here.

    Raises:
        ValueError: If the username is taken by someone else.
    """
    profile = await get_or_create_profile(db, user)
    if username is not None:
        username = username.strip()
        other = await get_profile_by_username(db, username)
        if other is not None and other.user_id != user.id:
            msg = "Username already taken"
            raise ValueError(msg)
        profile.username = username
    if avatar_url is not None:
        profile.avatar_url = avatar_url or None
    profile.updated_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("profile_updated", user_id=str(user.id))
    return profile
