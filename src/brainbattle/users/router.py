"""Profile router — /api/v1/users/me endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.auth.dependencies import get_current_user
from brainbattle.catalog.schemas import BadgeResponse, UserBadgeResponse
from brainbattle.catalog.service import list_user_badges
from brainbattle.database import get_session
from brainbattle.db.models import Profile, User
from brainbattle.users.schemas import ProfileResponse, ProfileUpdateRequest
from brainbattle.users.service import get_or_create_profile, update_profile

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _profile_response(user: User, profile: Profile) -> ProfileResponse:
    return ProfileResponse(
        user_id=user.id,
        email=user.email,
        username=profile.username,
        avatar_url=profile.avatar_url,
        total_points=profile.total_points or 0,
    )


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    profile = await get_or_create_profile(db, user)
    await db.commit()
    return _profile_response(user, profile)


@router.patch("/me", response_model=ProfileResponse)
async def update_my_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    try:
        profile = await update_profile(db, user, username=body.username, avatar_url=body.avatar_url)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return _profile_response(user, profile)


@router.get("/me/badges", response_model=list[UserBadgeResponse])
async def get_my_badges(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[UserBadgeResponse]:
    """Badges the caller has unlocked (display only)."""
    user_badges = await list_user_badges(db, user.id)
    return [
        UserBadgeResponse(badge=BadgeResponse.model_validate(ub.badge), earned_at=ub.earned_at)
        for ub in user_badges
    ]
