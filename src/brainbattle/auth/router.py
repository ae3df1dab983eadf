"""Authentication router: /api/v1/auth/*."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.auth.dependencies import get_current_user
from brainbattle.auth.password import PasswordStrengthError
from brainbattle.auth.schemas import (
    AuthUserResponse,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)
from brainbattle.auth.service import (
    RefreshRejected,
    TokenPair,
    authenticate_user,
    get_profile,
    issue_tokens,
    register_user,
    revoke_all_tokens,
    revoke_session,
    rotate_tokens,
)
from brainbattle.config import get_settings
from brainbattle.database import get_session
from brainbattle.db.models import User
from brainbattle.redis_client import get_redis

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


async def _token_response(db: AsyncSession, user: User, pair: TokenPair) -> TokenResponse:
    profile = await get_profile(db, user.id)
    await db.commit()
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=get_settings().jwt_access_token_expire_minutes * 60,
        user=AuthUserResponse(
            id=user.id,
            email=user.email,
            username=profile.username if profile else None,
            created_at=user.created_at,
        ),
    )


@router.post("/register", response_model=TokenResponse)
async def register(
    body: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Sign up with email, password and username."""
    try:
        user = await register_user(db, body.email, body.password, body.username)
    except PasswordStrengthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    pair, _ = await issue_tokens(db, user, request.headers.get("user-agent"))
    return await _token_response(db, user, pair)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis),  # type: ignore[assignment]
) -> TokenResponse:
    """Sign in with email + password. Locked accounts get 429, banned ones 403."""
    try:
        user = await authenticate_user(db, redis, body.email, body.password)
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    except PermissionError as e:
        detail = str(e)
        status = 429 if "locked" in detail.lower() else 403
        raise HTTPException(status_code=status, detail=detail) from e

    pair, _ = await issue_tokens(db, user, request.headers.get("user-agent"))
    return await _token_response(db, user, pair)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    body: RefreshRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    try:
        user, pair = await rotate_tokens(db, body.refresh_token, request.headers.get("user-agent"))
    except RefreshRejected as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    return await _token_response(db, user, pair)


@router.post("/logout")
async def logout(
    body: LogoutRequest,
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Revoke the given refresh token. Always succeeds."""
    if await revoke_session(db, body.refresh_token):
        await db.commit()
    return {"status": "logged_out"}


@router.post("/logout-all")
async def logout_all(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Revoke every refresh token of the caller."""
    count = await revoke_all_tokens(db, user.id)
    await db.commit()
    return {"status": "all_sessions_revoked", "revoked_count": str(count)}
