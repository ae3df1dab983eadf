"""
Account service.

Registration creates the user together with its zero-point profile. Sessions
are a pair of JWTs whose refresh half is tracked (hashed) in ``refresh_tokens``
so it can be rotated, and revoked wholesale when a rotated token comes back.
"""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, NamedTuple

import jwt as pyjwt
import structlog
from sqlalchemy import func, select, update

from brainbattle.auth.jwt import create_access_token, create_refresh_token, verify_token
from brainbattle.auth.password import (
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from brainbattle.config import get_settings
from brainbattle.db.models import Profile, RefreshToken, User

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


class TokenPair(NamedTuple):
    access_token: str
    refresh_token: str


class RefreshRejected(Exception):
    """The presented refresh token cannot be exchanged."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


async def get_user_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    return await db.get(User, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Case-insensitive lookup."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


async def get_profile(db: AsyncSession, user_id: uuid.UUID) -> Profile | None:
    result = await db.execute(select(Profile).where(Profile.user_id == user_id))
    return result.scalar_one_or_none()


async def get_profile_by_username(db: AsyncSession, username: str) -> Profile | None:
    result = await db.execute(select(Profile).where(func.lower(Profile.username) == username.lower()))
    return result.scalar_one_or_none()


async def register_user(db: AsyncSession, email: str, password: str, username: str) -> User:
    """
    Create a user and its profile.

    Raises:
        PasswordStrengthError: The password is too weak.
        ValueError: The email or the username is taken.
    """
    validate_password_strength(password)

    if await get_user_by_email(db, email) is not None:
        msg = "Email already registered"
        raise ValueError(msg)
    if await get_profile_by_username(db, username) is not None:
        msg = "Username already taken"
        raise ValueError(msg)

    now = _utcnow()
    user = User(
        email=email.lower().strip(),
        password_hash=hash_password(password),
        created_at=now,
        last_login=now,
        login_count=1,
    )
    db.add(user)
    await db.flush()
    db.add(Profile(user_id=user.id, username=username, total_points=0, created_at=now))
    await db.flush()

    logger.info("user_created", user_id=str(user.id), username=username)
    return user


# ---------------------------------------------------------------------------
# Login and lockout
# ---------------------------------------------------------------------------


def _attempts_key(user_id: uuid.UUID) -> str:
    return f"login_attempts:{user_id}"


async def is_locked_out(redis: Redis, user_id: uuid.UUID) -> bool:
    attempts = await redis.get(_attempts_key(user_id))
    return attempts is not None and int(attempts) >= get_settings().account_lockout_threshold


async def record_failed_login(redis: Redis, user_id: uuid.UUID) -> int:
    """Count a failure; the window starts with the first one."""
    key = _attempts_key(user_id)
    attempts = int(await redis.incr(key))
    if attempts == 1:
        await redis.expire(key, get_settings().account_lockout_duration_minutes * 60)
    return attempts


async def authenticate_user(db: AsyncSession, redis: Redis, email: str, password: str) -> User:
    """
    Check email + password.

    Raises:
        ValueError: Unknown email or wrong password.
        PermissionError: The account is locked out or banned.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        msg = "Invalid email or password"
        raise ValueError(msg)
    if await is_locked_out(redis, user.id):
        msg = "Account temporarily locked. Try again later."
        raise PermissionError(msg)
    if user.is_banned:
        msg = "Account is banned"
        raise PermissionError(msg)

    if not verify_password(password, user.password_hash):
        attempts = await record_failed_login(redis, user.id)
        logger.info("login_failed", user_id=str(user.id), attempts=attempts)
        msg = "Invalid email or password"
        raise ValueError(msg)

    await redis.delete(_attempts_key(user.id))
    user.last_login = _utcnow()
    user.login_count = (user.login_count or 0) + 1
    if check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
    await db.flush()
    return user


# ---------------------------------------------------------------------------
# Token sessions
# ---------------------------------------------------------------------------


async def issue_tokens(db: AsyncSession, user: User, user_agent: str | None = None) -> tuple[TokenPair, str]:
    """Mint an access/refresh pair and track the refresh half. Returns the pair and its JTI."""
    token_id = str(uuid.uuid4())
    pair = TokenPair(
        access_token=create_access_token(user.id, user.email),
        refresh_token=create_refresh_token(user.id, user.email, token_id=token_id),
    )
    db.add(RefreshToken(
        id=token_id,
        user_id=user.id,
        token_hash=_digest(pair.refresh_token),
        issued_at=_utcnow(),
        expires_at=_utcnow() + timedelta(days=get_settings().jwt_refresh_token_expire_days),
        user_agent=user_agent,
    ))
    await db.flush()
    return pair, token_id


async def _tracked_token(db: AsyncSession, refresh_token: str) -> RefreshToken | None:
    try:
        payload = verify_token(refresh_token, expected_type="refresh")
    except pyjwt.InvalidTokenError as e:
        raise RefreshRejected(str(e)) from e
    jti = payload.get("jti")
    if not jti:
        msg = "Invalid refresh token"
        raise RefreshRejected(msg)
    return await db.get(RefreshToken, jti)


async def rotate_tokens(
    db: AsyncSession,
    refresh_token: str,
    user_agent: str | None = None,
) -> tuple[User, TokenPair]:
    """
    Exchange a refresh token for a new pair, revoking the old one.

    Presenting an already revoked token revokes every session of its user
    (committed before raising).

    Raises:
        RefreshRejected: The token is invalid, unknown, revoked or orphaned.
    """
    old = await _tracked_token(db, refresh_token)
    if old is None or old.token_hash != _digest(refresh_token):
        msg = "Refresh token not found"
        raise RefreshRejected(msg)
    if old.is_revoked:
        await revoke_all_tokens(db, old.user_id)
        await db.commit()
        logger.warning("refresh_token_reuse", user_id=str(old.user_id))
        msg = "Refresh token has been revoked"
        raise RefreshRejected(msg)

    user = await get_user_by_id(db, old.user_id)
    if user is None:
        msg = "User not found"
        raise RefreshRejected(msg)

    pair, new_id = await issue_tokens(db, user, user_agent)
    old.is_revoked = True
    old.revoked_at = _utcnow()
    old.replaced_by = new_id
    await db.flush()
    return user, pair


async def revoke_session(db: AsyncSession, refresh_token: str) -> bool:
    """Revoke one refresh token. Invalid or unknown tokens are ignored."""
    try:
        token = await _tracked_token(db, refresh_token)
    except RefreshRejected:
        return False
    if token is None or token.is_revoked:
        return False
    token.is_revoked = True
    token.revoked_at = _utcnow()
    await db.flush()
    return True


async def revoke_all_tokens(db: AsyncSession, user_id: uuid.UUID) -> int:
    """Revoke every live refresh token of a user. Returns how many."""
    result = await db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.is_revoked.is_(False))
        .values(is_revoked=True, revoked_at=_utcnow())
    )
    await db.flush()
    return result.rowcount  # type: ignore[return-value]
