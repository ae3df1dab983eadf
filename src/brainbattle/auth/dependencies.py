"""FastAPI authentication dependencies."""

from __future__ import annotations

import uuid

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.auth.jwt import verify_token
from brainbattle.auth.service import get_user_by_id
from brainbattle.database import get_session
from brainbattle.db.models import User
from brainbattle.errors import AuthError, ForbiddenError

# auto_error=False: a missing header must surface as 401, not FastAPI's default
_bearer = HTTPBearer(auto_error=False)


async def resolve_user(db: AsyncSession, token: str) -> User:
    """Resolve a bearer token to a User. Raises AuthError, or ForbiddenError for banned accounts."""
    try:
        payload = verify_token(token, expected_type="access")
        user_id = uuid.UUID(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        raise AuthError("Unauthorized - invalid token") from e

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise AuthError("Unauthorized - user not found")
    if user.is_banned:
        raise ForbiddenError("Account is banned")
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Extract and verify the bearer JWT, return the User. Raises AuthError (401)."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthError("Unauthorized - missing or invalid token")
    return await resolve_user(db, credentials.credentials)


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User | None:
    """Same as get_current_user but anonymous callers get None."""
    if credentials is None:
        return None
    try:
        return await resolve_user(db, credentials.credentials)
    except (AuthError, ForbiddenError):
        return None
