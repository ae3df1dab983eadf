"""Request/response schemas for profile endpoints."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field


class ProfileResponse(BaseModel):
    user_id: uuid.UUID
    email: str
    username: str | None
    avatar_url: str | None
    total_points: int


class ProfileUpdateRequest(BaseModel):
    username: str | None = Field(None, min_length=2, max_length=32)
    avatar_url: str | None = Field(None, max_length=2048)
