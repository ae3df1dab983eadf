"""Response models for subjects, progress and badges."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SubjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    icon: str
    color: str
    description: str | None = None


class DifficultyProgressResponse(BaseModel):
    difficulty: str
    completed: bool
    wins: int


class SubjectDetailResponse(BaseModel):
    subject: SubjectResponse
    progress: list[DifficultyProgressResponse]


class BadgeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str | None = None
    icon: str
    badge_type: str
    subject_id: uuid.UUID | None = None
    difficulty: str | None = None


class UserBadgeResponse(BaseModel):
    badge: BadgeResponse
    earned_at: datetime | None
