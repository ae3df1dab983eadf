"""Subjects & badges API — dashboard and subject detail read paths."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.auth.dependencies import get_current_user
from brainbattle.catalog.schemas import (
    BadgeResponse,
    DifficultyProgressResponse,
    SubjectDetailResponse,
    SubjectResponse,
)
from brainbattle.catalog.service import get_progress, get_subject, list_badges, list_subjects
from brainbattle.database import get_session
from brainbattle.db.models import User
from brainbattle.errors import NotFoundError

router = APIRouter(prefix="/api/v1", tags=["Catalog"])


@router.get("/subjects", response_model=list[SubjectResponse])
async def get_subjects(db: AsyncSession = Depends(get_session)) -> list[SubjectResponse]:
    subjects = await list_subjects(db)
    return [SubjectResponse.model_validate(s) for s in subjects]


@router.get("/subjects/{subject_id}", response_model=SubjectDetailResponse)
async def get_subject_detail(
    subject_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SubjectDetailResponse:
    """Subject plus the caller's completion flag and wins for each difficulty."""
    subject = await get_subject(db, subject_id)
    if subject is None:
        raise NotFoundError("Subject not found")
    progress = await get_progress(db, user.id, subject_id)
    return SubjectDetailResponse(
        subject=SubjectResponse.model_validate(subject),
        progress=[DifficultyProgressResponse(**p) for p in progress],
    )


@router.get("/badges", response_model=list[BadgeResponse])
async def get_badges(db: AsyncSession = Depends(get_session)) -> list[BadgeResponse]:
    badges = await list_badges(db)
    return [BadgeResponse.model_validate(b) for b in badges]
