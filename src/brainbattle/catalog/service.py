"""Subject, progress and badge queries."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.db.models import DIFFICULTIES, Badge, Subject, UserBadge, UserProgress


async def list_subjects(db: AsyncSession) -> list[Subject]:
    result = await db.execute(select(Subject).order_by(Subject.name))
    return list(result.scalars().all())


async def get_subject(db: AsyncSession, subject_id: uuid.UUID) -> Subject | None:
    return await db.get(Subject, subject_id)


async def get_progress(db: AsyncSession, user_id: uuid.UUID, subject_id: uuid.UUID) -> list[dict]:
    """Progress for every difficulty tier, zero-filled where the user has not played."""
    result = await db.execute(
        select(UserProgress).where(
            UserProgress.user_id == user_id,
            UserProgress.subject_id == subject_id,
        )
    )
    by_difficulty = {p.difficulty: p for p in result.scalars()}
    progress = []
    for difficulty in DIFFICULTIES:
        row = by_difficulty.get(difficulty)
        progress.append({
            "difficulty": difficulty,
            "completed": bool(row.completed) if row else False,
            "wins": row.wins if row else 0,
        })
    return progress


async def record_progress(
    db: AsyncSession,
    user_id: uuid.UUID,
    subject_id: uuid.UUID,
    difficulty: str,
    won: bool,
) -> UserProgress:
    """Mark (user, subject, difficulty) completed and count a win. Flushes, does not commit."""
    result = await db.execute(
        select(UserProgress).where(
            UserProgress.user_id == user_id,
            UserProgress.subject_id == subject_id,
            UserProgress.difficulty == difficulty,
        )
    )
    progress = result.scalar_one_or_none()
    if progress is None:
        progress = UserProgress(
            user_id=user_id,
            subject_id=subject_id,
            difficulty=difficulty,
            completed=False,
            wins=0,
        )
        db.add(progress)
    progress.completed = True
    if won:
        progress.wins = (progress.wins or 0) + 1
    progress.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return progress


async def list_badges(db: AsyncSession) -> list[Badge]:
    result = await db.execute(select(Badge).order_by(Badge.created_at, Badge.name))
    return list(result.scalars().all())


async def list_user_badges(db: AsyncSession, user_id: uuid.UUID) -> list[UserBadge]:
    result = await db.execute(
        select(UserBadge).where(UserBadge.user_id == user_id).order_by(UserBadge.earned_at.desc())
    )
    return list(result.scalars().unique().all())
