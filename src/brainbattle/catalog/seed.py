"""Reference data seeded on startup: subjects and badge definitions."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.db.models import Badge, Subject

logger = logging.getLogger(__name__)

SUBJECT_SEED_DATA: list[dict] = [
    {"name": "Math", "icon": "🔢", "color": "primary", "description": "Numbers, equations and problem solving"},
    {"name": "Science", "icon": "🔬", "color": "success", "description": "Physics, chemistry and biology basics"},
    {"name": "History", "icon": "🏛️", "color": "accent", "description": "Events and people that shaped the world"},
    {"name": "Geography", "icon": "🌍", "color": "secondary", "description": "Countries, capitals and landscapes"},
    {"name": "English", "icon": "📚", "color": "primary", "description": "Grammar, vocabulary and literature"},
    {"name": "Computer Science", "icon": "💻", "color": "secondary", "description": "Algorithms, code and computers"},
]

BADGE_SEED_DATA: list[dict] = [
    {"name": "First Victory", "icon": "🏆", "badge_type": "wins", "description": "Win your first battle"},
    {"name": "Quick Thinker", "icon": "⚡", "badge_type": "speed", "description": "Answer a question with 10+ seconds left"},
    {"name": "Perfect Round", "icon": "🎯", "badge_type": "accuracy", "description": "Answer every question in a game correctly"},
    {"name": "Scholar", "icon": "🎓", "badge_type": "points", "description": "Reach 5,000 total points"},
    {"name": "Basic Master", "icon": "🌱", "badge_type": "difficulty", "difficulty": "basic",
     "description": "Complete a basic game"},
    {"name": "Intermediate Master", "icon": "🔥", "badge_type": "difficulty", "difficulty": "intermediate",
     "description": "Complete an intermediate game"},
    {"name": "Advanced Master", "icon": "💎", "badge_type": "difficulty", "difficulty": "advanced",
     "description": "Complete an advanced game"},
]


async def seed_subjects(db: AsyncSession) -> int:
    """Insert missing subjects by name. Idempotent. Returns rows added."""
    existing = set((await db.execute(select(Subject.name))).scalars().all())
    added = 0
    for data in SUBJECT_SEED_DATA:
        if data["name"] in existing:
            continue
        db.add(Subject(**data))
        added += 1
    await db.commit()
    if added:
        logger.info("Seeded %d subjects", added)
    return added


async def seed_badges(db: AsyncSession) -> int:
    """Insert missing badge definitions by name. Idempotent. Returns rows added."""
    existing = set((await db.execute(select(Badge.name))).scalars().all())
    added = 0
    for data in BADGE_SEED_DATA:
        if data["name"] in existing:
            continue
        db.add(Badge(**data))
        added += 1
    await db.commit()
    if added:
        logger.info("Seeded %d badge definitions", added)
    return added
