"""Matchmaking persistence: find-or-create sessions, seats, AI injection."""

from __future__ import annotations

import random
import uuid
from typing import Any

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.db.models import GameParticipant, GameSession, Profile, User
from brainbattle.errors import NotFoundError, StateTransitionError
from brainbattle.matchmaking.waiting_room import pick_ai_names

logger = structlog.get_logger()


def participant_row(participant: GameParticipant, username: str | None = None) -> dict[str, Any]:
    """JSON-safe representation used in API views and change events."""
    return {
        "id": str(participant.id),
        "session_id": str(participant.session_id),
        "user_id": str(participant.user_id) if participant.user_id else None,
        "is_ai": participant.is_ai,
        "ai_name": participant.ai_name,
        "username": username,
        "display_name": participant.ai_name if participant.is_ai else (username or "Player"),
        "score": participant.score or 0,
        "current_question": participant.current_question or 0,
        "completed_at": participant.completed_at.isoformat() if participant.completed_at else None,
    }


async def find_or_create_session(
    db: AsyncSession,
    subject_id: uuid.UUID,
    difficulty: str,
) -> tuple[GameSession, bool]:
    """Earliest ``waiting`` session for the pair, or a new one. Returns (session, created)."""
    result = await db.execute(
        select(GameSession)
        .where(
            GameSession.subject_id == subject_id,
            GameSession.difficulty == difficulty,
            GameSession.status == "waiting",
        )
        .order_by(GameSession.created_at)
        .limit(1)
    )
    session = result.scalar_one_or_none()
    if session is not None:
        return session, False

    session = GameSession(subject_id=subject_id, difficulty=difficulty, status="waiting")
    db.add(session)
    await db.flush()
    logger.info("session_created", session_id=str(session.id), difficulty=difficulty)
    return session, True


async def get_participant(db: AsyncSession, session_id: uuid.UUID, user_id: uuid.UUID) -> GameParticipant | None:
    result = await db.execute(
        select(GameParticipant).where(
            GameParticipant.session_id == session_id,
            GameParticipant.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def join_session(db: AsyncSession, session: GameSession, user: User) -> tuple[GameParticipant, bool]:
    """
    Seat the user in the session. Idempotent: an existing seat is returned.

    Commits. Returns (participant, created).
    """
    existing = await get_participant(db, session.id, user.id)
    if existing is not None:
        return existing, False

    participant = GameParticipant(session_id=session.id, user_id=user.id, is_ai=False, score=0)
    db.add(participant)
    session_id = session.id
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent join by the same user won the unique (session, user) slot
        await db.rollback()
        existing = await get_participant(db, session_id, user.id)
        if existing is None:
            raise
        return existing, False

    logger.info("participant_joined", session_id=str(session_id), user_id=str(user.id))
    return participant, True


async def leave_session(db: AsyncSession, session_id: uuid.UUID, user_id: uuid.UUID) -> GameParticipant:
    """
    Delete the user's seat. Only allowed while the session is ``waiting``.

    Raises:
        NotFoundError: Unknown session or the user holds no seat.
        StateTransitionError: The session already left ``waiting``.
    """
    session = await db.get(GameSession, session_id)
    if session is None:
        raise NotFoundError("Session not found")
    if session.status != "waiting":
        raise StateTransitionError("Cannot leave a session that has already started", status=session.status)

    participant = await get_participant(db, session_id, user_id)
    if participant is None:
        raise NotFoundError("Not a participant of this session")

    await db.execute(delete(GameParticipant).where(GameParticipant.id == participant.id))
    await db.commit()
    logger.info("participant_left", session_id=str(session_id), user_id=str(user_id))
    return participant


async def count_participants(db: AsyncSession, session_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count()).select_from(GameParticipant).where(GameParticipant.session_id == session_id)
    )
    return result.scalar_one()


async def list_participants(
    db: AsyncSession,
    session_id: uuid.UUID,
    *,
    by_score: bool = False,
) -> list[dict[str, Any]]:
    """Participants with usernames, in join order or by score descending."""
    query = (
        select(GameParticipant, Profile.username)
        .outerjoin(Profile, Profile.user_id == GameParticipant.user_id)
        .where(GameParticipant.session_id == session_id)
    )
    if by_score:
        query = query.order_by(GameParticipant.score.desc(), GameParticipant.created_at)
    else:
        query = query.order_by(GameParticipant.created_at)
    result = await db.execute(query)
    return [participant_row(p, username) for p, username in result.all()]


async def inject_ai_opponents(
    db: AsyncSession,
    session_id: uuid.UUID,
    rng: random.Random,
) -> list[GameParticipant]:
    """Add one or two AI seats, but only while the session is still ``waiting``. Commits."""
    session = await db.get(GameSession, session_id)
    if session is None or session.status != "waiting":
        return []

    added = [
        GameParticipant(session_id=session_id, user_id=None, is_ai=True, ai_name=name, score=0)
        for name in pick_ai_names(rng)
    ]
    db.add_all(added)
    await db.commit()
    logger.info("ai_opponents_injected", session_id=str(session_id), names=[p.ai_name for p in added])
    return added
