"""Game persistence: shared question sets, checkpoints, finalization, results."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog
from redis.asyncio import Redis
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.catalog.service import record_progress
from brainbattle.config import get_settings
from brainbattle.db.models import GameParticipant, GameSession, Profile
from brainbattle.errors import NotFoundError, UpstreamError, UpstreamQuotaError
from brainbattle.game.lifecycle import transition_session
from brainbattle.game.samples import sample_questions
from brainbattle.generation.challenges import generate_questions
from brainbattle.generation.llm import LLMGateway, get_llm_gateway
from brainbattle.leaderboard.service import add_points
from brainbattle.matchmaking.service import get_participant, list_participants, participant_row
from brainbattle.realtime.events import ChangeEvent, publish_change, publish_leaderboard_update

logger = structlog.get_logger()


async def get_game_session(db: AsyncSession, session_id: uuid.UUID) -> GameSession:
    session = await db.get(GameSession, session_id, populate_existing=True)
    if session is None:
        raise NotFoundError("Session not found")
    return session


async def ensure_session_questions(
    db: AsyncSession,
    session_id: uuid.UUID,
    gateway: LLMGateway | None = None,
) -> list[dict[str, Any]]:
    """
    Produce the session's question set once and store it on the session.

    Generation failures fall back to the sample questions. If two callers race,
    the first stored set wins and both return it.
    """
    session = await get_game_session(db, session_id)
    if session.questions:
        return session.questions

    try:
        questions = await generate_questions(
            db,
            gateway or get_llm_gateway(),
            session.subject_id,
            session.difficulty,
            get_settings().questions_per_game,
        )
    except (UpstreamError, UpstreamQuotaError) as e:
        logger.warning("upstream_error", session_id=str(session_id), error=e.message, fallback="sample_questions")
        questions = sample_questions()

    await db.execute(
        update(GameSession)
        .where(GameSession.id == session_id, GameSession.questions.is_(None))
        .values(questions=questions)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(session)
    return session.questions or questions


async def save_checkpoint(db: AsyncSession, participant_id: uuid.UUID, snapshot: dict[str, Any]) -> bool:
    """Persist score, answer log and progress. No-op once the participant is finalized."""
    result = await db.execute(
        update(GameParticipant)
        .where(GameParticipant.id == participant_id, GameParticipant.completed_at.is_(None))
        .values(
            score=snapshot["score"],
            answers=snapshot["answers"],
            current_question=snapshot["current_question"],
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1


def rank_results(
    participants: list[dict[str, Any]],
    user_id: uuid.UUID | None,
) -> tuple[list[dict[str, Any]], int | None]:
    """Attach 1-indexed ranks to a score-descending list; return it with the caller's rank."""
    me = str(user_id) if user_id else None
    my_rank = None
    ranked = []
    for position, row in enumerate(participants, start=1):
        is_me = me is not None and row["user_id"] == me
        if is_me:
            my_rank = position
        ranked.append({**row, "rank": position, "is_current_user": is_me})
    return ranked, my_rank


@dataclass
class FinalizeOutcome:
    newly_completed: bool
    score: int
    my_rank: int | None
    results: list[dict[str, Any]] = field(default_factory=list)


async def finalize_participant(
    db: AsyncSession,
    redis: Redis,
    session_id: uuid.UUID,
    user_id: uuid.UUID,
    snapshot: dict[str, Any],
) -> FinalizeOutcome:
    """
    Close out one player's game.

    Only the call that flips ``completed_at`` from NULL posts points and
    progress, so replays never double-count.
    """
    session = await get_game_session(db, session_id)
    score = snapshot["score"]
    now = datetime.now(timezone.utc)

    result = await db.execute(
        update(GameParticipant)
        .where(
            GameParticipant.session_id == session_id,
            GameParticipant.user_id == user_id,
            GameParticipant.completed_at.is_(None),
        )
        .values(
            score=score,
            answers=snapshot["answers"],
            current_question=snapshot["current_question"],
            completed_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    newly_completed = result.rowcount == 1
    await db.commit()

    if session.status != "completed":
        if await transition_session(db, session_id, ("starting", "in_progress"), "completed"):
            await publish_change(redis, ChangeEvent.lifecycle("session_completed", session_id, status="completed"))

    results, my_rank = rank_results(await list_participants(db, session_id, by_score=True), user_id)

    if not newly_completed:
        participant = await get_participant(db, session_id, user_id)
        return FinalizeOutcome(False, participant.score if participant else score, my_rank, results)

    if score > 0:
        bumped = await db.execute(
            update(Profile)
            .where(Profile.user_id == user_id)
            .values(total_points=Profile.total_points + score)
            .execution_options(synchronize_session=False)
        )
        if bumped.rowcount == 0:
            db.add(Profile(user_id=user_id, total_points=score))
    await record_progress(db, user_id, session.subject_id, session.difficulty, won=my_rank == 1)
    await db.commit()

    if score > 0:
        await add_points(redis, user_id, score)
        total = (await db.execute(select(Profile.total_points).where(Profile.user_id == user_id))).scalar_one()
        await publish_leaderboard_update(redis, user_id, total)

    participant = await get_participant(db, session_id, user_id)
    if participant is not None:
        await db.refresh(participant)
        await publish_change(redis, ChangeEvent.participant("update", session_id, participant_row(participant)))
    logger.info("participant_finalized", session_id=str(session_id), user_id=str(user_id), score=score, rank=my_rank)
    return FinalizeOutcome(True, score, my_rank, results)


async def get_results(db: AsyncSession, session_id: uuid.UUID, user_id: uuid.UUID) -> dict[str, Any]:
    session = await get_game_session(db, session_id)
    results, my_rank = rank_results(await list_participants(db, session_id, by_score=True), user_id)
    return {
        "session_id": str(session.id),
        "status": session.status,
        "participants": results,
        "my_rank": my_rank,
    }
