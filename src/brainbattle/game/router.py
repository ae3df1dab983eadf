"""Game API — play, live state, answers and results for a started session."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.auth.dependencies import get_current_user
from brainbattle.database import get_session
from brainbattle.db.models import GameParticipant, GameSession, User
from brainbattle.errors import ForbiddenError, StateTransitionError
from brainbattle.game.runner import GameRunner, game_runners
from brainbattle.game.schemas import AnswerRequest, AnswerResponse, GameStateResponse, ResultsResponse
from brainbattle.game.service import get_game_session, get_results
from brainbattle.matchmaking.service import get_participant, list_participants

router = APIRouter(prefix="/api/v1/game", tags=["Game"])


async def _load_seat(db: AsyncSession, session_id: uuid.UUID, user: User) -> tuple[GameSession, GameParticipant]:
    session = await get_game_session(db, session_id)
    participant = await get_participant(db, session_id, user.id)
    if participant is None:
        raise ForbiddenError("Not a participant of this session")
    return session, participant


async def _state(
    db: AsyncSession,
    session: GameSession,
    participant: GameParticipant,
    runner: GameRunner | None,
) -> GameStateResponse:
    participants = await list_participants(db, session.id, by_score=True)
    if runner is not None:
        view = runner.engine.view()
    else:
        count = len(session.questions or [])
        view = {
            "phase": "complete" if participant.completed_at else "idle",
            "question_index": participant.current_question or 0,
            "question_count": count,
            "question": None,
            "time_left": None,
            "score": participant.score or 0,
            "selected_answer": None,
        }
    return GameStateResponse(
        session_id=str(session.id),
        status=session.status,
        running=runner is not None,
        participants=participants,
        **view,
    )


@router.post("/{session_id}/play", response_model=GameStateResponse)
async def play(
    session_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> GameStateResponse:
    """Start or resume the caller's game from their last checkpoint."""
    session, participant = await _load_seat(db, session_id, user)
    if session.status == "waiting":
        raise StateTransitionError("Session has not started yet", status=session.status)
    if session.status == "starting":
        # The waiting-room driver opens play once the get-ready delay is over
        raise StateTransitionError("Session is getting ready", status=session.status)

    runner = await game_runners.play(db, session, participant)
    await db.refresh(session)
    await db.refresh(participant)
    return await _state(db, session, participant, runner)


@router.get("/{session_id}", response_model=GameStateResponse)
async def game_state(
    session_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> GameStateResponse:
    session, participant = await _load_seat(db, session_id, user)
    return await _state(db, session, participant, game_runners.get(session.id, user.id))


@router.post("/{session_id}/answer", response_model=AnswerResponse)
async def answer(
    session_id: uuid.UUID,
    body: AnswerRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> AnswerResponse:
    """Lock in an answer for the current question. 409 outside the answering window."""
    session, _ = await _load_seat(db, session_id, user)
    runner = game_runners.get(session.id, user.id)
    if runner is None:
        raise StateTransitionError("Game is not running; call play first")
    result = await runner.submit_answer(body.answer)
    return AnswerResponse(
        correct=result.correct,
        points_earned=result.points_earned,
        correct_answer=result.correct_answer,
        score=result.score,
    )


@router.get("/{session_id}/results", response_model=ResultsResponse)
async def results(
    session_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ResultsResponse:
    await _load_seat(db, session_id, user)
    return ResultsResponse(**await get_results(db, session_id, user.id))
