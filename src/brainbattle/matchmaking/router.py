"""Waiting-room API — join-or-create, current view, leave."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.auth.dependencies import get_current_user
from brainbattle.auth.service import get_profile
from brainbattle.catalog.service import get_subject
from brainbattle.database import get_session
from brainbattle.db.models import DIFFICULTIES, GameSession, User
from brainbattle.errors import NotFoundError, RequestValidationFailed, StorageError
from brainbattle.matchmaking.driver import waiting_rooms
from brainbattle.matchmaking.schemas import LeaveResponse, WaitingRoomResponse
from brainbattle.matchmaking.service import (
    find_or_create_session,
    join_session,
    leave_session,
    list_participants,
    participant_row,
)
from brainbattle.realtime.events import ChangeEvent, publish_change
from brainbattle.redis_client import get_redis

router = APIRouter(prefix="/api/v1/waiting-room", tags=["Matchmaking"])


async def _view(db: AsyncSession, session: GameSession) -> WaitingRoomResponse:
    driver = waiting_rooms.get(session.id)
    return WaitingRoomResponse(
        session_id=str(session.id),
        subject_id=str(session.subject_id),
        difficulty=session.difficulty,
        status=session.status,
        countdown=driver.room.countdown if driver else None,
        cycle=driver.room.cycle if driver else None,
        participants=await list_participants(db, session.id),
    )


@router.post("/{subject_id}/{difficulty}", response_model=WaitingRoomResponse)
async def join_waiting_room(
    subject_id: uuid.UUID,
    difficulty: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> WaitingRoomResponse:
    """Join the earliest waiting session for the pair, creating one if none exists.

    Joining twice returns the same seat.
    """
    if difficulty not in DIFFICULTIES:
        raise RequestValidationFailed("Difficulty must be basic, intermediate, or advanced")
    if await get_subject(db, subject_id) is None:
        raise NotFoundError("Subject not found")

    try:
        session, _ = await find_or_create_session(db, subject_id, difficulty)
        participant, created = await join_session(db, session, user)
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageError("Could not join the waiting room. Please try again.") from e

    if created:
        profile = await get_profile(db, user.id)
        row = participant_row(participant, username=profile.username if profile else None)
        await publish_change(get_redis(), ChangeEvent.participant("insert", session.id, row))

    if session.status == "waiting":
        waiting_rooms.ensure(session.id)
    return await _view(db, session)


@router.get("/sessions/{session_id}", response_model=WaitingRoomResponse)
async def get_waiting_room(
    session_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> WaitingRoomResponse:
    session = await db.get(GameSession, session_id)
    if session is None:
        raise NotFoundError("Session not found")
    return await _view(db, session)


@router.delete("/sessions/{session_id}", response_model=LeaveResponse)
async def leave_waiting_room(
    session_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> LeaveResponse:
    """Give up the caller's seat. 409 once the session has started."""
    participant = await leave_session(db, session_id, user.id)
    await publish_change(
        get_redis(),
        ChangeEvent.participant("delete", session_id, {"id": str(participant.id), "session_id": str(session_id)}),
    )
    return LeaveResponse(session_id=str(session_id), left=True)
