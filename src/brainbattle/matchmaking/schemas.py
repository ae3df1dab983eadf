"""Response models for the waiting room."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class WaitingRoomResponse(BaseModel):
    session_id: str
    subject_id: str
    difficulty: str
    status: str
    countdown: int | None = None
    cycle: int | None = None
    participants: list[dict[str, Any]]


class LeaveResponse(BaseModel):
    session_id: str
    left: bool
