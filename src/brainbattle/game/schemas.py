"""Request/response models for the game API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class AnswerRequest(BaseModel):
    answer: str = Field(min_length=1, max_length=1000)


class AnswerResponse(BaseModel):
    correct: bool
    points_earned: int
    correct_answer: str
    score: int


class GameStateResponse(BaseModel):
    session_id: str
    status: str
    running: bool
    phase: str
    question_index: int
    question_count: int
    question: dict[str, Any] | None = None
    time_left: int | None = None
    score: int
    selected_answer: str | None = None
    participants: list[dict[str, Any]]


class ResultsResponse(BaseModel):
    session_id: str
    status: str
    participants: list[dict[str, Any]]
    my_rank: int | None = None
