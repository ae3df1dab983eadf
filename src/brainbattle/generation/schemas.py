"""Request/response models for the generation endpoints."""

from __future__ import annotations

import uuid
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

Difficulty = Literal["basic", "intermediate", "advanced"]


class GenerateChallengesRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject_id: uuid.UUID = Field(alias="subjectId")
    difficulty: Difficulty
    count: StrictInt = Field(5, ge=1, le=10)


class GenerateLessonRequest(BaseModel):
    topic: str = Field(min_length=1, max_length=200)
    difficulty: Difficulty = "basic"

    @field_validator("topic", mode="before")
    @classmethod
    def strip_topic(cls, v: Any) -> Any:  # noqa: ANN401
        return v.strip() if isinstance(v, str) else v


class Question(BaseModel):
    id: str
    question: str
    options: list[str]
    correct_answer: str
    explanation: str = ""


class GenerateChallengesResponse(BaseModel):
    questions: list[Question]


class GenerateLessonResponse(BaseModel):
    lesson: dict[str, Any]
