"""Generation endpoints — AI questions and lessons behind bearer auth.

Bodies are parsed by hand so malformed JSON and schema violations answer 400.
"""

from __future__ import annotations

import json
from typing import Any, TypeVar

import structlog
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.auth.dependencies import get_current_user
from brainbattle.database import get_session
from brainbattle.db.models import User
from brainbattle.errors import RequestValidationFailed, UpstreamError, UpstreamQuotaError
from brainbattle.generation.challenges import generate_questions
from brainbattle.generation.lessons import generate_lesson
from brainbattle.generation.llm import LLMGateway, get_llm_gateway
from brainbattle.generation.schemas import (
    GenerateChallengesRequest,
    GenerateChallengesResponse,
    GenerateLessonRequest,
    GenerateLessonResponse,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["Generation"])

NOT_CONFIGURED_MESSAGE = "LLM API key is not configured"

M = TypeVar("M", bound=BaseModel)


async def _parse_body(request: Request, model: type[M]) -> M:
    try:
        raw = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise RequestValidationFailed("Invalid JSON body") from e
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        details = e.errors(include_url=False, include_context=False, include_input=False)
        raise RequestValidationFailed("Invalid input", details=details) from e


@router.options("/generate-challenges", include_in_schema=False)
@router.options("/generate-lesson", include_in_schema=False)
async def generation_preflight() -> Response:
    return Response(status_code=204)


@router.post("/generate-challenges", responses={200: {"model": GenerateChallengesResponse}})
async def generate_challenges(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    gateway: LLMGateway = Depends(get_llm_gateway),
) -> JSONResponse:
    body = await _parse_body(request, GenerateChallengesRequest)
    if not gateway.configured:
        return JSONResponse(status_code=500, content={"error": NOT_CONFIGURED_MESSAGE, "questions": []})

    try:
        questions = await generate_questions(db, gateway, body.subject_id, body.difficulty, body.count)
    except UpstreamQuotaError as e:
        return JSONResponse(status_code=e.status_code, content={"error": e.message, "questions": []})
    except UpstreamError as e:
        logger.error("upstream_error", endpoint="generate-challenges", user_id=str(user.id), error=e.message)
        return JSONResponse(status_code=500, content={"error": e.message, "questions": []})
    return JSONResponse(content={"questions": questions})


@router.post("/generate-lesson", responses={200: {"model": GenerateLessonResponse}})
async def generate_lesson_endpoint(
    request: Request,
    user: User = Depends(get_current_user),
    gateway: LLMGateway = Depends(get_llm_gateway),
) -> JSONResponse:
    body = await _parse_body(request, GenerateLessonRequest)
    if not gateway.configured:
        return JSONResponse(status_code=500, content={"error": NOT_CONFIGURED_MESSAGE})

    try:
        lesson: dict[str, Any] = await generate_lesson(gateway, body.topic, body.difficulty)
    except UpstreamQuotaError as e:
        return JSONResponse(status_code=e.status_code, content={"error": e.message})
    except UpstreamError as e:
        logger.error("upstream_error", endpoint="generate-lesson", user_id=str(user.id), error=e.message)
        return JSONResponse(status_code=500, content={"error": e.message})
    return JSONResponse(content={"lesson": lesson})
