"""POST /api/v1/generate-challenges and /api/v1/generate-lesson."""

from __future__ import annotations

import json
import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.db.models import Challenge, Subject
from brainbattle.errors import UpstreamError, UpstreamQuotaError
from brainbattle.generation.llm import CREDITS_EXHAUSTED_MESSAGE, RATE_LIMIT_MESSAGE
from tests.conftest import STUB_QUESTIONS, StubGateway

pytestmark = pytest.mark.asyncio

LESSON = {
    "title": "Fractions",
    "slides": [
        {"slide_number": 1, "type": "content", "title": "Parts of a whole", "content": "A fraction is a part.",
         "example": "Half a pizza", "visual_description": "A pizza", "key_points": ["numerator", "denominator"]},
        {"slide_number": 2, "type": "content", "title": "Adding", "content": "Common denominators first.",
         "example": "1/4 + 1/4", "visual_description": "Bars", "key_points": ["same bottom"]},
        {"slide_number": 3, "type": "quiz", "title": "Quick Check", "question": "What is 1/2 + 1/2?",
         "options": ["1", "2", "1/4", "0"], "correct_answer": "1", "explanation": "Two halves make one."},
    ],
}


class TestGenerateChallenges:
    async def test_requires_auth(self, client: AsyncClient, math_subject: Subject, llm_stub: StubGateway):
        response = await client.post("/api/v1/generate-challenges", json={
            "subjectId": str(math_subject.id), "difficulty": "basic",
        })
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized - missing or invalid token"}
        assert llm_stub.calls == []

    async def test_generates_and_stores_questions(
        self, authed_client: AsyncClient, math_subject: Subject, llm_stub: StubGateway, db_session: AsyncSession,
    ):
        response = await authed_client.post("/api/v1/generate-challenges", json={
            "subjectId": str(math_subject.id), "difficulty": "intermediate", "count": 5,
        })
        assert response.status_code == 200
        assert response.json() == {"questions": STUB_QUESTIONS}
        assert "Math" in llm_stub.calls[0]["prompt"]
        assert "middle school" in llm_stub.calls[0]["prompt"]

        stored = await db_session.scalar(
            select(func.count()).select_from(Challenge).where(Challenge.subject_id == math_subject.id)
        )
        assert stored == 5

    async def test_count_truncates(self, authed_client: AsyncClient, math_subject: Subject):
        response = await authed_client.post("/api/v1/generate-challenges", json={
            "subjectId": str(math_subject.id), "difficulty": "basic", "count": 3,
        })
        assert response.status_code == 200
        assert len(response.json()["questions"]) == 3

    async def test_unparseable_reply_falls_back(
        self, authed_client: AsyncClient, math_subject: Subject, llm_stub: StubGateway,
    ):
        llm_stub.reply = "Sorry, I cannot produce JSON today."
        response = await authed_client.post("/api/v1/generate-challenges", json={
            "subjectId": str(math_subject.id), "difficulty": "basic",
        })
        assert response.status_code == 200
        questions = response.json()["questions"]
        assert len(questions) == 5
        assert all("Math" in q["question"] for q in questions)

    async def test_unknown_subject_uses_general_knowledge(self, authed_client: AsyncClient, llm_stub: StubGateway):
        llm_stub.reply = "not json"
        response = await authed_client.post("/api/v1/generate-challenges", json={
            "subjectId": str(uuid.uuid4()), "difficulty": "advanced",
        })
        assert response.status_code == 200
        assert "General Knowledge" in response.json()["questions"][0]["question"]

    async def test_malformed_items_fall_back(
        self, authed_client: AsyncClient, math_subject: Subject, llm_stub: StubGateway,
    ):
        llm_stub.reply = json.dumps({"questions": [{"question": "Only two options?", "options": ["a", "b"]}]})
        response = await authed_client.post("/api/v1/generate-challenges", json={
            "subjectId": str(math_subject.id), "difficulty": "basic",
        })
        assert response.status_code == 200
        assert response.json()["questions"][0]["correct_answer"] == "Option A"

    @pytest.mark.parametrize("body", [
        {"difficulty": "basic"},
        {"subjectId": "not-a-uuid", "difficulty": "basic"},
        {"subjectId": "00000000-0000-0000-0000-000000000001", "difficulty": "expert"},
        {"subjectId": "00000000-0000-0000-0000-000000000001", "difficulty": "basic", "count": 0},
        {"subjectId": "00000000-0000-0000-0000-000000000001", "difficulty": "basic", "count": 11},
        {"subjectId": "00000000-0000-0000-0000-000000000001", "difficulty": "basic", "count": "5"},
    ])
    async def test_invalid_input_never_reaches_gateway(
        self, authed_client: AsyncClient, llm_stub: StubGateway, body: dict,
    ):
        response = await authed_client.post("/api/v1/generate-challenges", json=body)
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid input"
        assert "details" in response.json()
        assert llm_stub.calls == []

    async def test_invalid_json_body(self, authed_client: AsyncClient, llm_stub: StubGateway):
        response = await authed_client.post(
            "/api/v1/generate-challenges", content=b"{broken", headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON body"}
        assert llm_stub.calls == []

    async def test_gateway_not_configured(
        self, authed_client: AsyncClient, math_subject: Subject, llm_stub: StubGateway,
    ):
        llm_stub.configured = False
        response = await authed_client.post("/api/v1/generate-challenges", json={
            "subjectId": str(math_subject.id), "difficulty": "basic",
        })
        assert response.status_code == 500
        assert response.json() == {"error": "LLM API key is not configured", "questions": []}
        assert llm_stub.calls == []

    @pytest.mark.parametrize(("status", "message"), [(429, RATE_LIMIT_MESSAGE), (402, CREDITS_EXHAUSTED_MESSAGE)])
    async def test_quota_errors_pass_through(
        self, authed_client: AsyncClient, math_subject: Subject, llm_stub: StubGateway, status: int, message: str,
    ):
        llm_stub.error = UpstreamQuotaError(message, status_code=status)
        response = await authed_client.post("/api/v1/generate-challenges", json={
            "subjectId": str(math_subject.id), "difficulty": "basic",
        })
        assert response.status_code == status
        assert response.json() == {"error": message, "questions": []}

    async def test_upstream_error(self, authed_client: AsyncClient, math_subject: Subject, llm_stub: StubGateway):
        llm_stub.error = UpstreamError("AI gateway error: 503")
        response = await authed_client.post("/api/v1/generate-challenges", json={
            "subjectId": str(math_subject.id), "difficulty": "basic",
        })
        assert response.status_code == 500
        assert response.json() == {"error": "AI gateway error: 503", "questions": []}

    async def test_preflight(self, client: AsyncClient):
        response = await client.options("/api/v1/generate-challenges")
        assert response.status_code == 204


class TestGenerateLesson:
    async def test_generates_lesson(self, authed_client: AsyncClient, llm_stub: StubGateway):
        llm_stub.reply = "```json\n" + json.dumps(LESSON) + "\n```"
        response = await authed_client.post("/api/v1/generate-lesson", json={"topic": "  Fractions  "})
        assert response.status_code == 200
        lesson = response.json()["lesson"]
        assert lesson["title"] == "Fractions"
        assert [s["type"] for s in lesson["slides"]] == ["content", "content", "quiz"]
        assert "basic level" in llm_stub.calls[0]["system"]
        assert llm_stub.calls[0]["prompt"].endswith("about: Fractions")

    async def test_unparseable_lesson_falls_back(self, authed_client: AsyncClient, llm_stub: StubGateway):
        llm_stub.reply = "Fractions are parts of a whole. " * 40
        response = await authed_client.post("/api/v1/generate-lesson", json={
            "topic": "Fractions", "difficulty": "advanced",
        })
        assert response.status_code == 200
        lesson = response.json()["lesson"]
        assert len(lesson["slides"]) == 1
        assert lesson["slides"][0]["content"] == llm_stub.reply[:500]

    @pytest.mark.parametrize("body", [
        {},
        {"topic": ""},
        {"topic": "   "},
        {"topic": "x" * 201},
        {"topic": "Fractions", "difficulty": "expert"},
    ])
    async def test_invalid_input(self, authed_client: AsyncClient, llm_stub: StubGateway, body: dict):
        response = await authed_client.post("/api/v1/generate-lesson", json=body)
        assert response.status_code == 400
        assert llm_stub.calls == []

    async def test_rate_limited(self, authed_client: AsyncClient, llm_stub: StubGateway):
        llm_stub.error = UpstreamQuotaError(RATE_LIMIT_MESSAGE, status_code=429)
        response = await authed_client.post("/api/v1/generate-lesson", json={"topic": "Fractions"})
        assert response.status_code == 429
        assert response.json() == {"error": RATE_LIMIT_MESSAGE}

    async def test_empty_reply(self, authed_client: AsyncClient, llm_stub: StubGateway):
        llm_stub.error = UpstreamError("No content in AI response")
        response = await authed_client.post("/api/v1/generate-lesson", json={"topic": "Fractions"})
        assert response.status_code == 500
        assert response.json() == {"error": "No content in AI response"}

    async def test_requires_auth(self, client: AsyncClient):
        response = await client.post("/api/v1/generate-lesson", json={"topic": "Fractions"})
        assert response.status_code == 401
