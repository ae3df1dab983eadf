"""Subjects, badges and profile endpoints."""

from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.catalog.seed import BADGE_SEED_DATA, SUBJECT_SEED_DATA, seed_badges, seed_subjects
from brainbattle.catalog.service import get_progress, record_progress
from brainbattle.db.models import Subject
from tests.conftest import register_player

pytestmark = pytest.mark.asyncio


class TestSubjects:
    async def test_list_subjects(self, client: AsyncClient):
        response = await client.get("/api/v1/subjects")
        assert response.status_code == 200
        names = [s["name"] for s in response.json()]
        assert sorted(names) == sorted(s["name"] for s in SUBJECT_SEED_DATA)

    async def test_subject_detail_zero_filled_progress(self, authed_client: AsyncClient, math_subject: Subject):
        response = await authed_client.get(f"/api/v1/subjects/{math_subject.id}")
        assert response.status_code == 200
        data = response.json()
        assert data["subject"]["name"] == "Math"
        assert data["progress"] == [
            {"difficulty": "basic", "completed": False, "wins": 0},
            {"difficulty": "intermediate", "completed": False, "wins": 0},
            {"difficulty": "advanced", "completed": False, "wins": 0},
        ]

    async def test_subject_detail_requires_auth(self, client: AsyncClient, math_subject: Subject):
        response = await client.get(f"/api/v1/subjects/{math_subject.id}")
        assert response.status_code == 401

    async def test_unknown_subject(self, authed_client: AsyncClient):
        response = await authed_client.get(f"/api/v1/subjects/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json() == {"error": "Subject not found"}


class TestSeeding:
    async def test_seeding_is_idempotent(self, db_session: AsyncSession):
        assert await seed_subjects(db_session) == 0
        assert await seed_badges(db_session) == 0

    async def test_badges_listed(self, client: AsyncClient):
        response = await client.get("/api/v1/badges")
        assert response.status_code == 200
        assert len(response.json()) == len(BADGE_SEED_DATA)


class TestProgress:
    async def test_record_progress_counts_wins(
        self, client: AsyncClient, player: dict, db_session: AsyncSession, math_subject: Subject,
    ):
        user_id = uuid.UUID(player["user_id"])
        await record_progress(db_session, user_id, math_subject.id, "basic", won=True)
        await record_progress(db_session, user_id, math_subject.id, "basic", won=False)
        await record_progress(db_session, user_id, math_subject.id, "advanced", won=False)
        await db_session.commit()

        progress = {p["difficulty"]: p for p in await get_progress(db_session, user_id, math_subject.id)}
        assert progress["basic"] == {"difficulty": "basic", "completed": True, "wins": 1}
        assert progress["intermediate"]["completed"] is False
        assert progress["advanced"] == {"difficulty": "advanced", "completed": True, "wins": 0}


class TestProfile:
    async def test_update_username_and_avatar(self, authed_client: AsyncClient):
        response = await authed_client.patch("/api/v1/users/me", json={
            "username": "quizzer",
            "avatar_url": "https://example.com/a.png",
        })
        assert response.status_code == 200
        assert response.json()["username"] == "quizzer"
        assert response.json()["avatar_url"] == "https://example.com/a.png"

    async def test_username_conflict(self, client: AsyncClient, player: dict):
        other = await register_player(client, email="other@example.com", username="other")
        response = await client.patch(
            "/api/v1/users/me", json={"username": player["username"]}, headers=other["headers"],
        )
        assert response.status_code == 409

    async def test_my_badges_empty(self, authed_client: AsyncClient):
        response = await authed_client.get("/api/v1/users/me/badges")
        assert response.status_code == 200
        assert response.json() == []
