"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
import time
from collections.abc import AsyncGenerator
from typing import Any

# Settings are read on import of brainbattle.main, so the environment goes first
os.environ.setdefault("BB_LOG_FORMAT", "console")
os.environ.setdefault("BB_LOG_LEVEL", "WARNING")
os.environ["BB_RATE_LIMIT_REQUESTS"] = "10000"
os.environ["BB_ANTHROPIC_API_KEY"] = ""

import fakeredis  # noqa: E402
import fakeredis.aioredis  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from cryptography.hazmat.primitives import serialization  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import rsa  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from brainbattle.config import get_settings  # noqa: E402
from brainbattle.database import close_db, get_engine, get_session_factory, init_db  # noqa: E402
from brainbattle.db.base import Base  # noqa: E402
from brainbattle.db.models import Subject  # noqa: E402
from brainbattle.game.runner import game_runners  # noqa: E402
from brainbattle.generation.llm import get_llm_gateway, set_llm_gateway  # noqa: E402
from brainbattle.main import create_app, seed_reference_data  # noqa: E402
from brainbattle.matchmaking.driver import waiting_rooms  # noqa: E402
from brainbattle.redis_client import set_redis  # noqa: E402


def _ensure_test_keys() -> tuple[str, str]:
    """Generate an RSA key pair for JWT signing if the configured one is missing."""
    get_settings.cache_clear()
    settings = get_settings()
    private_path = settings.jwt_private_key_path
    public_path = settings.jwt_public_key_path

    if os.path.exists(private_path) and os.path.exists(public_path):
        return private_path, public_path

    tmpdir = tempfile.mkdtemp(prefix="bb_test_keys_")
    private_path = os.path.join(tmpdir, "jwt_private.pem")
    public_path = os.path.join(tmpdir, "jwt_public.pem")

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    with open(private_path, "wb") as f:
        f.write(key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ))
    with open(public_path, "wb") as f:
        f.write(key.public_key().public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        ))

    os.environ["BB_JWT_PRIVATE_KEY_PATH"] = private_path
    os.environ["BB_JWT_PUBLIC_KEY_PATH"] = public_path

    # Clear cached settings and JWT keys
    get_settings.cache_clear()
    from brainbattle.auth.jwt import reset_keys
    reset_keys()

    return private_path, public_path


_ensure_test_keys()


# ---------------------------------------------------------------------------
# Deterministic clocks
# ---------------------------------------------------------------------------


async def instant_sleep(_seconds: float) -> None:
    """Drop-in for asyncio.sleep that only yields to the loop."""
    await asyncio.sleep(0)


class ManualClock:
    """Stand-in for asyncio.sleep whose time only moves on ``advance()``.

    ``advance`` moves one second at a time and waits until every task it woke
    is either asleep again or finished, so game loops stay in lockstep.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._waiters: list[tuple[float, asyncio.Future, asyncio.Task | None]] = []

    async def sleep(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self._waiters.append((self.now + seconds, future, asyncio.current_task()))
        await future

    def _parked(self, task: asyncio.Task | None) -> bool:
        if task is None or task.done():
            return True
        return any(t is task and not f.done() for _, f, t in self._waiters)

    async def advance(self, seconds: int = 1) -> None:
        for _ in range(seconds):
            self.now += 1
            due = [w for w in self._waiters if w[0] <= self.now]
            self._waiters = [w for w in self._waiters if w[0] > self.now]
            for _, future, _ in due:
                if not future.done():
                    future.set_result(None)
            woken = [task for _, _, task in due]
            deadline = time.monotonic() + 5
            while not all(self._parked(t) for t in woken) and time.monotonic() < deadline:
                await asyncio.sleep(0.005)


@pytest.fixture(autouse=True)
def _frozen_timers():
    """Background timers never fire unless a test drives them."""
    waiting_rooms.sleep = ManualClock().sleep
    game_runners.sleep = ManualClock().sleep
    yield
    waiting_rooms.sleep = asyncio.sleep
    game_runners.sleep = asyncio.sleep


@pytest.fixture
def clock() -> ManualClock:
    """A manual clock installed on the game runners."""
    manual = ManualClock()
    game_runners.sleep = manual.sleep
    return manual


# ---------------------------------------------------------------------------
# LLM gateway stub
# ---------------------------------------------------------------------------

STUB_QUESTIONS: list[dict[str, Any]] = [
    {
        "id": str(i),
        "question": f"Stub question {i}?",
        "options": [f"Right {i}", f"Wrong {i}a", f"Wrong {i}b", f"Wrong {i}c"],
        "correct_answer": f"Right {i}",
        "explanation": f"Because {i}.",
    }
    for i in range(1, 6)
]


class StubGateway:
    """Records prompts and returns ``reply`` (or raises ``error``)."""

    def __init__(self) -> None:
        self.configured = True
        self.reply = "```json\n" + json.dumps({"questions": STUB_QUESTIONS}) + "\n```"
        self.error: Exception | None = None
        self.calls: list[dict[str, Any]] = []

    async def complete(self, system: str, prompt: str, *, temperature: float | None = None) -> str:
        self.calls.append({"system": system, "prompt": prompt, "temperature": temperature})
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def llm_stub() -> StubGateway:
    stub = StubGateway()
    set_llm_gateway(stub)  # type: ignore[arg-type]
    yield stub
    set_llm_gateway(None)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def redis_client() -> AsyncGenerator[fakeredis.aioredis.FakeRedis, None]:
    """In-memory Redis installed as the app's client."""
    client = fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    set_redis(client)
    yield client
    set_redis(None)
    await client.aclose()


@pytest_asyncio.fixture
async def database(tmp_path, redis_client) -> AsyncGenerator[None, None]:
    """Fresh SQLite schema with seeded subjects and badges."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'brainbattle.db'}")
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await seed_reference_data()

    yield

    # Background loops write through the engine; stop them before disposing it
    await waiting_rooms.cancel_all()
    await game_runners.cancel_all()
    await close_db()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for test setup and assertions."""
    async with get_session_factory()() as session:
        yield session


@pytest_asyncio.fixture
async def math_subject(db_session: AsyncSession) -> Subject:
    result = await db_session.execute(select(Subject).where(Subject.name == "Math"))
    return result.scalar_one()


# ---------------------------------------------------------------------------
# HTTP clients
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(database, llm_stub: StubGateway) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against a fresh app."""
    app = create_app()
    app.dependency_overrides[get_llm_gateway] = lambda: llm_stub
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def register_player(
    client: AsyncClient,
    email: str = "player@example.com",
    username: str = "player1",
    password: str = "SecureP@ss1",
) -> dict[str, Any]:
    """Register via the API and return credentials, tokens and auth headers."""
    response = await client.post("/api/v1/auth/register", json={
        "email": email,
        "password": password,
        "username": username,
    })
    assert response.status_code == 200, response.text
    data = response.json()
    return {
        "email": email,
        "password": password,
        "username": username,
        "user_id": data["user"]["id"],
        "access_token": data["access_token"],
        "refresh_token": data["refresh_token"],
        "headers": {"Authorization": f"Bearer {data['access_token']}"},
    }


@pytest_asyncio.fixture
async def player(client: AsyncClient) -> dict[str, Any]:
    return await register_player(client)


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, player: dict[str, Any]) -> AsyncClient:
    """Client carrying the registered player's bearer token."""
    client.headers["Authorization"] = player["headers"]["Authorization"]
    return client
