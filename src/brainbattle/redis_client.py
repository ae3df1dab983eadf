"""Process-wide Redis client.

Used for pub/sub fan-out, the leaderboard sorted sets, login lockout counters
and rate limiting. Values come back as ``str``.
"""

import redis.asyncio as redis

_client: redis.Redis | None = None


async def init_redis(url: str) -> None:
    global _client  # noqa: PLW0603
    _client = redis.from_url(url, encoding="utf-8", decode_responses=True)  # type: ignore[no-untyped-call]


def set_redis(client: redis.Redis | None) -> None:
    """Install an already-built client (workers and tests)."""
    global _client  # noqa: PLW0603
    _client = client


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis:
    """Current client; also usable as a FastAPI dependency."""
    if _client is None:
        msg = "Redis client is not set up; the app lifespan or worker startup installs it"
        raise RuntimeError(msg)
    return _client
