"""Typed change events for session/participant rows and the reducer that consumes them.

Events are published on ``pubsub:session:{session_id}``; the pub/sub bridge fans
them out to WebSocket subscribers of ``session:{session_id}``.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Literal

import redis.asyncio as aioredis
import structlog
from pydantic import BaseModel
from redis.exceptions import RedisError

logger = structlog.get_logger()

SESSION_CHANNEL_PREFIX = "pubsub:session:"
LEADERBOARD_CHANNEL = "pubsub:leaderboard_update"

ChangeKind = Literal["insert", "update", "delete"]
EventType = Literal["change", "session_starting", "session_in_progress", "session_completed"]


class ChangeEvent(BaseModel):
    """A row change (``type='change'``) or a session-level lifecycle event."""

    type: EventType = "change"
    event: ChangeKind | None = None
    table: str | None = None
    session_id: uuid.UUID
    row: dict[str, Any] | None = None

    @property
    def channel(self) -> str:
        return f"{SESSION_CHANNEL_PREFIX}{self.session_id}"

    @classmethod
    def participant(cls, kind: ChangeKind, session_id: uuid.UUID, row: dict[str, Any]) -> ChangeEvent:
        return cls(event=kind, table="game_participants", session_id=session_id, row=row)

    @classmethod
    def lifecycle(cls, event_type: EventType, session_id: uuid.UUID, **row: Any) -> ChangeEvent:  # noqa: ANN401
        return cls(type=event_type, table="game_sessions", session_id=session_id, row=row or None)


async def publish_change(redis: aioredis.Redis, event: ChangeEvent) -> None:
    """Publish to Redis. Failures are logged; subscribers re-sync from the REST view."""
    try:
        await redis.publish(event.channel, event.model_dump_json())
    except RedisError:
        logger.warning("change_publish_failed", channel=event.channel, type=event.type)


async def publish_leaderboard_update(redis: aioredis.Redis, user_id: uuid.UUID, total_points: int) -> None:
    try:
        await redis.publish(
            LEADERBOARD_CHANNEL,
            json.dumps({"user_id": str(user_id), "total_points": total_points}),
        )
    except RedisError:
        logger.warning("change_publish_failed", channel=LEADERBOARD_CHANNEL)


_STATUS_BY_TYPE = {
    "session_starting": "starting",
    "session_in_progress": "in_progress",
    "session_completed": "completed",
}


@dataclass
class SessionView:
    """Reference reducer for consumers of a session's event stream.

    The service only publishes events; WebSocket clients (and the test suite)
    fold them. Seed it once from the REST waiting-room view, then ``apply``
    every event instead of re-fetching the participant list.
    """

    session_id: uuid.UUID
    status: str = "waiting"
    participants: dict[str, dict[str, Any]] = field(default_factory=dict)

    def apply(self, event: ChangeEvent) -> SessionView:
        if event.session_id != self.session_id:
            return self

        if event.type != "change":
            self.status = _STATUS_BY_TYPE.get(event.type, self.status)
            return self

        row = event.row or {}
        if event.table == "game_sessions":
            self.status = row.get("status", self.status)
            return self

        participant_id = row.get("id")
        if participant_id is None:
            return self
        key = str(participant_id)
        if event.event == "delete":
            self.participants.pop(key, None)
        elif event.event == "insert":
            self.participants[key] = dict(row)
        else:
            self.participants[key] = {**self.participants.get(key, {}), **row}
        return self

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    def ranked(self) -> list[dict[str, Any]]:
        """Participants by score, highest first (stable for ties)."""
        return sorted(self.participants.values(), key=lambda p: p.get("score", 0), reverse=True)
