"""Bridges Redis pub/sub to WebSocket clients.

Pattern-subscribes to per-session change channels and the leaderboard update
channel, then fans messages out to subscribed WebSocket clients.
"""

from __future__ import annotations

import json

import redis.asyncio as aioredis
import structlog

from brainbattle.realtime.events import LEADERBOARD_CHANNEL, SESSION_CHANNEL_PREFIX
from brainbattle.realtime.manager import LEADERBOARD_WS_CHANNEL, ConnectionManager, manager, session_channel

logger = structlog.get_logger()

SESSION_PATTERN = f"{SESSION_CHANNEL_PREFIX}*"


def resolve_ws_channel(redis_channel: str) -> str | None:
    """Map a Redis channel onto the WebSocket channel its messages go to."""
    if redis_channel == LEADERBOARD_CHANNEL:
        return LEADERBOARD_WS_CHANNEL
    if redis_channel.startswith(SESSION_CHANNEL_PREFIX):
        return session_channel(redis_channel[len(SESSION_CHANNEL_PREFIX):])
    return None


class PubSubBridge:
    """Subscribes to Redis pub/sub and pushes messages to WebSocket clients."""

    def __init__(self, redis_client: aioredis.Redis, connections: ConnectionManager | None = None) -> None:
        self.redis = redis_client
        self.connections = connections or manager
        self._running = False

    async def dispatch(self, redis_channel: str, data: str | bytes) -> int:
        """Forward one pub/sub message. Returns the number of recipients."""
        ws_channel = resolve_ws_channel(redis_channel)
        if ws_channel is None:
            return 0
        try:
            if isinstance(data, bytes):
                data = data.decode()
            payload = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("pubsub_invalid_message", channel=redis_channel)
            return 0
        sent = await self.connections.broadcast_to_channel(ws_channel, payload)
        if sent > 0:
            logger.debug("pubsub_broadcast", channel=ws_channel, recipients=sent)
        return sent

    async def start(self) -> None:
        """Listen until stopped or cancelled."""
        self._running = True
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(LEADERBOARD_CHANNEL)
        await pubsub.psubscribe(SESSION_PATTERN)
        logger.info("pubsub_bridge_started", channels=[LEADERBOARD_CHANNEL], patterns=[SESSION_PATTERN])

        try:
            while self._running:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message is None:
                    continue
                redis_channel = message.get("channel", "")
                if isinstance(redis_channel, bytes):
                    redis_channel = redis_channel.decode()
                await self.dispatch(redis_channel, message.get("data", b""))
        finally:
            await pubsub.unsubscribe()
            await pubsub.punsubscribe()
            await pubsub.aclose()
            logger.info("pubsub_bridge_stopped")

    async def stop(self) -> None:
        """Signal the bridge to stop."""
        self._running = False
