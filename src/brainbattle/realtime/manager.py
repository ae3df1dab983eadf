"""WebSocket connection manager.

Tracks active WebSocket connections and their channel subscriptions and fans
out messages to subscribed clients. Channels are ``leaderboard`` or
``session:<uuid>``.
"""

from __future__ import annotations

import json
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass, field

import structlog
from fastapi import WebSocket

logger = structlog.get_logger()

LEADERBOARD_WS_CHANNEL = "leaderboard"
SESSION_WS_PREFIX = "session:"


def is_valid_channel(channel: str) -> bool:
    if channel == LEADERBOARD_WS_CHANNEL:
        return True
    if not channel.startswith(SESSION_WS_PREFIX):
        return False
    try:
        uuid.UUID(channel[len(SESSION_WS_PREFIX):])
    except ValueError:
        return False
    return True


def session_channel(session_id: uuid.UUID | str) -> str:
    return f"{SESSION_WS_PREFIX}{session_id}"


@dataclass
class ClientConnection:
    """A single WebSocket client."""

    websocket: WebSocket
    user_id: uuid.UUID
    subscriptions: set[str] = field(default_factory=set)
    connected_at: float = field(default_factory=time.time)
    messages_sent: int = 0


class ConnectionManager:
    """Manages all active WebSocket connections. Single event loop, no locking."""

    def __init__(self) -> None:
        self._connections: dict[str, ClientConnection] = {}  # conn_id -> client
        self._channels: dict[str, set[str]] = defaultdict(set)  # channel -> {conn_ids}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket, conn_id: str, user_id: uuid.UUID) -> None:
        await websocket.accept()
        self._connections[conn_id] = ClientConnection(websocket=websocket, user_id=user_id)
        logger.info("ws_connected", conn_id=conn_id, user_id=str(user_id))

    async def disconnect(self, conn_id: str) -> None:
        """Remove a connection and its subscriptions."""
        client = self._connections.pop(conn_id, None)
        if client is None:
            return
        for channel in client.subscriptions:
            self._channels[channel].discard(conn_id)
            if not self._channels[channel]:
                del self._channels[channel]
        logger.info("ws_disconnected", conn_id=conn_id, user_id=str(client.user_id))

    async def subscribe(self, conn_id: str, channel: str) -> bool:
        """Subscribe a connection to a channel. Returns False if invalid."""
        client = self._connections.get(conn_id)
        if client is None or not is_valid_channel(channel):
            return False
        client.subscriptions.add(channel)
        self._channels[channel].add(conn_id)
        logger.debug("ws_subscribed", conn_id=conn_id, channel=channel)
        return True

    async def unsubscribe(self, conn_id: str, channel: str) -> bool:
        client = self._connections.get(conn_id)
        if client is None:
            return False
        client.subscriptions.discard(channel)
        self._channels[channel].discard(conn_id)
        return True

    async def broadcast_to_channel(self, channel: str, message: dict) -> int:
        """Send a message to all clients subscribed to a channel.

        Returns the number of clients that received the message.
        """
        conn_ids = list(self._channels.get(channel, set()))
        if not conn_ids:
            return 0

        payload = json.dumps({"channel": channel, "data": message}, default=str)
        sent = 0
        failed: list[str] = []

        for conn_id in conn_ids:
            client = self._connections.get(conn_id)
            if client is None:
                failed.append(conn_id)
                continue
            try:
                await client.websocket.send_text(payload)
            except Exception:  # noqa: BLE001
                failed.append(conn_id)
                continue
            client.messages_sent += 1
            sent += 1

        for conn_id in failed:
            await self.disconnect(conn_id)

        return sent

    def get_stats(self) -> dict:
        return {
            "total_connections": len(self._connections),
            "channels": {ch: len(conns) for ch, conns in self._channels.items() if conns},
        }


# Global singleton
manager = ConnectionManager()
