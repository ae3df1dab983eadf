"""Tests for the Redis pub/sub to WebSocket bridge."""

from __future__ import annotations

import asyncio
import json
import uuid
from unittest.mock import AsyncMock

import pytest

from brainbattle.realtime.bridge import PubSubBridge, resolve_ws_channel
from brainbattle.realtime.events import ChangeEvent, publish_change, publish_leaderboard_update
from brainbattle.realtime.manager import ConnectionManager, session_channel

SESSION_ID = uuid.UUID("6f1c2a52-4f7e-4a43-8c1e-0d8b3f6c9a10")


class TestChannelMapping:
    def test_leaderboard(self):
        assert resolve_ws_channel("pubsub:leaderboard_update") == "leaderboard"

    def test_session(self):
        assert resolve_ws_channel(f"pubsub:session:{SESSION_ID}") == f"session:{SESSION_ID}"

    def test_unknown(self):
        assert resolve_ws_channel("pubsub:share_submitted") is None


@pytest.mark.asyncio
class TestDispatch:
    async def test_dispatch_forwards_json(self):
        connections = AsyncMock(spec=ConnectionManager)
        connections.broadcast_to_channel.return_value = 2
        bridge = PubSubBridge(AsyncMock(), connections)

        sent = await bridge.dispatch(f"pubsub:session:{SESSION_ID}", json.dumps({"type": "session_starting"}))
        assert sent == 2
        connections.broadcast_to_channel.assert_awaited_once_with(
            session_channel(SESSION_ID), {"type": "session_starting"},
        )

    async def test_dispatch_accepts_bytes(self):
        connections = AsyncMock(spec=ConnectionManager)
        connections.broadcast_to_channel.return_value = 1
        bridge = PubSubBridge(AsyncMock(), connections)
        assert await bridge.dispatch("pubsub:leaderboard_update", b'{"total_points": 5}') == 1

    async def test_invalid_json_dropped(self):
        connections = AsyncMock(spec=ConnectionManager)
        bridge = PubSubBridge(AsyncMock(), connections)
        assert await bridge.dispatch("pubsub:leaderboard_update", "not json") == 0
        connections.broadcast_to_channel.assert_not_awaited()

    async def test_unknown_channel_dropped(self):
        connections = AsyncMock(spec=ConnectionManager)
        bridge = PubSubBridge(AsyncMock(), connections)
        assert await bridge.dispatch("other", "{}") == 0


@pytest.mark.asyncio
class TestBridgeLifecycle:
    async def test_bridge_forwards_published_events(self, redis_client):
        """Events published to Redis reach WebSocket subscribers of the mapped channel."""
        connections = ConnectionManager()
        ws = AsyncMock()
        await connections.connect(ws, "conn-1", user_id=uuid.uuid4())
        await connections.subscribe("conn-1", session_channel(SESSION_ID))
        await connections.subscribe("conn-1", "leaderboard")

        bridge = PubSubBridge(redis_client, connections)
        task = asyncio.create_task(bridge.start())
        try:
            await asyncio.sleep(0.2)  # let the subscriptions land
            await publish_change(
                redis_client, ChangeEvent.lifecycle("session_completed", SESSION_ID, status="completed"),
            )
            await publish_leaderboard_update(redis_client, uuid.uuid4(), 300)

            for _ in range(100):
                if ws.send_text.await_count >= 2:
                    break
                await asyncio.sleep(0.05)
        finally:
            await bridge.stop()
            await asyncio.wait_for(task, timeout=5)

        channels = [json.loads(call.args[0])["channel"] for call in ws.send_text.await_args_list]
        assert channels == [session_channel(SESSION_ID), "leaderboard"]
