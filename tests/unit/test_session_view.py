"""Unit tests for change events and the client-side session reducer."""

from __future__ import annotations

import json
import uuid

import pytest

from brainbattle.realtime.events import LEADERBOARD_CHANNEL, ChangeEvent, SessionView, publish_change, publish_leaderboard_update

SESSION_ID = uuid.UUID("6f1c2a52-4f7e-4a43-8c1e-0d8b3f6c9a10")


def _row(pid: str, **fields):
    return {"id": pid, "session_id": str(SESSION_ID), "score": 0, **fields}


class TestChangeEvent:
    def test_participant_event_channel(self):
        event = ChangeEvent.participant("insert", SESSION_ID, _row("p1"))
        assert event.channel == f"pubsub:session:{SESSION_ID}"
        assert event.type == "change"
        assert event.table == "game_participants"

    def test_lifecycle_event(self):
        event = ChangeEvent.lifecycle("session_starting", SESSION_ID, status="starting", get_ready_seconds=3)
        assert event.type == "session_starting"
        assert event.row == {"status": "starting", "get_ready_seconds": 3}

    def test_serializes_to_json(self):
        event = ChangeEvent.participant("update", SESSION_ID, _row("p1", score=175))
        data = json.loads(event.model_dump_json())
        assert data["session_id"] == str(SESSION_ID)
        assert data["row"]["score"] == 175


class TestSessionView:
    def test_insert_update_delete(self):
        view = SessionView(SESSION_ID)
        view.apply(ChangeEvent.participant("insert", SESSION_ID, _row("p1", display_name="Ann")))
        view.apply(ChangeEvent.participant("insert", SESSION_ID, _row("p2", display_name="Bob")))
        assert view.participant_count == 2

        view.apply(ChangeEvent.participant("update", SESSION_ID, {"id": "p2", "score": 180}))
        assert view.participants["p2"] == _row("p2", display_name="Bob", score=180)

        view.apply(ChangeEvent.participant("delete", SESSION_ID, {"id": "p1"}))
        assert list(view.participants) == ["p2"]

    def test_ranked_by_score(self):
        view = SessionView(SESSION_ID)
        for pid, score in (("a", 100), ("b", 300), ("c", 200)):
            view.apply(ChangeEvent.participant("insert", SESSION_ID, _row(pid, score=score)))
        assert [p["id"] for p in view.ranked()] == ["b", "c", "a"]

    def test_lifecycle_events_move_status(self):
        view = SessionView(SESSION_ID)
        view.apply(ChangeEvent.lifecycle("session_starting", SESSION_ID))
        assert view.status == "starting"
        view.apply(ChangeEvent.lifecycle("session_in_progress", SESSION_ID))
        assert view.status == "in_progress"
        view.apply(ChangeEvent.lifecycle("session_completed", SESSION_ID))
        assert view.status == "completed"

    def test_other_session_ignored(self):
        view = SessionView(SESSION_ID)
        view.apply(ChangeEvent.participant("insert", uuid.uuid4(), _row("x")))
        assert view.participant_count == 0

    def test_delete_of_unknown_row_is_noop(self):
        view = SessionView(SESSION_ID)
        view.apply(ChangeEvent.participant("delete", SESSION_ID, {"id": "ghost"}))
        assert view.participant_count == 0


@pytest.mark.asyncio
class TestPublish:
    async def test_publish_change_reaches_subscriber(self, redis_client):
        pubsub = redis_client.pubsub()
        await pubsub.subscribe(f"pubsub:session:{SESSION_ID}")
        await pubsub.get_message(timeout=1.0)  # subscribe confirmation

        await publish_change(redis_client, ChangeEvent.participant("insert", SESSION_ID, _row("p1")))
        message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
        assert message is not None
        assert json.loads(message["data"])["row"]["id"] == "p1"
        await pubsub.aclose()

    async def test_publish_leaderboard_update(self, redis_client):
        pubsub = redis_client.pubsub()
        await pubsub.subscribe(LEADERBOARD_CHANNEL)
        await pubsub.get_message(timeout=1.0)

        user_id = uuid.uuid4()
        await publish_leaderboard_update(redis_client, user_id, 875)
        message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
        assert json.loads(message["data"]) == {"user_id": str(user_id), "total_points": 875}
        await pubsub.aclose()
