"""Waiting-room driver: the single host that decides when a session starts.

Exactly one driver task runs per waiting session in this process. It feeds the
``WaitingRoom`` state machine one tick per second, re-reads the authoritative
participant count when the countdown ends, and performs the start through a
compare-and-swap on the session status.
"""

from __future__ import annotations

import asyncio
import random
import uuid
from collections.abc import Awaitable, Callable
from functools import partial

import structlog

from brainbattle.config import Settings, get_settings
from brainbattle.database import get_session_factory
from brainbattle.db.models import GameSession
from brainbattle.game.lifecycle import transition_session
from brainbattle.game.service import ensure_session_questions
from brainbattle.matchmaking.service import count_participants, inject_ai_opponents, participant_row
from brainbattle.matchmaking.waiting_room import Decision, RoomState, WaitingRoom
from brainbattle.realtime.events import ChangeEvent, publish_change
from brainbattle.redis_client import get_redis

logger = structlog.get_logger()

Sleep = Callable[[float], Awaitable[None]]


class WaitingRoomDriver:
    def __init__(
        self,
        session_id: uuid.UUID,
        *,
        settings: Settings,
        sleep: Sleep,
        rng: random.Random,
    ) -> None:
        self.session_id = session_id
        self.settings = settings
        self.room = WaitingRoom(
            countdown_seconds=settings.waiting_countdown_seconds,
            max_cycles=settings.max_wait_cycles,
        )
        self._sleep = sleep
        self._rng = rng
        self.started = False

    async def run(self) -> None:
        factory = get_session_factory()
        while self.room.state is RoomState.SEARCHING:
            await self._sleep(1)
            if not self.room.tick():
                continue

            async with factory() as db:
                session = await db.get(GameSession, self.session_id)
                if session is None or session.status != "waiting":
                    logger.info("waiting_room_superseded", session_id=str(self.session_id))
                    return
                count = await count_participants(db, self.session_id)

            if count == 0:
                # Everyone left; the session stays joinable and the next join gets a new driver
                logger.info("waiting_room_abandoned", session_id=str(self.session_id))
                return

            decision = self.room.decide(count)
            logger.info(
                "waiting_room_decision",
                session_id=str(self.session_id),
                decision=decision.value,
                cycle=self.room.cycle,
                participants=count,
            )
            if decision is Decision.INJECT_AI:
                await self._inject_ai()

        await self._start()

    async def _inject_ai(self) -> None:
        async with get_session_factory()() as db:
            added = await inject_ai_opponents(db, self.session_id, self._rng)
        redis = get_redis()
        for participant in added:
            await publish_change(
                redis, ChangeEvent.participant("insert", self.session_id, participant_row(participant)),
            )
        await self._sleep(self.settings.ai_start_delay_seconds)

    async def _start(self) -> None:
        factory = get_session_factory()
        async with factory() as db:
            won = await transition_session(db, self.session_id, "waiting", "starting")
        if not won:
            logger.info("session_start_lost_race", session_id=str(self.session_id))
            return

        logger.info("session_starting", session_id=str(self.session_id))
        await publish_change(
            get_redis(),
            ChangeEvent.lifecycle(
                "session_starting",
                self.session_id,
                status="starting",
                get_ready_seconds=self.settings.get_ready_seconds,
            ),
        )
        await self._sleep(self.settings.get_ready_seconds)

        # Hand-off: the question set is produced once, then play opens
        async with factory() as db:
            await ensure_session_questions(db, self.session_id)
            opened = await transition_session(db, self.session_id, "starting", "in_progress")
        if opened:
            await publish_change(
                get_redis(), ChangeEvent.lifecycle("session_in_progress", self.session_id, status="in_progress"),
            )
        self.room.mark_started()
        self.started = True


class WaitingRoomRegistry:
    """One driver task per waiting session."""

    def __init__(self) -> None:
        self.sleep: Sleep = asyncio.sleep
        self.rng = random.Random()
        self._drivers: dict[uuid.UUID, WaitingRoomDriver] = {}
        self._tasks: dict[uuid.UUID, asyncio.Task] = {}

    def get(self, session_id: uuid.UUID) -> WaitingRoomDriver | None:
        return self._drivers.get(session_id)

    def active_count(self) -> int:
        return len(self._tasks)

    def ensure(self, session_id: uuid.UUID) -> WaitingRoomDriver:
        driver = self._drivers.get(session_id)
        if driver is not None:
            return driver
        driver = WaitingRoomDriver(session_id, settings=get_settings(), sleep=self.sleep, rng=self.rng)
        self._drivers[session_id] = driver
        task = asyncio.create_task(driver.run(), name=f"waiting-room:{session_id}")
        self._tasks[session_id] = task
        task.add_done_callback(partial(self._driver_done, session_id))
        logger.info("waiting_room_driver_started", session_id=str(session_id))
        return driver

    async def wait(self, session_id: uuid.UUID) -> None:
        task = self._tasks.get(session_id)
        if task is not None:
            await asyncio.shield(task)

    def _driver_done(self, session_id: uuid.UUID, task: asyncio.Task) -> None:
        if self._tasks.get(session_id) is task:
            self._tasks.pop(session_id, None)
            self._drivers.pop(session_id, None)
        if not task.cancelled() and task.exception() is not None:
            logger.error("waiting_room_driver_failed", session_id=str(session_id), error=repr(task.exception()))

    async def cancel_all(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._drivers.clear()


waiting_rooms = WaitingRoomRegistry()
