"""In-process game loops: one runner per (session, player) and one AI ticker per session.

Runners drive ``GameEngine.tick()`` once per second, checkpoint after every
resolved question and finalize the player when the engine completes. The AI
ticker advances every AI participant's score until the session's last runner
finishes. ``sleep`` and ``rng`` are swappable so tests can drive the clock.
"""

from __future__ import annotations

import asyncio
import random
import uuid
from collections.abc import Awaitable, Callable
from functools import partial

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.config import get_settings
from brainbattle.database import get_session_factory
from brainbattle.db.models import GameParticipant, GameSession
from brainbattle.game.ai_opponents import simulate_ai_tick
from brainbattle.game.engine import AnswerResult, GameEngine, Phase, TickOutcome
from brainbattle.game.service import FinalizeOutcome, ensure_session_questions, finalize_participant, save_checkpoint
from brainbattle.realtime.events import ChangeEvent, publish_change
from brainbattle.redis_client import get_redis

logger = structlog.get_logger()

Sleep = Callable[[float], Awaitable[None]]
RunnerKey = tuple[uuid.UUID, uuid.UUID]


class GameRunner:
    """Drives one player's engine against the wall clock."""

    def __init__(
        self,
        session_id: uuid.UUID,
        participant_id: uuid.UUID,
        user_id: uuid.UUID,
        engine: GameEngine,
        sleep: Sleep,
    ) -> None:
        self.session_id = session_id
        self.participant_id = participant_id
        self.user_id = user_id
        self.engine = engine
        self._sleep = sleep
        self.outcome: FinalizeOutcome | None = None

    async def run(self) -> None:
        while self.engine.phase is not Phase.COMPLETE:
            await self._sleep(1)
            if self.engine.tick() is TickOutcome.TIMED_OUT:
                logger.info(
                    "answer_scored",
                    session_id=str(self.session_id),
                    user_id=str(self.user_id),
                    timed_out=True,
                    points=0,
                )
                await self._checkpoint()
        await self._finalize()

    async def submit_answer(self, option: str) -> AnswerResult:
        """Score ``option`` against the current question. Raises StateTransitionError outside ANSWERING."""
        result = self.engine.answer(option)
        logger.info(
            "answer_scored",
            session_id=str(self.session_id),
            user_id=str(self.user_id),
            correct=result.correct,
            points=result.points_earned,
            time_left=result.time_left,
        )
        await self._checkpoint()
        return result

    async def _checkpoint(self) -> None:
        snapshot = self.engine.snapshot()
        async with get_session_factory()() as db:
            await save_checkpoint(db, self.participant_id, snapshot)
        row = {
            "id": str(self.participant_id),
            "session_id": str(self.session_id),
            "score": snapshot["score"],
            "current_question": snapshot["current_question"],
        }
        await publish_change(get_redis(), ChangeEvent.participant("update", self.session_id, row))

    async def _finalize(self) -> None:
        async with get_session_factory()() as db:
            self.outcome = await finalize_participant(
                db, get_redis(), self.session_id, self.user_id, self.engine.snapshot(),
            )


async def run_ai_ticker(session_id: uuid.UUID, question_count: int, sleep: Sleep, rng: random.Random) -> None:
    """Advance AI scores every ``ai_tick_seconds`` until cancelled."""
    settings = get_settings()
    redis = get_redis()
    while True:
        await sleep(settings.ai_tick_seconds)
        async with get_session_factory()() as db:
            result = await db.execute(
                select(GameParticipant).where(
                    GameParticipant.session_id == session_id,
                    GameParticipant.is_ai.is_(True),
                )
            )
            ai_players = list(result.scalars().all())
            if not ai_players:
                return
            updated = simulate_ai_tick({p.id: p.score for p in ai_players}, question_count, rng)
            changed = [p for p in ai_players if updated[p.id] != p.score]
            for p in changed:
                p.score = updated[p.id]
            await db.commit()
        for p in changed:
            row = {"id": str(p.id), "session_id": str(session_id), "score": p.score}
            await publish_change(redis, ChangeEvent.participant("update", session_id, row))


class GameRegistry:
    """Owns every runner and AI ticker task in this process."""

    def __init__(self) -> None:
        self.sleep: Sleep = asyncio.sleep
        self.rng = random.Random()
        self._runners: dict[RunnerKey, GameRunner] = {}
        self._tasks: dict[RunnerKey, asyncio.Task] = {}
        self._tickers: dict[uuid.UUID, asyncio.Task] = {}

    def get(self, session_id: uuid.UUID, user_id: uuid.UUID) -> GameRunner | None:
        return self._runners.get((session_id, user_id))

    def active_count(self) -> int:
        return len(self._tasks)

    async def play(self, db: AsyncSession, session: GameSession, participant: GameParticipant) -> GameRunner | None:
        """Start or return the participant's runner. ``None`` once the participant is finalized."""
        key = (session.id, participant.user_id)
        runner = self._runners.get(key)
        if runner is not None:
            return runner
        if participant.completed_at is not None:
            return None

        settings = get_settings()
        questions = await ensure_session_questions(db, session.id)
        engine = GameEngine.from_checkpoint(
            questions,
            {
                "current_question": participant.current_question,
                "score": participant.score,
                "answers": participant.answers,
            },
            question_seconds=settings.question_seconds,
            reveal_seconds=settings.reveal_seconds,
        )
        runner = GameRunner(session.id, participant.id, participant.user_id, engine, self.sleep)
        self._runners[key] = runner
        task = asyncio.create_task(runner.run(), name=f"game-runner:{session.id}:{participant.user_id}")
        self._tasks[key] = task
        task.add_done_callback(partial(self._runner_done, key))
        logger.info(
            "game_runner_started",
            session_id=str(session.id),
            user_id=str(participant.user_id),
            resume_at=engine.index,
        )

        ai_count = await db.scalar(
            select(func.count())
            .select_from(GameParticipant)
            .where(GameParticipant.session_id == session.id, GameParticipant.is_ai.is_(True))
        )
        if ai_count and session.id not in self._tickers:
            ticker = asyncio.create_task(
                run_ai_ticker(session.id, len(questions), self.sleep, self.rng),
                name=f"ai-ticker:{session.id}",
            )
            self._tickers[session.id] = ticker
            ticker.add_done_callback(partial(self._ticker_done, session.id))
        return runner

    async def wait(self, session_id: uuid.UUID, user_id: uuid.UUID) -> None:
        task = self._tasks.get((session_id, user_id))
        if task is not None:
            await asyncio.shield(task)

    def _runner_done(self, key: RunnerKey, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            self._tasks.pop(key, None)
            self._runners.pop(key, None)
        if not task.cancelled() and task.exception() is not None:
            logger.error("game_runner_failed", session_id=str(key[0]), error=repr(task.exception()))

        session_id = key[0]
        if not any(k[0] == session_id for k in self._tasks):
            ticker = self._tickers.pop(session_id, None)
            if ticker is not None:
                ticker.cancel()

    def _ticker_done(self, session_id: uuid.UUID, task: asyncio.Task) -> None:
        if self._tickers.get(session_id) is task:
            self._tickers.pop(session_id, None)
        if not task.cancelled() and task.exception() is not None:
            logger.error("ai_ticker_failed", session_id=str(session_id), error=repr(task.exception()))

    async def cancel_all(self) -> None:
        tasks = [*self._tasks.values(), *self._tickers.values()]
        self._tickers.clear()
        await _cancel(tasks)
        self._tasks.clear()
        self._runners.clear()


async def _cancel(tasks: list[asyncio.Task]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


game_runners = GameRegistry()
