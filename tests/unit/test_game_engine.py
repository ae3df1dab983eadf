"""Unit tests for the per-player game state machine."""

from __future__ import annotations

import pytest

from brainbattle.errors import StateTransitionError
from brainbattle.game.engine import GameEngine, Phase, TickOutcome
from brainbattle.game.samples import SAMPLE_QUESTIONS, sample_questions


@pytest.fixture
def engine() -> GameEngine:
    return GameEngine(sample_questions(), question_seconds=15, reveal_seconds=2)


def _tick(engine: GameEngine, n: int) -> list[TickOutcome]:
    return [engine.tick() for _ in range(n)]


class TestAnswering:
    def test_starts_answering_first_question(self, engine: GameEngine):
        assert engine.phase is Phase.ANSWERING
        assert engine.index == 0
        assert engine.time_left == 15
        assert engine.score == 0

    def test_correct_answer_at_full_time(self, engine: GameEngine):
        result = engine.answer("4")
        assert result.correct is True
        assert result.points_earned == 175
        assert result.correct_answer == "4"
        assert engine.score == 175
        assert engine.phase is Phase.REVEALED

    def test_speed_bonus_shrinks_with_time(self, engine: GameEngine):
        _tick(engine, 5)
        result = engine.answer("4")
        assert result.time_left == 10
        assert result.points_earned == 150

    def test_wrong_answer_scores_zero(self, engine: GameEngine):
        result = engine.answer("5")
        assert result.correct is False
        assert result.points_earned == 0
        assert engine.score == 0

    def test_answer_locks_question(self, engine: GameEngine):
        engine.answer("4")
        with pytest.raises(StateTransitionError):
            engine.answer("3")
        assert engine.score == 175
        assert len(engine.answers) == 1

    def test_cannot_advance_while_answering(self, engine: GameEngine):
        with pytest.raises(StateTransitionError):
            engine.advance()


class TestTimer:
    def test_timeout_reveals_with_zero_points(self, engine: GameEngine):
        outcomes = _tick(engine, 15)
        assert outcomes[:14] == [TickOutcome.NONE] * 14
        assert outcomes[14] is TickOutcome.TIMED_OUT
        assert engine.phase is Phase.REVEALED
        assert engine.score == 0
        assert engine.answers[0]["answer"] is None
        assert engine.answers[0]["correct"] is False

    def test_reveal_lasts_two_seconds(self, engine: GameEngine):
        engine.answer("4")
        assert engine.tick() is TickOutcome.NONE
        assert engine.phase is Phase.REVEALED
        assert engine.tick() is TickOutcome.ADVANCED
        assert engine.phase is Phase.ANSWERING
        assert engine.index == 1
        assert engine.time_left == 15

    def test_no_answer_accepted_after_timeout(self, engine: GameEngine):
        _tick(engine, 15)
        with pytest.raises(StateTransitionError):
            engine.answer("4")

    def test_full_game_by_timeouts(self, engine: GameEngine):
        outcomes = _tick(engine, 5 * 17)
        assert outcomes[-1] is TickOutcome.COMPLETED
        assert outcomes.count(TickOutcome.TIMED_OUT) == 5
        assert engine.phase is Phase.COMPLETE
        assert engine.score == 0
        assert engine.current_question is None
        assert engine.tick() is TickOutcome.NONE

    def test_perfect_game(self, engine: GameEngine):
        for q in SAMPLE_QUESTIONS:
            engine.answer(q["correct_answer"])
            _tick(engine, 2)
        assert engine.phase is Phase.COMPLETE
        assert engine.score == 875


class TestSnapshot:
    def test_snapshot_counts_resolved_questions(self, engine: GameEngine):
        assert engine.snapshot()["current_question"] == 0
        engine.answer("4")
        snap = engine.snapshot()
        assert snap["current_question"] == 1
        assert snap["score"] == 175
        _tick(engine, 2)
        assert engine.snapshot()["current_question"] == 1

    def test_resume_from_checkpoint(self, engine: GameEngine):
        engine.answer("4")
        _tick(engine, 4)  # reveal, then two seconds into question 2
        resumed = GameEngine.from_checkpoint(sample_questions(), engine.snapshot())
        assert resumed.index == 1
        assert resumed.phase is Phase.ANSWERING
        assert resumed.time_left == 15
        assert resumed.score == 175
        assert len(resumed.answers) == 1

    def test_resume_after_last_question_is_complete(self):
        resumed = GameEngine.from_checkpoint(
            sample_questions(), {"current_question": 5, "score": 300, "answers": []},
        )
        assert resumed.phase is Phase.COMPLETE

    def test_resume_from_empty_checkpoint(self):
        resumed = GameEngine.from_checkpoint(
            sample_questions(), {"current_question": None, "score": None, "answers": None},
        )
        assert resumed.index == 0
        assert resumed.score == 0

    def test_empty_question_set_rejected(self):
        with pytest.raises(ValueError):
            GameEngine([])


class TestView:
    def test_answer_hidden_while_answering(self, engine: GameEngine):
        view = engine.view()
        assert view["phase"] == "answering"
        assert "correct_answer" not in view["question"]
        assert view["question"]["options"] == ["3", "4", "5", "6"]
        assert view["selected_answer"] is None

    def test_answer_shown_after_reveal(self, engine: GameEngine):
        engine.answer("5")
        view = engine.view()
        assert view["phase"] == "revealed"
        assert view["question"]["correct_answer"] == "4"
        assert view["selected_answer"] == "5"

    def test_complete_view_has_no_question(self, engine: GameEngine):
        _tick(engine, 5 * 17)
        view = engine.view()
        assert view["phase"] == "complete"
        assert view["question"] is None
        assert view["question_count"] == 5
