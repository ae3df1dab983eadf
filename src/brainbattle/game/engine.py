"""Per-player game state machine.

ANSWERING(time_left 15..0) -> REVEALED(2s) -> next question | COMPLETE

The engine is pure: the runner calls ``tick()`` once per second and the API
calls ``answer()``. ``snapshot()`` is the durable checkpoint written after
every answered or timed-out question; ``from_checkpoint()`` resumes from it at
the start of the next unresolved question.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from brainbattle.errors import StateTransitionError
from brainbattle.game.scoring import calculate_points


class Phase(enum.StrEnum):
    ANSWERING = "answering"
    REVEALED = "revealed"
    COMPLETE = "complete"


class TickOutcome(enum.StrEnum):
    NONE = "none"
    TIMED_OUT = "timed_out"
    ADVANCED = "advanced"
    COMPLETED = "completed"


@dataclass
class AnswerResult:
    question_id: str
    answer: str | None
    correct: bool
    points_earned: int
    correct_answer: str
    time_left: int
    score: int

    def log_entry(self) -> dict[str, Any]:
        return {
            "question_id": self.question_id,
            "answer": self.answer,
            "correct": self.correct,
            "points": self.points_earned,
            "time_left": self.time_left,
        }


class GameEngine:
    def __init__(
        self,
        questions: list[dict[str, Any]],
        *,
        question_seconds: int = 15,
        reveal_seconds: int = 2,
        index: int = 0,
        score: int = 0,
        answers: list[dict[str, Any]] | None = None,
    ) -> None:
        if not questions:
            raise ValueError("A game needs at least one question")
        self.questions = questions
        self.question_seconds = question_seconds
        self.reveal_seconds = reveal_seconds
        self.index = min(max(index, 0), len(questions))
        self.score = score
        self.answers: list[dict[str, Any]] = list(answers or [])
        self.time_left = question_seconds
        self.reveal_left = 0
        self.last_result: AnswerResult | None = None
        self.phase = Phase.ANSWERING if self.index < len(questions) else Phase.COMPLETE

    @classmethod
    def from_checkpoint(
        cls,
        questions: list[dict[str, Any]],
        checkpoint: dict[str, Any],
        **timing: int,
    ) -> GameEngine:
        """Resume at the first question the checkpoint has not resolved, with a fresh timer."""
        return cls(
            questions,
            index=checkpoint.get("current_question") or 0,
            score=checkpoint.get("score") or 0,
            answers=checkpoint.get("answers") or [],
            **timing,
        )

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> dict[str, Any] | None:
        if self.phase is Phase.COMPLETE:
            return None
        return self.questions[self.index]

    def tick(self) -> TickOutcome:
        if self.phase is Phase.ANSWERING:
            self.time_left = max(self.time_left - 1, 0)
            if self.time_left == 0:
                self._resolve(None)
                return TickOutcome.TIMED_OUT
            return TickOutcome.NONE
        if self.phase is Phase.REVEALED:
            self.reveal_left -= 1
            if self.reveal_left <= 0:
                self.advance()
                return TickOutcome.COMPLETED if self.phase is Phase.COMPLETE else TickOutcome.ADVANCED
        return TickOutcome.NONE

    def answer(self, option: str) -> AnswerResult:
        """Lock the current question with ``option`` and score it at the current ``time_left``."""
        if self.phase is not Phase.ANSWERING:
            raise StateTransitionError("Not accepting answers right now", phase=self.phase.value)
        return self._resolve(option)

    def advance(self) -> None:
        if self.phase is not Phase.REVEALED:
            raise StateTransitionError("Cannot advance before the answer is revealed", phase=self.phase.value)
        self.index += 1
        self.last_result = None
        if self.index >= len(self.questions):
            self.phase = Phase.COMPLETE
            return
        self.phase = Phase.ANSWERING
        self.time_left = self.question_seconds

    def _resolve(self, option: str | None) -> AnswerResult:
        question = self.questions[self.index]
        correct = option is not None and option == question["correct_answer"]
        points = calculate_points(correct, self.time_left)
        self.score += points
        result = AnswerResult(
            question_id=str(question.get("id", self.index + 1)),
            answer=option,
            correct=correct,
            points_earned=points,
            correct_answer=question["correct_answer"],
            time_left=self.time_left,
            score=self.score,
        )
        self.answers.append(result.log_entry())
        self.last_result = result
        self.phase = Phase.REVEALED
        self.reveal_left = self.reveal_seconds
        return result

    def snapshot(self) -> dict[str, Any]:
        """Durable checkpoint: ``current_question`` counts resolved questions."""
        resolved = self.index + 1 if self.phase is Phase.REVEALED else self.index
        return {"current_question": resolved, "score": self.score, "answers": list(self.answers)}

    def view(self) -> dict[str, Any]:
        question = self.current_question
        public_question = None
        if question is not None:
            public_question = {
                "id": str(question.get("id", self.index + 1)),
                "question": question["question"],
                "options": question["options"],
            }
            if self.phase is Phase.REVEALED:
                public_question["correct_answer"] = question["correct_answer"]
                public_question["explanation"] = question.get("explanation") or ""
        return {
            "phase": self.phase.value,
            "question_index": self.index,
            "question_count": self.question_count,
            "question": public_question,
            "time_left": self.time_left,
            "score": self.score,
            "selected_answer": self.last_result.answer if self.last_result else None,
        }
