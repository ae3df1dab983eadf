"""Waiting-room state machine: SEARCHING(cycle, countdown) -> STARTING -> STARTED.

Pure logic, no I/O. The driver feeds it one ``tick()`` per second and the
authoritative participant count whenever the countdown hits zero.
"""

from __future__ import annotations

import enum
import random
from dataclasses import dataclass, field

AI_NAMES = ["AlphaBot", "BrainMaster", "QuizWiz", "SmartBot", "ChallengeBot"]
MIN_PARTICIPANTS = 2


class RoomState(enum.StrEnum):
    SEARCHING = "searching"
    STARTING = "starting"
    STARTED = "started"


class Decision(enum.StrEnum):
    START = "start"
    INJECT_AI = "inject_ai"
    NEXT_CYCLE = "next_cycle"


@dataclass
class WaitingRoom:
    countdown_seconds: int = 20
    max_cycles: int = 3
    state: RoomState = RoomState.SEARCHING
    cycle: int = 1
    countdown: int = field(default=-1)

    def __post_init__(self) -> None:
        if self.countdown < 0:
            self.countdown = self.countdown_seconds

    def tick(self) -> bool:
        """Advance one second. True when the countdown just reached zero."""
        if self.state is not RoomState.SEARCHING or self.countdown == 0:
            return False
        self.countdown -= 1
        return self.countdown == 0

    def decide(self, participant_count: int) -> Decision:
        if self.state is not RoomState.SEARCHING:
            raise ValueError(f"Cannot decide in state {self.state}")
        if participant_count >= MIN_PARTICIPANTS:
            self.state = RoomState.STARTING
            return Decision.START
        if self.cycle >= self.max_cycles:
            self.state = RoomState.STARTING
            return Decision.INJECT_AI
        self.cycle += 1
        self.countdown = self.countdown_seconds
        return Decision.NEXT_CYCLE

    def mark_started(self) -> None:
        if self.state is not RoomState.STARTING:
            raise ValueError(f"Cannot start from state {self.state}")
        self.state = RoomState.STARTED

    def snapshot(self) -> dict:
        return {"state": self.state.value, "cycle": self.cycle, "countdown": self.countdown}


def pick_ai_names(rng: random.Random) -> list[str]:
    """One or two names from the pool. Repeats are allowed."""
    return [rng.choice(AI_NAMES) for _ in range(rng.randint(1, 2))]
