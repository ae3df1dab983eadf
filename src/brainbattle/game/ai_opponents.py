"""Simulated opponent score progression."""

from __future__ import annotations

import random
from typing import TypeVar

from brainbattle.game.scoring import MAX_AI_POINTS_PER_QUESTION

K = TypeVar("K")

AI_CORRECT_PROBABILITY = 0.7
AI_POINT_CHOICES = (80, 100)


def simulate_ai_tick(scores: dict[K, int], question_count: int, rng: random.Random) -> dict[K, int]:
    """One 3-second tick: each AI has a 70% chance to gain 80 or 100 points.

    Scores are capped at ``question_count * 100`` and never decrease.
    """
    cap = question_count * MAX_AI_POINTS_PER_QUESTION
    updated: dict[K, int] = {}
    for key, score in scores.items():
        if rng.random() < AI_CORRECT_PROBABILITY:
            gained = min(score + rng.choice(AI_POINT_CHOICES), cap)
            score = max(score, gained)
        updated[key] = score
    return updated
