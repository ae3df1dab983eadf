"""Answer scoring: a flat base for a correct answer plus a speed bonus."""

import math

BASE_POINTS = 100
SPEED_BONUS_PER_SECOND = 5
MAX_AI_POINTS_PER_QUESTION = 100


def calculate_points(is_correct: bool, time_left: float) -> int:
    """``100 + floor(time_left * 5)`` for a correct answer, otherwise 0."""
    if not is_correct:
        return 0
    return BASE_POINTS + math.floor(max(time_left, 0) * SPEED_BONUS_PER_SECOND)
