"""Hardcoded questions used when a session's question set cannot be generated."""

from __future__ import annotations

import copy
from typing import Any

SAMPLE_QUESTIONS: list[dict[str, Any]] = [
    {"id": "1", "question": "What is 2 + 2?", "options": ["3", "4", "5", "6"], "correct_answer": "4"},
    {"id": "2", "question": "What is 5 × 3?", "options": ["10", "12", "15", "18"], "correct_answer": "15"},
    {"id": "3", "question": "What is 10 - 7?", "options": ["2", "3", "4", "5"], "correct_answer": "3"},
    {"id": "4", "question": "What is 8 ÷ 2?", "options": ["2", "3", "4", "5"], "correct_answer": "4"},
    {"id": "5", "question": "What is 6 + 9?", "options": ["13", "14", "15", "16"], "correct_answer": "15"},
]


def sample_questions() -> list[dict[str, Any]]:
    questions = copy.deepcopy(SAMPLE_QUESTIONS)
    for q in questions:
        q.setdefault("explanation", "")
    return questions
