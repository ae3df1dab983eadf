"""Question generation: prompt the model, repair its output, fall back to canned content."""

from __future__ import annotations

import json
import re
import uuid
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from brainbattle.db.models import Challenge, Subject
from brainbattle.generation.llm import LLMGateway

logger = structlog.get_logger()

DEFAULT_SUBJECT_NAME = "General Knowledge"
OPTION_COUNT = 4

DIFFICULTY_DESCRIPTIONS = {
    "basic": "simple, beginner-level questions suitable for elementary students",
    "intermediate": "moderate difficulty questions for middle school level",
    "advanced": "challenging questions for high school students",
}

SYSTEM_PROMPT = (
    "You are an educational content generator. Generate engaging and accurate quiz questions. "
    "Always respond with valid JSON only, no markdown formatting."
)

_FENCE_RE = re.compile(r"```(?:json)?\n?")


def build_prompt(subject_name: str, difficulty: str, count: int) -> str:
    level = DIFFICULTY_DESCRIPTIONS.get(difficulty, "moderate difficulty")
    return (
        f"Generate {count} multiple choice questions about {subject_name}.\n"
        f"These should be {level}.\n\n"
        "For each question, provide:\n"
        "1. A clear question\n"
        "2. Exactly 4 options (A, B, C, D)\n"
        "3. The correct answer\n"
        "4. A brief explanation\n\n"
        "Return ONLY valid JSON in this exact format, no markdown:\n"
        "{\n"
        '  "questions": [\n'
        "    {\n"
        '      "id": "1",\n'
        '      "question": "The question text here?",\n'
        '      "options": ["Option A", "Option B", "Option C", "Option D"],\n'
        '      "correct_answer": "Option A",\n'
        '      "explanation": "Brief explanation"\n'
        "    }\n"
        "  ]\n"
        "}"
    )


def strip_code_fences(content: str) -> str:
    """Remove every ```json / ``` marker and surrounding whitespace."""
    return _FENCE_RE.sub("", content).strip()


def fallback_questions(subject_name: str) -> list[dict[str, Any]]:
    """Five deterministic placeholder questions that mention ``subject_name``."""
    templates = [
        (f"What is a key concept in {subject_name}?", ["Option A", "Option B", "Option C", "Option D"],
         "This is the correct answer."),
        (f"Which of these relates to {subject_name}?", ["Choice 1", "Choice 2", "Choice 3", "Choice 4"],
         "This is correct."),
        (f"In {subject_name}, what is important?", ["Answer A", "Answer B", "Answer C", "Answer D"],
         "This is why."),
        (f"What principle applies to {subject_name}?", ["First", "Second", "Third", "Fourth"],
         "Explanation here."),
        (f"Which statement about {subject_name} is true?", ["True A", "True B", "True C", "True D"],
         "Because..."),
    ]
    return [
        {
            "id": str(i),
            "question": question,
            "options": options,
            "correct_answer": options[0],
            "explanation": explanation,
        }
        for i, (question, options, explanation) in enumerate(templates, start=1)
    ]


def _normalize_question(item: Any, position: int) -> dict[str, Any] | None:  # noqa: ANN401
    if not isinstance(item, dict):
        return None
    question = item.get("question")
    options = item.get("options")
    correct = item.get("correct_answer")
    if not isinstance(question, str) or not question.strip():
        return None
    if not isinstance(options, list) or len(options) != OPTION_COUNT:
        return None
    if not all(isinstance(o, str) and o.strip() for o in options):
        return None
    options = [o.strip() for o in options]
    if not isinstance(correct, str):
        return None
    correct = correct.strip()
    if correct not in options:
        # Models sometimes answer with the option letter instead of its text
        letter = correct.upper().rstrip(").")
        if len(letter) == 1 and "A" <= letter <= "D":
            correct = options[ord(letter) - ord("A")]
        else:
            return None
    explanation = item.get("explanation")
    raw_id = item.get("id")
    return {
        "id": str(raw_id) if raw_id not in (None, "") else str(position),
        "question": question.strip(),
        "options": options,
        "correct_answer": correct,
        "explanation": explanation.strip() if isinstance(explanation, str) else "",
    }


def normalize_questions(payload: Any, count: int | None = None) -> list[dict[str, Any]]:  # noqa: ANN401
    """Coerce parsed model output into the strict question schema.

    Accepts ``{"questions": [...]}`` or a bare list. Malformed items are dropped.
    """
    items = payload.get("questions") if isinstance(payload, dict) else payload
    if not isinstance(items, list):
        return []
    questions = []
    for item in items:
        normalized = _normalize_question(item, len(questions) + 1)
        if normalized is not None:
            questions.append(normalized)
    if count is not None:
        questions = questions[:count]
    return questions


async def resolve_subject_name(db: AsyncSession, subject_id: uuid.UUID) -> tuple[Subject | None, str]:
    subject = await db.get(Subject, subject_id)
    return subject, subject.name if subject else DEFAULT_SUBJECT_NAME


async def generate_questions(
    db: AsyncSession,
    gateway: LLMGateway,
    subject_id: uuid.UUID,
    difficulty: str,
    count: int = 5,
) -> list[dict[str, Any]]:
    """
    Produce ``count`` validated multiple-choice questions for a subject.

    Output that cannot be parsed or repaired is replaced by the five fallback
    questions. Generated questions are stored as ``challenges`` rows.

    Raises:
        UpstreamQuotaError / UpstreamError: The model call itself failed.
    """
    subject, subject_name = await resolve_subject_name(db, subject_id)
    logger.info("generating_questions", subject=subject_name, difficulty=difficulty, count=count)

    content = await gateway.complete(SYSTEM_PROMPT, build_prompt(subject_name, difficulty, count))
    cleaned = strip_code_fences(content)

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("llm_fallback_used", kind="questions", reason="unparseable", subject=subject_name)
        return fallback_questions(subject_name)

    questions = normalize_questions(parsed, count)
    if not questions:
        logger.warning("llm_fallback_used", kind="questions", reason="no_valid_items", subject=subject_name)
        return fallback_questions(subject_name)

    if subject is not None:
        db.add_all([
            Challenge(
                subject_id=subject.id,
                difficulty=difficulty,
                question=q["question"],
                options=q["options"],
                correct_answer=q["correct_answer"],
                explanation=q["explanation"] or None,
            )
            for q in questions
        ])
        await db.commit()
    return questions
