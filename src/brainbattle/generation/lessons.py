"""Lesson generation: slide decks with interleaved micro-quizzes."""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

from brainbattle.generation.llm import LLMGateway

logger = structlog.get_logger()

FALLBACK_BODY_CHARS = 500

_JSON_FENCE_RE = re.compile(r"```json\s*([\s\S]*?)\s*```")
_ANY_FENCE_RE = re.compile(r"```\s*([\s\S]*?)\s*```")

_CONTENT_FIELDS = ("title", "content", "example", "visual_description")
_QUIZ_FIELDS = ("title", "question", "correct_answer", "explanation")


def build_system_prompt(difficulty: str) -> str:
    return f"""You are an AI Teaching Engine. Generate a teaching module in slide format for the given topic.

Rules:
- Use simple explanations appropriate for {difficulty} level
- Break topics into 5-7 slides
- Include a micro-quiz slide after every 2-3 content slides
- Ensure correctness and avoid repetition
- Output ONLY valid JSON

Return a JSON object with this exact structure:
{{
  "title": "Main topic title",
  "slides": [
    {{
      "slide_number": 1,
      "type": "content",
      "title": "Slide title",
      "content": "Main explanation (2-3 paragraphs)",
      "example": "Practical example",
      "visual_description": "Description of supporting image",
      "key_points": ["point 1", "point 2"]
    }},
    {{
      "slide_number": 2,
      "type": "quiz",
      "title": "Quick Check",
      "question": "Quiz question",
      "options": ["A", "B", "C", "D"],
      "correct_answer": "A",
      "explanation": "Why this is correct"
    }}
  ]
}}"""


def extract_json(content: str) -> str:
    """Pull the body of a ```json (or bare ```) block, else return the text as-is."""
    match = _JSON_FENCE_RE.search(content) or _ANY_FENCE_RE.search(content)
    return (match.group(1) if match else content).strip()


def fallback_lesson(topic: str, raw: str) -> dict[str, Any]:
    return {
        "title": topic,
        "slides": [
            {
                "slide_number": 1,
                "type": "content",
                "title": f"Introduction to {topic}",
                "content": raw[:FALLBACK_BODY_CHARS],
                "example": "See the content above for details.",
                "visual_description": f"An educational diagram about {topic}",
                "key_points": ["Understanding the basics", "Key concepts explained"],
            },
        ],
    }


def _text(value: Any) -> str:  # noqa: ANN401
    return value.strip() if isinstance(value, str) else ""


def _normalize_slide(slide: Any) -> dict[str, Any] | None:  # noqa: ANN401
    if not isinstance(slide, dict):
        return None
    kind = slide.get("type")
    if kind == "quiz":
        options = slide.get("options")
        if not isinstance(options, list) or len(options) != 4:
            return None
        options = [_text(o) for o in options]
        correct = _text(slide.get("correct_answer"))
        if not all(options) or correct not in options:
            return None
        normalized = {f: _text(slide.get(f)) for f in _QUIZ_FIELDS}
        if not normalized["question"]:
            return None
        normalized.update(type="quiz", options=options, correct_answer=correct)
        return normalized
    if kind == "content":
        normalized = {f: _text(slide.get(f)) for f in _CONTENT_FIELDS}
        if not normalized["title"] and not normalized["content"]:
            return None
        key_points = slide.get("key_points")
        normalized["type"] = "content"
        normalized["key_points"] = [_text(p) for p in key_points if _text(p)] if isinstance(key_points, list) else []
        return normalized
    return None


def normalize_lesson(payload: Any, topic: str) -> dict[str, Any] | None:  # noqa: ANN401
    """Validate slides, drop malformed ones and renumber from 1. ``None`` when nothing usable."""
    if not isinstance(payload, dict):
        return None
    if isinstance(payload.get("lesson"), dict):
        payload = payload["lesson"]
    raw_slides = payload.get("slides")
    if not isinstance(raw_slides, list):
        return None
    slides = []
    for raw in raw_slides:
        slide = _normalize_slide(raw)
        if slide is None:
            continue
        slide["slide_number"] = len(slides) + 1
        slides.append(slide)
    if not slides:
        return None
    return {"title": _text(payload.get("title")) or topic, "slides": slides}


async def generate_lesson(gateway: LLMGateway, topic: str, difficulty: str = "basic") -> dict[str, Any]:
    """
    Build a 5-7 slide lesson for a free-text topic.

    Raises:
        UpstreamQuotaError: Upstream 429/402, passed through.
        UpstreamError: Any other gateway failure, including an empty reply.
    """
    logger.info("generating_lesson", topic=topic, difficulty=difficulty)
    content = await gateway.complete(
        build_system_prompt(difficulty),
        f"Create a {difficulty} level teaching module about: {topic}",
    )

    try:
        parsed = json.loads(extract_json(content))
    except json.JSONDecodeError:
        logger.warning("llm_fallback_used", kind="lesson", reason="unparseable", topic=topic)
        return fallback_lesson(topic, content)

    lesson = normalize_lesson(parsed, topic)
    if lesson is None:
        logger.warning("llm_fallback_used", kind="lesson", reason="no_valid_slides", topic=topic)
        return fallback_lesson(topic, content)
    logger.info("lesson_generated", topic=topic, slides=len(lesson["slides"]))
    return lesson
