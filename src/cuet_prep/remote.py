"""Remote question generation over an OpenAI-compatible chat completions API."""
import json
import logging
import re
import time
from typing import Optional, Protocol

import httpx

from cuet_prep.config import AI_MODEL, GROQ_API_KEY, GROQ_BASE_URL, GROQ_TIMEOUT
from cuet_prep.errors import GenerationError
from cuet_prep.models import DIFFICULTIES, Question
from cuet_prep.validation import question_problems

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert CUET question generator. Respond with ONLY valid JSON arrays. "
    "No additional text or explanations outside the JSON."
)

DIFFICULTY_INSTRUCTIONS = {
    "easy": "Create basic conceptual questions suitable for beginners",
    "medium": "Create moderate difficulty questions with some calculations",
    "hard": "Create challenging questions with complex problem-solving and trap options",
}

_FENCE = re.compile(r"```(?:json)?\s*")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


class RemoteQuestionSource(Protocol):
    @property
    def is_available(self) -> bool: ...

    async def generate(self, subject: str, chapter: str, count: int, difficulty: str,
                       prompt_hint: Optional[str] = None) -> list[Question]: ...


def build_prompt(subject: str, chapter: str, count: int, difficulty: str,
                 prompt_hint: Optional[str] = None) -> str:
    lines = [
        f"Generate {count} CUET multiple choice questions.",
        f"Subject: {subject}",
        f"Chapter: {chapter}",
        f"Difficulty: {difficulty}",
        f"Instructions: {DIFFICULTY_INSTRUCTIONS.get(difficulty, DIFFICULTY_INSTRUCTIONS['medium'])}",
    ]
    if prompt_hint:
        lines.append(prompt_hint)
    lines.append(
        'Respond with ONLY a JSON array of objects with keys "question", "options" '
        '(exactly 4 strings), "correct" (0-3), "explanation", "concept", "difficulty".'
    )
    return "\n".join(lines)


def _clean(text) -> str:
    if not isinstance(text, str):
        return ""
    return re.sub(r"\s+", " ", text).strip()


def _json_arrays(content: str) -> list:
    """Every JSON array that parses out of a model reply, widest first."""
    content = _FENCE.sub("", content.strip())
    candidates = re.findall(r"\[[\s\S]*\]", content) + re.findall(r"\[[\s\S]*?\]", content)
    arrays = []
    for candidate in candidates:
        try:
            data = json.loads(_TRAILING_COMMA.sub(r"\1", candidate))
        except ValueError:
            continue
        if isinstance(data, list) and data:
            arrays.append(data)
    return arrays


def parse_questions(content: str, subject: str, chapter: str) -> list[Question]:
    """Turn a model reply into acceptable Questions; malformed items are dropped."""
    stamp = int(time.time() * 1000)
    for items in _json_arrays(content):
        questions = []
        for index, item in enumerate(items):
            if not isinstance(item, dict) or "question" not in item:
                continue
            try:
                correct = int(item.get("correct", item.get("correct_index")))
            except (TypeError, ValueError):
                continue
            options = item.get("options")
            difficulty = item.get("difficulty")
            question = Question(
                id=str(item.get("id") or f"groq-{subject}-{chapter}-{stamp}-{index}"),
                subject=subject,
                chapter=chapter,
                concept=_clean(item.get("concept")) or chapter,
                text=_clean(item.get("question")),
                options=[_clean(o) for o in options] if isinstance(options, list) else [],
                correct_index=correct,
                explanation=_clean(item.get("explanation")),
                source="groq",
                difficulty=difficulty if difficulty in DIFFICULTIES else "medium",
            )
            problems = question_problems(question)
            if problems:
                logger.info("Dropped remote question %d: %s", index, "; ".join(problems))
                continue
            questions.append(question)
        if questions:
            return questions
    return []


class GroqQuestionClient:
    """Single-attempt client for Groq's chat completions endpoint."""

    def __init__(self, api_key: str = GROQ_API_KEY, model: str = AI_MODEL,
                 base_url: str = GROQ_BASE_URL, timeout: float = GROQ_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def is_available(self) -> bool:
        return bool(self.api_key) and self.api_key != "your_groq_api_key_here"

    async def generate(self, subject: str, chapter: str, count: int, difficulty: str = "medium",
                       prompt_hint: Optional[str] = None) -> list[Question]:
        if not self.is_available:
            raise GenerationError("Groq API key not configured")

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(subject, chapter, count, difficulty, prompt_hint)},
            ],
            "temperature": 0.7,
            "max_tokens": 3000,
            "top_p": 0.9,
            "stream": False,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        logger.info("Requesting %d %s questions for %s - %s", count, difficulty, subject, chapter)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.base_url}/chat/completions",
                                             json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise GenerationError(f"Groq request failed: {e}") from e
        except ValueError as e:
            raise GenerationError(f"Groq response was not JSON: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationError("Groq response had no content") from e

        questions = parse_questions(content or "", subject, chapter)
        if not questions:
            raise GenerationError("No valid questions parsed from Groq response")
        return questions[:count]
