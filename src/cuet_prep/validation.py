"""Structural acceptance checks for generated questions."""
import re

from cuet_prep.errors import InvalidQuestionError
from cuet_prep.models import Question

BANNED_OPTION_PATTERNS = [
    re.compile(r"\boption\s+[a-d]\b", re.IGNORECASE),
    re.compile(r"correct answer", re.IGNORECASE),
    re.compile(r"incorrect option", re.IGNORECASE),
    re.compile(r"\bincorrect\s+[a-c]\b", re.IGNORECASE),
    re.compile(r"wrong answer", re.IGNORECASE),
    re.compile(r"placeholder", re.IGNORECASE),
    re.compile(r"^\s*[a-d]\.?\s*$", re.IGNORECASE),
]


def is_placeholder(option: str) -> bool:
    return any(p.search(option) for p in BANNED_OPTION_PATTERNS)


def question_problems(question: Question) -> list[str]:
    """Every reason the question would be rejected; empty when it is acceptable."""
    problems = []
    if not question.text or not question.text.strip():
        problems.append("empty question text")
    options = question.options or []
    if len(options) != 4:
        problems.append(f"expected 4 options, got {len(options)}")
    if any(not isinstance(o, str) or not o.strip() for o in options):
        problems.append("blank option")
    elif len({o.strip().lower() for o in options}) != len(options):
        problems.append("duplicate options")
    if not isinstance(question.correct_index, int) or not 0 <= question.correct_index <= 3:
        problems.append(f"correct index {question.correct_index!r} out of range")
    elif question.correct_index >= len(options):
        problems.append("correct index past the last option")
    if not question.explanation or not question.explanation.strip():
        problems.append("missing explanation")
    for option in options:
        if isinstance(option, str) and is_placeholder(option):
            problems.append(f"placeholder option {option!r}")
    return problems


def is_valid_question(question: Question) -> bool:
    return not question_problems(question)


def validate_question(question: Question) -> Question:
    problems = question_problems(question)
    if problems:
        raise InvalidQuestionError(question.id, problems)
    return question
