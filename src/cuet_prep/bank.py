"""Bundled question bank: static practice questions and previous-year papers."""
import json
import logging
import re
from pathlib import Path
from typing import Optional

from cuet_prep.models import Question

logger = logging.getLogger(__name__)

CONTENT_DIR = Path(__file__).parent / "content"
DEFAULT_BANK_PATH = CONTENT_DIR / "questions.json"


def slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_")


def load_bank_file(path) -> dict:
    """Read a bank document from .json or .yaml/.yml."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".json":
        return json.loads(path.read_text(encoding="utf-8"))
    elif suffix in (".yaml", ".yml"):
        import yaml
        return yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    else:
        raise ValueError(f"Unsupported bank format: {path.suffix}")


def _question_from_entry(subject: str, chapter: str, index: int, entry: dict) -> Question:
    year = entry.get("year")
    return Question(
        id=entry.get("id") or f"{slug(subject)}_{slug(chapter)}_{index}",
        subject=subject,
        chapter=chapter,
        concept=entry.get("concept") or chapter,
        text=entry["question"],
        options=list(entry["options"]),
        correct_index=int(entry["correct"]),
        explanation=entry.get("explanation", ""),
        source="bank",
        difficulty=entry.get("difficulty", "medium"),
        is_pyq=bool(entry.get("isPYQ", False)),
        year=str(year) if year is not None else None,
        question_type=entry.get("type", "conceptual"),
    )


class QuestionBank:
    """Read-only index of bank questions by subject and chapter."""

    def __init__(self, data: dict):
        self._chapters: dict[str, dict[str, list[Question]]] = {}
        self._by_id: dict[str, Question] = {}
        for subject, chapters in (data.get("subjects") or {}).items():
            by_chapter = self._chapters.setdefault(subject, {})
            for chapter, entries in chapters.items():
                questions = [
                    _question_from_entry(subject, chapter, i, entry)
                    for i, entry in enumerate(entries or [])
                ]
                by_chapter[chapter] = questions
                for q in questions:
                    self._by_id[q.id] = q

    @classmethod
    def load(cls, path=None) -> "QuestionBank":
        bank = cls(load_bank_file(path or DEFAULT_BANK_PATH))
        logger.debug("Loaded question bank: %d questions", len(bank._by_id))
        return bank

    def _subject_key(self, subject: str) -> Optional[str]:
        wanted = subject.lower()
        for name in self._chapters:
            if name.lower() == wanted:
                return name
        return None

    def subjects(self) -> list[str]:
        return list(self._chapters)

    def chapters(self, subject: str) -> list[str]:
        key = self._subject_key(subject)
        return list(self._chapters[key]) if key else []

    def questions(self, subject: str, chapter: str) -> list[Question]:
        key = self._subject_key(subject)
        if key is None:
            return []
        return list(self._chapters[key].get(chapter, []))

    def pyqs(self, subject: str, chapter: Optional[str] = None) -> list[Question]:
        """Previous-year questions for a subject, optionally narrowed to chapters containing ``chapter``."""
        key = self._subject_key(subject)
        if key is None:
            return []
        wanted = chapter.lower() if chapter else None
        return [
            q
            for name, questions in self._chapters[key].items()
            if wanted is None or wanted in name.lower()
            for q in questions
            if q.is_pyq
        ]

    def get(self, question_id: str) -> Optional[Question]:
        return self._by_id.get(question_id)

    def all_questions(self) -> list[Question]:
        return list(self._by_id.values())
