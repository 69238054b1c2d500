"""Data classes for the mistake ledger and transient questions."""
from dataclasses import asdict, dataclass, field, fields
from typing import Optional

ATTEMPT_SOURCES = ("pyq", "ai", "template", "fallback", "variant")
DIFFICULTIES = ("easy", "medium", "hard")
MODES = ("daily", "chapter", "pyq", "mock")

MISTAKE_SOURCES = {"mistake_variant"}
PYQ_SOURCES = {"exact_pyq", "concept_similar", "similar_pyq", "pyq_style_ai"}
AI_SOURCES = {"groq", "cuet_ai", "concept_aware_ai", "regular_ai"}
TEMPLATE_SOURCES = {"cuet_template", "cuet_realistic", "bank"}


def _from_dict(cls, data: dict):
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class AttemptRecord:
    id: str
    question_id: str
    subject: str
    chapter: str
    concept_tag: str
    source: str
    selected_option_index: int
    correct_option_index: int
    is_correct: bool
    timestamp: int
    mode: str = "chapter"
    time_taken_seconds: float = 0
    difficulty: str = "medium"
    question_text: str = ""
    original_question_id: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AttemptRecord":
        return _from_dict(cls, data)


@dataclass
class WrongQuestionRecord:
    question_id: str
    subject: str
    chapter: str
    concept_tag: str
    source: str
    first_mistake_at: int
    last_attempted_at: int
    attempts: list[AttemptRecord] = field(default_factory=list)
    is_resolved: bool = False
    resolved_at: Optional[int] = None

    @property
    def mistake_count(self) -> int:
        return len(self.attempts)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["mistake_count"] = self.mistake_count
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "WrongQuestionRecord":
        record = _from_dict(cls, data)
        record.attempts = [AttemptRecord.from_dict(a) for a in data.get("attempts", [])]
        return record


@dataclass
class ConceptMistake:
    subject: str
    concept: str
    mistake_count: int = 0
    questions: set[str] = field(default_factory=set)
    last_mistake_at: int = 0
    difficulty: str = "medium"
    needs_review: bool = True

    def to_dict(self) -> dict:
        data = asdict(self)
        data["questions"] = sorted(self.questions)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ConceptMistake":
        record = _from_dict(cls, data)
        record.questions = set(data.get("questions", []))
        return record


@dataclass
class ChapterMistake:
    subject: str
    chapter: str
    mistake_count: int = 0
    concepts: set[str] = field(default_factory=set)
    last_mistake_at: int = 0
    needs_review: bool = True

    def to_dict(self) -> dict:
        data = asdict(self)
        data["concepts"] = sorted(self.concepts)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ChapterMistake":
        record = _from_dict(cls, data)
        record.concepts = set(data.get("concepts", []))
        return record


@dataclass
class PYQMistake:
    subject: str
    chapter: str
    mistake_count: int = 0
    questions: list[str] = field(default_factory=list)
    last_mistake_at: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "PYQMistake":
        return _from_dict(cls, data)


@dataclass
class Question:
    id: str
    subject: str
    chapter: str
    concept: str
    text: str
    options: list[str]
    correct_index: int
    explanation: str = ""
    source: str = "bank"
    difficulty: str = "medium"
    is_pyq: bool = False
    year: Optional[str] = None
    question_type: str = "conceptual"
    priority: str = "medium"
    original_mistake_id: Optional[str] = None
    mistake_count: int = 0
    similarity_reason: Optional[str] = None
    variation_level: Optional[str] = None
    was_shuffled: bool = False
    original_correct_index: Optional[int] = None

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_index]

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Question":
        return _from_dict(cls, data)


def attempt_source_for(question: Question) -> str:
    """Map a question's pipeline source onto the attempt-log source enum."""
    if question.source in MISTAKE_SOURCES or question.original_mistake_id:
        return "variant"
    if question.is_pyq or question.source in PYQ_SOURCES:
        return "pyq"
    if question.source in AI_SOURCES:
        return "ai"
    if question.source in TEMPLATE_SOURCES:
        return "template"
    return "fallback"
