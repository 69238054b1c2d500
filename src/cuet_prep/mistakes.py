"""Mistake ledger: every answered question and what the learner got wrong."""
import json
import logging
import random
import string
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from cuet_prep.config import (
    ATTEMPT_HISTORY_LIMIT, CLEANUP_WINDOW_DAYS, MISTAKE_LEDGER_KEY,
)
from cuet_prep.db import KeyValueStore
from cuet_prep.errors import StorageError
from cuet_prep.models import (
    AttemptRecord, ChapterMistake, ConceptMistake, PYQMistake, WrongQuestionRecord,
)
from cuet_prep.schedule import DAY_MS, review_interval_ms

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def _scope_key(subject: str, name: str) -> str:
    return f"{subject}::{name}"


@dataclass
class Ledger:
    attempt_history: list[AttemptRecord] = field(default_factory=list)
    wrong_questions: list[WrongQuestionRecord] = field(default_factory=list)
    concept_mistakes: dict[str, ConceptMistake] = field(default_factory=dict)
    chapter_mistakes: dict[str, ChapterMistake] = field(default_factory=dict)
    pyq_mistakes: dict[str, PYQMistake] = field(default_factory=dict)
    last_updated: int = 0

    def to_json(self) -> str:
        return json.dumps({
            "attemptHistory": [a.to_dict() for a in self.attempt_history],
            "wrongQuestions": [w.to_dict() for w in self.wrong_questions],
            "conceptMistakes": {k: v.to_dict() for k, v in self.concept_mistakes.items()},
            "chapterMistakes": {k: v.to_dict() for k, v in self.chapter_mistakes.items()},
            "pyqMistakes": {k: v.to_dict() for k, v in self.pyq_mistakes.items()},
            "lastUpdated": self.last_updated,
        }, ensure_ascii=False)

    @classmethod
    def from_json(cls, raw: str) -> "Ledger":
        data = json.loads(raw)
        return cls(
            attempt_history=[AttemptRecord.from_dict(a) for a in data.get("attemptHistory", [])],
            wrong_questions=[WrongQuestionRecord.from_dict(w) for w in data.get("wrongQuestions", [])],
            concept_mistakes={k: ConceptMistake.from_dict(v) for k, v in data.get("conceptMistakes", {}).items()},
            chapter_mistakes={k: ChapterMistake.from_dict(v) for k, v in data.get("chapterMistakes", {}).items()},
            pyq_mistakes={k: PYQMistake.from_dict(v) for k, v in data.get("pyqMistakes", {}).items()},
            last_updated=data.get("lastUpdated", 0),
        )


class MistakeStore:
    """Single owner of the attempt log and every mistake aggregate.

    Reads go through an in-memory copy of the ledger that is loaded from the
    key-value store once. Writes are persisted synchronously; when the store
    refuses a write the in-memory copy stays authoritative for the rest of
    the process.
    """

    def __init__(self, store: KeyValueStore, clock: Optional[Callable[[], int]] = None,
                 key: str = MISTAKE_LEDGER_KEY):
        self.store = store
        self.clock = clock or now_ms
        self.key = key
        self._ledger: Optional[Ledger] = None

    # --- persistence ---

    def load(self) -> Ledger:
        if self._ledger is None:
            self._ledger = self._read()
        return self._ledger

    def _read(self) -> Ledger:
        try:
            raw = self.store.get(self.key)
        except StorageError as e:
            logger.warning("Mistake ledger unreadable, starting empty: %s", e)
            return Ledger(last_updated=self.clock())
        if not raw:
            return Ledger(last_updated=self.clock())
        try:
            return Ledger.from_json(raw)
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.warning("Mistake ledger malformed, starting empty: %s", e)
            return Ledger(last_updated=self.clock())

    def save(self) -> bool:
        """Persist the ledger. Returns False when the store refused the write."""
        ledger = self.load()
        ledger.last_updated = self.clock()
        try:
            self.store.set(self.key, ledger.to_json())
        except StorageError as e:
            logger.warning("Mistake ledger not persisted, continuing in memory: %s", e)
            return False
        return True

    # --- recording ---

    def record_attempt(
        self,
        question_id: str,
        subject: str,
        chapter: str,
        is_correct: bool,
        selected_option_index: int = -1,
        correct_option_index: int = 0,
        concept_tag: Optional[str] = None,
        source: str = "template",
        mode: str = "chapter",
        time_taken_seconds: float = 0,
        difficulty: str = "medium",
        question_text: str = "",
        original_question_id: Optional[str] = None,
    ) -> str:
        """Log one answered question and update the mistake aggregates."""
        ledger = self.load()
        timestamp = self.clock()
        suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
        attempt = AttemptRecord(
            id=f"attempt_{timestamp}_{suffix}",
            question_id=question_id,
            subject=subject,
            chapter=chapter,
            concept_tag=concept_tag or chapter,
            source=source,
            selected_option_index=selected_option_index,
            correct_option_index=correct_option_index,
            is_correct=is_correct,
            timestamp=timestamp,
            mode=mode,
            time_taken_seconds=time_taken_seconds or 0,
            difficulty=difficulty or "medium",
            question_text=(question_text or "")[:200],
            original_question_id=original_question_id,
        )
        ledger.attempt_history.insert(0, attempt)
        del ledger.attempt_history[ATTEMPT_HISTORY_LIMIT:]

        if is_correct:
            self._resolve_on_correct(ledger, attempt)
        else:
            self._process_mistake(ledger, attempt)

        self.save()
        logger.info("Recorded attempt: %s - %s - %s", subject, chapter,
                    "correct" if is_correct else "wrong")
        return attempt.id

    def record(self, attempt: AttemptRecord) -> str:
        """Record a prebuilt AttemptRecord (id and timestamp are reassigned)."""
        return self.record_attempt(
            question_id=attempt.question_id,
            subject=attempt.subject,
            chapter=attempt.chapter,
            is_correct=attempt.is_correct,
            selected_option_index=attempt.selected_option_index,
            correct_option_index=attempt.correct_option_index,
            concept_tag=attempt.concept_tag,
            source=attempt.source,
            mode=attempt.mode,
            time_taken_seconds=attempt.time_taken_seconds,
            difficulty=attempt.difficulty,
            question_text=attempt.question_text,
            original_question_id=attempt.original_question_id,
        )

    def _process_mistake(self, ledger: Ledger, attempt: AttemptRecord) -> None:
        subject, chapter, concept = attempt.subject, attempt.chapter, attempt.concept_tag

        wrong = self._find_wrong(ledger, attempt.question_id)
        if wrong:
            wrong.attempts.append(attempt)
            wrong.last_attempted_at = attempt.timestamp
            # A fresh mistake reopens a resolved question
            wrong.is_resolved = False
            wrong.resolved_at = None
        else:
            ledger.wrong_questions.append(WrongQuestionRecord(
                question_id=attempt.question_id,
                subject=subject,
                chapter=chapter,
                concept_tag=concept,
                source=attempt.source,
                first_mistake_at=attempt.timestamp,
                last_attempted_at=attempt.timestamp,
                attempts=[attempt],
            ))

        concept_key = _scope_key(subject, concept)
        cm = ledger.concept_mistakes.setdefault(
            concept_key,
            ConceptMistake(subject=subject, concept=concept, difficulty=attempt.difficulty),
        )
        cm.mistake_count += 1
        cm.last_mistake_at = attempt.timestamp
        cm.questions.add(attempt.question_id)
        cm.needs_review = True

        chapter_key = _scope_key(subject, chapter)
        ch = ledger.chapter_mistakes.setdefault(
            chapter_key, ChapterMistake(subject=subject, chapter=chapter)
        )
        ch.mistake_count += 1
        ch.last_mistake_at = attempt.timestamp
        ch.concepts.add(concept)
        ch.needs_review = True

        if attempt.source == "pyq":
            pm = ledger.pyq_mistakes.setdefault(
                chapter_key, PYQMistake(subject=subject, chapter=chapter)
            )
            pm.mistake_count += 1
            pm.last_mistake_at = attempt.timestamp
            pm.questions.append(attempt.question_id)

        logger.info("Processed mistake: %s (%d total)", concept_key, cm.mistake_count)

    def _resolve_on_correct(self, ledger: Ledger, attempt: AttemptRecord) -> None:
        for qid in (attempt.question_id, attempt.original_question_id):
            wrong = self._find_wrong(ledger, qid) if qid else None
            if wrong and not wrong.is_resolved:
                wrong.is_resolved = True
                wrong.resolved_at = attempt.timestamp
                logger.info("Resolved earlier mistake %s", qid)

    @staticmethod
    def _find_wrong(ledger: Ledger, question_id: str) -> Optional[WrongQuestionRecord]:
        for wrong in ledger.wrong_questions:
            if wrong.question_id == question_id:
                return wrong
        return None

    def mark_resolved(self, question_id: str) -> None:
        ledger = self.load()
        wrong = self._find_wrong(ledger, question_id)
        if wrong is None:
            return
        wrong.is_resolved = True
        wrong.resolved_at = self.clock()
        self.save()
        logger.info("Marked question as resolved: %s", question_id)

    # --- queries ---

    def get_wrong_questions(self, subject: str, chapter: str, limit: int = 10) -> list[WrongQuestionRecord]:
        """Unresolved mistakes for a chapter, most-missed then most-recent first."""
        wrong = [
            w for w in self.load().wrong_questions
            if w.subject == subject and w.chapter == chapter and not w.is_resolved
        ]
        wrong.sort(key=lambda w: (w.mistake_count, w.last_attempted_at), reverse=True)
        return wrong[:limit]

    def get_concept_mistakes(self, subject: str, chapter_or_concept: str) -> list[ConceptMistake]:
        """Concepts still needing review whose name equals or contains the query."""
        query = chapter_or_concept.lower()
        matches = [
            cm for cm in self.load().concept_mistakes.values()
            if cm.subject == subject and cm.needs_review
            and (cm.concept == chapter_or_concept or query in cm.concept.lower())
        ]
        matches.sort(key=lambda cm: (cm.mistake_count, cm.last_mistake_at), reverse=True)
        return matches

    def get_weak_concepts(self, subject: str, chapter: str) -> list[ConceptMistake]:
        """Concepts missed inside a chapter, ordered like get_concept_mistakes.

        Concept tags rarely contain the chapter name, so the chapter's
        aggregate is used to find them before falling back to substring match.
        """
        ledger = self.load()
        chapter_agg = ledger.chapter_mistakes.get(_scope_key(subject, chapter))
        found = {cm.concept: cm for cm in self.get_concept_mistakes(subject, chapter)}
        if chapter_agg:
            for concept in chapter_agg.concepts:
                cm = ledger.concept_mistakes.get(_scope_key(subject, concept))
                if cm and cm.needs_review:
                    found.setdefault(concept, cm)
        weak = list(found.values())
        weak.sort(key=lambda cm: (cm.mistake_count, cm.last_mistake_at), reverse=True)
        return weak

    def get_pyq_mistakes(self, subject: str, chapter: str) -> dict:
        pm = self.load().pyq_mistakes.get(_scope_key(subject, chapter))
        if pm is None:
            return {"questions": [], "count": 0, "last_mistake_at": 0}
        return {
            "questions": list(pm.questions),
            "count": pm.mistake_count,
            "last_mistake_at": pm.last_mistake_at,
        }

    def get_mistakes_for_review(self, subject: str, chapter: str,
                                now: Optional[int] = None) -> list[WrongQuestionRecord]:
        """Unresolved mistakes whose spaced-repetition wait has elapsed."""
        now = self.clock() if now is None else now
        return [
            w for w in self.load().wrong_questions
            if w.subject == subject and w.chapter == chapter and not w.is_resolved
            and now - w.last_attempted_at >= review_interval_ms(w.mistake_count)
        ]

    def attempts_for_question(self, question_id: str) -> int:
        return sum(1 for a in self.load().attempt_history if a.question_id == question_id)

    def attempt_history(self) -> list[AttemptRecord]:
        return list(self.load().attempt_history)

    # --- analytics ---

    def get_learning_analytics(self, subject: str, chapter: str) -> dict:
        attempts = [
            a for a in self.load().attempt_history
            if a.subject == subject and a.chapter == chapter
        ]
        total = len(attempts)
        correct = sum(1 for a in attempts if a.is_correct)
        return {
            "total_attempts": total,
            "correct_attempts": correct,
            "wrong_attempts": total - correct,
            "accuracy": round(correct / total * 100) if total else 0,
            "concepts_needing_review": len(self.get_weak_concepts(subject, chapter)),
            "questions_needing_review": len(self.get_wrong_questions(subject, chapter, 100)),
            "improvement_trend": improvement_trend(attempts),
            "last_practice_at": attempts[0].timestamp if attempts else 0,
        }

    def get_summary(self) -> dict:
        ledger = self.load()
        return {
            "total_mistakes": len(ledger.wrong_questions),
            "unresolved_mistakes": sum(1 for w in ledger.wrong_questions if not w.is_resolved),
            "concepts_needing_review": sum(1 for cm in ledger.concept_mistakes.values() if cm.needs_review),
            "total_attempts": len(ledger.attempt_history),
            "last_updated": ledger.last_updated,
        }

    def chapter_mistakes(self, subject: Optional[str] = None) -> list[ChapterMistake]:
        chapters = [
            ch for ch in self.load().chapter_mistakes.values()
            if subject is None or ch.subject == subject
        ]
        chapters.sort(key=lambda ch: ch.mistake_count, reverse=True)
        return chapters

    # --- maintenance ---

    def cleanup_old_data(self, now: Optional[int] = None) -> dict:
        """Drop attempts and resolved mistakes older than the cleanup window."""
        now = self.clock() if now is None else now
        cutoff = now - CLEANUP_WINDOW_DAYS * DAY_MS
        ledger = self.load()
        before = (len(ledger.attempt_history), len(ledger.wrong_questions))
        ledger.attempt_history = [a for a in ledger.attempt_history if a.timestamp > cutoff]
        ledger.wrong_questions = [
            w for w in ledger.wrong_questions
            if not w.is_resolved or w.last_attempted_at > cutoff
        ]
        self.save()
        removed = {
            "attempts": before[0] - len(ledger.attempt_history),
            "wrong_questions": before[1] - len(ledger.wrong_questions),
        }
        logger.info("Cleaned up old mistake data: %s", removed)
        return removed

    def export_data(self, path: str) -> Path:
        """Write a pretty-printed JSON backup of the ledger."""
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(json.loads(self.load().to_json()), indent=2, ensure_ascii=False))
        return out


def improvement_trend(attempts: list[AttemptRecord]) -> str:
    """Compare the newest 10 attempts against the 10 before them."""
    if len(attempts) < 10:
        return "insufficient_data"
    recent = attempts[:10]
    previous = attempts[10:20]
    recent_acc = sum(a.is_correct for a in recent) / len(recent)
    if not previous:
        return "stable"
    previous_acc = sum(a.is_correct for a in previous) / len(previous)
    change = recent_acc - previous_acc
    if change > 0.1:
        return "improving"
    if change < -0.1:
        return "declining"
    return "stable"
