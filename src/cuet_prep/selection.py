"""Mistake-driven question selection for one quiz session.

Candidates come from five layers tried in priority order:

1. variants of questions the learner got wrong,
2. PYQs similar to the learner's weak concepts,
3. exact PYQs for the chapter (then PYQ-style remote questions),
4. concept-aware remote generation,
5. offline template generation.

Every candidate passes the session uniqueness check and the structural
acceptance check before it is kept. The result is then rebalanced to the
mode's mixing ratio, shuffled, and each question's options are shuffled with
the answer key relocated by value.
"""
import logging
import math
import random
import re
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Optional

from cuet_prep.bank import QuestionBank
from cuet_prep.config import EMERGENCY_FLOOR
from cuet_prep.errors import CuetPrepError, GenerationError
from cuet_prep.generator import QuestionGenerator
from cuet_prep.mistakes import MistakeStore
from cuet_prep.models import (
    MISTAKE_SOURCES, PYQ_SOURCES, Question, WrongQuestionRecord, attempt_source_for,
)
from cuet_prep.shuffle import shuffle_question_options, shuffled
from cuet_prep.similarity import SimilarityIndex
from cuet_prep.standards import MixingRatio, mixing_ratios
from cuet_prep.validation import question_problems
from cuet_prep.variation import VariationEngine

logger = logging.getLogger(__name__)


@dataclass
class LayerResult:
    name: str
    items: list[Question] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def normalize_text(text: str) -> str:
    return re.sub(r"\s+", " ", re.sub(r"[^\w\s]", "", (text or "").lower())).strip()


class SessionTracker:
    """Questions already handed out in the current session."""

    def __init__(self):
        self.hashes: set[str] = set()
        self.texts: set[str] = set()

    def reset(self) -> None:
        self.hashes.clear()
        self.texts.clear()

    @staticmethod
    def question_hash(q: Question) -> str:
        return f"{q.subject}_{q.chapter}_{q.concept or 'unknown'}_{normalize_text(q.text)}"

    def is_unique(self, q: Question) -> bool:
        return self.question_hash(q) not in self.hashes and normalize_text(q.text) not in self.texts

    def add(self, q: Question) -> None:
        self.hashes.add(self.question_hash(q))
        self.texts.add(normalize_text(q.text))

    def __len__(self) -> int:
        return len(self.hashes)


def bucket_of(q: Question) -> str:
    if q.source in MISTAKE_SOURCES or q.priority == "highest":
        return "mistake"
    if q.source in PYQ_SOURCES or q.is_pyq:
        return "pyq"
    return "fresh"


def apply_mixing(questions: list[Question], ratios: MixingRatio, count: int,
                 rng: Optional[random.Random] = None) -> list[Question]:
    """Take each bucket's share of ``count``, then backfill from whatever is left."""
    buckets: dict[str, list[Question]] = {"mistake": [], "pyq": [], "fresh": []}
    for q in questions:
        buckets[bucket_of(q)].append(q)

    mistake_n = math.floor(count * ratios.mistake)
    pyq_n = math.floor(count * ratios.pyq)
    fresh_n = count - mistake_n - pyq_n
    mixed = buckets["mistake"][:mistake_n] + buckets["pyq"][:pyq_n] + buckets["fresh"][:fresh_n]

    taken = {id(q) for q in mixed}
    leftovers = [
        q for q in buckets["mistake"] + buckets["pyq"] + buckets["fresh"]
        if id(q) not in taken
    ]
    mixed.extend(leftovers[:max(0, count - len(mixed))])
    return shuffled(mixed, rng)[:count]


class SelectionOrchestrator:
    def __init__(self, mistakes: MistakeStore, bank: QuestionBank,
                 similarity: Optional[SimilarityIndex] = None,
                 variation: Optional[VariationEngine] = None,
                 generator: Optional[QuestionGenerator] = None,
                 remote=None, rng: Optional[random.Random] = None):
        self.mistakes = mistakes
        self.bank = bank
        self.rng = rng or random.Random()
        self.remote = remote
        self.similarity = similarity or SimilarityIndex(bank, self.rng)
        self.variation = variation or VariationEngine(mistakes.store, self.rng)
        self.generator = generator or QuestionGenerator(remote, self.rng)
        self.tracker = SessionTracker()

    @property
    def remote_available(self) -> bool:
        return self.remote is not None and self.remote.is_available

    # --- main entry point ---

    async def select(self, subject: str, chapter: str, count: int,
                     mode: str = "chapter", difficulty: str = "adaptive") -> list[Question]:
        """Questions for one session, most important sources first.

        Never raises for layer failures; a short result is not an error.
        """
        self.tracker.reset()
        self.variation.increment_session_count()
        if count < 1:
            return []

        ratios = mixing_ratios(mode)
        remote_difficulty = difficulty if difficulty in ("easy", "medium", "hard") else "medium"
        mistake_limit = math.floor(count * ratios.mistake)
        pyq_quota = math.floor(count * ratios.pyq)
        selected: list[Question] = []
        logger.info("Selecting %d questions for %s - %s (%s mode)", count, subject, chapter, mode)

        layer = await self._run_layer(
            "mistake_variants",
            lambda: self.mistake_variants(subject, chapter, mistake_limit, remote_difficulty),
        )
        mistakes_taken = self._admit(layer, selected, min(mistake_limit, count))

        pyq_taken = 0
        remaining = count - len(selected)
        if remaining > 0:
            limit = min(remaining, pyq_quota)
            layer = await self._run_layer(
                "concept_similar", lambda: self.concept_similar_pyqs(subject, chapter, limit),
            )
            pyq_taken += self._admit(layer, selected, limit)

        remaining = count - len(selected)
        if remaining > 0:
            limit = min(remaining, pyq_quota + (mistake_limit - mistakes_taken) - pyq_taken)
            if limit > 0:
                layer = await self._run_layer(
                    "exact_pyqs", lambda: self.exact_pyqs(subject, chapter, limit, remote_difficulty),
                )
                pyq_taken += self._admit(layer, selected, limit)

        remaining = count - len(selected)
        if remaining > 0 and self.remote_available:
            layer = await self._run_layer(
                "concept_aware_ai",
                lambda: self.concept_aware_questions(subject, chapter, remaining, remote_difficulty),
            )
            self._admit(layer, selected, remaining)

        remaining = count - len(selected)
        if remaining > 0:
            layer = await self._run_layer(
                "generator", lambda: self.generator.generate_cuet_questions(subject, chapter, count),
            )
            self._admit(layer, selected, remaining)

        if len(selected) < min(count, EMERGENCY_FLOOR):
            logger.warning("Only %d unique questions for %s - %s, using emergency templates",
                           len(selected), subject, chapter)
            self._emergency_fill(subject, chapter, count, selected)

        mixed = apply_mixing(selected, ratios, count, self.rng)
        final = [shuffle_question_options(q, self.rng) for q in mixed]
        logger.info("Selected %d questions (%d mistake variants, %d PYQs)",
                    len(final), mistakes_taken, pyq_taken)
        return final

    async def _run_layer(self, name: str,
                         produce: Callable[[], Awaitable[list[Question]]]) -> LayerResult:
        try:
            items = await produce()
        except Exception as e:  # any layer fault is logged and the layer skipped
            logger.warning("Layer %s failed: %s", name, e, exc_info=True)
            return LayerResult(name, error=str(e) or type(e).__name__)
        return LayerResult(name, items=list(items))

    def _admit(self, layer: LayerResult, selected: list[Question], limit: int) -> int:
        """Append unique, acceptable items from ``layer``; returns how many were kept."""
        if not layer.ok:
            return 0
        kept = 0
        for q in layer.items:
            if kept >= limit:
                break
            problems = question_problems(q)
            if problems:
                logger.warning("Rejected %s from %s: %s", q.id, layer.name, "; ".join(problems))
                continue
            if not self.tracker.is_unique(q):
                logger.info("Filtered duplicate question from %s: %s", layer.name, q.text[:50])
                continue
            self.tracker.add(q)
            selected.append(q)
            kept += 1
        logger.debug("Layer %s: kept %d of %d", layer.name, kept, len(layer.items))
        return kept

    def _emergency_fill(self, subject: str, chapter: str, count: int,
                        selected: list[Question]) -> None:
        for attempt in range(count * 3):
            if len(selected) >= count:
                break
            try:
                q = self.generator.emergency_question(subject, chapter, attempt)
            except GenerationError as e:
                logger.warning("Emergency template failed: %s", e)
                continue
            if self.tracker.is_unique(q):
                self.tracker.add(q)
                selected.append(q)

    # --- layers ---

    async def mistake_variants(self, subject: str, chapter: str, limit: int,
                               difficulty: str = "medium") -> list[Question]:
        if limit <= 0:
            return []
        variants = []
        for wrong in self.mistakes.get_wrong_questions(subject, chapter, limit):
            try:
                variant = await self._variant_for(wrong, subject, chapter, difficulty)
            except CuetPrepError as e:
                logger.warning("Failed to build variant for mistake %s: %s", wrong.question_id, e)
                continue
            variants.append(variant)
        return variants

    async def _variant_for(self, wrong: WrongQuestionRecord, subject: str, chapter: str,
                           difficulty: str) -> Question:
        base = None
        if self.remote_available:
            hint = (
                f"Test the SAME concept as a question the learner answered incorrectly. "
                f"Concept: {wrong.concept_tag}. Mistake count: {wrong.mistake_count}. "
                f"Use different numbers or examples. "
                f"{'Make it slightly easier.' if wrong.mistake_count > 2 else 'Keep the same difficulty.'}"
            )
            try:
                remote = await self.remote.generate(subject, chapter, 1, difficulty, hint)
                base = remote[0] if remote else None
            except GenerationError as e:
                logger.warning("Remote variant generation failed: %s", e)

        if base is None:
            original = self.bank.get(wrong.question_id)
            if original is None:
                original = self.generator.generate_for_concept(subject, chapter, wrong.concept_tag)
            seen = self.mistakes.attempts_for_question(wrong.question_id)
            base = self.variation.vary(original, subject, seen)

        return replace(
            base,
            id=f"variant_{wrong.question_id}",
            subject=subject,
            chapter=chapter,
            concept=wrong.concept_tag,
            source="mistake_variant",
            priority="highest",
            original_mistake_id=wrong.question_id,
            mistake_count=wrong.mistake_count,
        )

    async def concept_similar_pyqs(self, subject: str, chapter: str, limit: int) -> list[Question]:
        if limit <= 0:
            return []
        weak = self.mistakes.get_weak_concepts(subject, chapter)[:3]
        if not weak:
            return []
        per_concept = math.ceil(limit / len(weak))
        pyqs = []
        seen = set()
        for cm in weak:
            for q in self.similarity.find_similar(subject, cm.concept, per_concept, chapter):
                # same-chapter hits overlap across concepts
                if q.id in seen:
                    continue
                seen.add(q.id)
                pyqs.append(replace(q, source="concept_similar", mistake_count=cm.mistake_count,
                                    priority="high"))
        return self.variation.filter_overexposed(pyqs[:limit], subject, chapter)

    async def exact_pyqs(self, subject: str, chapter: str, limit: int,
                         difficulty: str = "medium") -> list[Question]:
        pool = shuffled(self.bank.pyqs(subject, chapter), self.rng)
        pyqs = [replace(q, source="exact_pyq", priority="medium") for q in pool[:limit]]
        pyqs = self.variation.filter_overexposed(pyqs, subject, chapter)

        short = limit - len(pyqs)
        if short > 0 and self.remote_available:
            hint = "Write questions in the exact style of previous CUET papers."
            try:
                remote = await self.remote.generate(subject, chapter, short, difficulty, hint)
            except GenerationError as e:
                logger.warning("PYQ-style generation failed: %s", e)
                remote = []
            pyqs.extend(
                replace(q, source="pyq_style_ai", is_pyq=True, year=q.year or "2024")
                for q in remote
            )
        return pyqs

    async def concept_aware_questions(self, subject: str, chapter: str, count: int,
                                      difficulty: str = "medium") -> list[Question]:
        weak = [cm.concept for cm in self.mistakes.get_weak_concepts(subject, chapter)[:3]]
        if weak:
            hint = "Focus on these concepts where the learner made mistakes: " + ", ".join(weak)
        else:
            hint = None
        questions = await self.remote.generate(subject, chapter, count, difficulty, hint)
        if weak:
            return [
                replace(q, source="concept_aware_ai", concept=self.rng.choice(weak), priority="medium")
                for q in questions
            ]
        return [replace(q, source="regular_ai", priority="low") for q in questions]

    # --- conveniences ---

    def record_attempt(self, question: Question, selected_index: int, mode: str = "chapter",
                       time_taken: float = 0) -> str:
        """Log an answer to a selected question in the mistake store.

        Variants are logged against the question they were built from, so
        repeated misses on a concept accumulate on one record.
        """
        question_id = question.id
        if question.source in MISTAKE_SOURCES and question.original_mistake_id:
            question_id = question.original_mistake_id
        return self.mistakes.record_attempt(
            question_id=question_id,
            subject=question.subject,
            chapter=question.chapter,
            is_correct=selected_index == question.correct_index,
            selected_option_index=selected_index,
            correct_option_index=question.correct_index,
            concept_tag=question.concept,
            source=attempt_source_for(question),
            mode=mode,
            time_taken_seconds=time_taken,
            difficulty=question.difficulty,
            question_text=question.text,
            original_question_id=question.original_mistake_id,
        )
