"""Question variation and exposure tracking for long-running daily practice."""
import json
import logging
import random
import re
from dataclasses import replace
from typing import Callable, Optional

from cuet_prep.config import EXPOSURE_KEY_PREFIX, MAX_EXPOSURES, SESSION_COUNT_KEY
from cuet_prep.db import KeyValueStore
from cuet_prep.errors import StorageError
from cuet_prep.models import Question
from cuet_prep.shuffle import shuffle_question_options

logger = logging.getLogger(__name__)

PHYSICS_FACTORS = [2, 3, 5, 10]
PHYSICS_UNITS = {"m": ["cm", "mm", "km"], "s": ["ms", "min", "h"], "kg": ["g", "mg", "ton"]}
PHYSICS_CONTEXTS = [
    "A particle", "An object", "A body", "A mass",
    "A charge", "An electron", "A proton", "An ion",
]
CHEMISTRY_COMPOUNDS = ["NaCl", "KCl", "CaCl₂", "MgCl₂", "AlCl₃", "H₂SO₄", "HCl", "HNO₃", "CH₃COOH"]
CHEMISTRY_CONCENTRATIONS = [0.1, 0.2, 0.5, 1.0, 2.0, 5.0]
CHEMISTRY_TEMPERATURES = [273, 298, 300, 373, 400, 500]
MATH_COEFFICIENTS = [1, 2, 3, 4, 5, -1, -2, -3]
MATH_FUNCTIONS = ["f(x)", "g(x)", "h(x)", "y", "u", "v"]
ENGLISH_STARTERS = [
    "According to the passage",
    "The author suggests that",
    "It can be inferred that",
    "The main idea is",
]
GENERAL_TEST_YEARS = [2020, 2021, 2022, 2023, 2024]


def variation_level(sessions_since_first_seen: int) -> str:
    if sessions_since_first_seen <= 1:
        return "minimal"
    if sessions_since_first_seen <= 3:
        return "moderate"
    if sessions_since_first_seen <= 7:
        return "significant"
    return "maximum"


def exposure_key(subject: str, chapter: str) -> str:
    return f"{EXPOSURE_KEY_PREFIX}-{subject}-{chapter}"


def _has_digits(options: list[str]) -> bool:
    return any(re.search(r"\d", o) for o in options)


class _SafeRewriter:
    """Applies regex substitutions that leave the answer key untouched.

    A match is left alone when the same text occurs in any option or in the
    explanation.
    """

    def __init__(self, question: Question):
        self.protected = " ".join([*question.options, question.explanation]).lower()

    def sub(self, pattern: str, text: str, replacement: Callable[[re.Match], str]) -> str:
        def swap(match: re.Match) -> str:
            if match.group(0).strip().lower() in self.protected:
                return match.group(0)
            return replacement(match)
        return re.sub(pattern, swap, text)


class VariationEngine:
    def __init__(self, store: KeyValueStore, rng: Optional[random.Random] = None):
        self.store = store
        self.rng = rng or random.Random()

    # --- variants ---

    def vary(self, question: Question, subject: str, sessions_since_first_seen: int = 0) -> Question:
        """Concept-equivalent copy of ``question`` with surface details changed."""
        rewriter = _SafeRewriter(question)
        rules = {
            "physics": self._vary_physics,
            "chemistry": self._vary_chemistry,
            "mathematics": self._vary_mathematics,
            "english": self._vary_english,
            "general test": self._vary_general_test,
        }
        rule = rules.get(subject.lower())
        text = rule(question, rewriter) if rule else question.text

        varied = replace(
            question,
            text=text,
            variation_level=variation_level(sessions_since_first_seen),
            original_mistake_id=question.original_mistake_id or question.id,
        )
        if sessions_since_first_seen > 2:
            varied = shuffle_question_options(varied, self.rng)
        return varied

    def _vary_physics(self, question: Question, rw: _SafeRewriter) -> str:
        text = question.text
        if not _has_digits(question.options):
            factor = self.rng.choice(PHYSICS_FACTORS)
            text = rw.sub(r"\b\d+(?:\.\d+)?\b", text, lambda m: f"{float(m.group(0)) * factor:g}")
            for unit, alternatives in PHYSICS_UNITS.items():
                choice = self.rng.choice(alternatives)
                text = rw.sub(rf"(?<=\d )\b{unit}\b", text, lambda m, c=choice: c)
        context = self.rng.choice(PHYSICS_CONTEXTS)
        return re.sub(r"\b(?:A particle|An object|A body)\b", context, text)

    def _vary_chemistry(self, question: Question, rw: _SafeRewriter) -> str:
        compound = self.rng.choice(CHEMISTRY_COMPOUNDS)
        text = rw.sub(r"NaCl|KCl|CaCl₂", question.text, lambda m: compound)
        if not _has_digits(question.options):
            conc = self.rng.choice(CHEMISTRY_CONCENTRATIONS)
            text = rw.sub(r"\b\d+(?:\.\d+)?\s*M\b", text, lambda m: f"{conc} M")
            temp = self.rng.choice(CHEMISTRY_TEMPERATURES)
            text = rw.sub(r"\b\d+\s*K\b", text, lambda m: f"{temp} K")
        return text

    def _vary_mathematics(self, question: Question, rw: _SafeRewriter) -> str:
        text = question.text
        if not _has_digits(question.options):
            coeff = self.rng.choice(MATH_COEFFICIENTS)
            text = rw.sub(r"\b\d+x", text, lambda m: f"{coeff}x")
        return self._rename_function(text, rw)

    def _rename_function(self, text: str, rw: _SafeRewriter) -> str:
        """Rename f at every use: definition, values and derivatives."""
        if re.search(r"\bf['(]", rw.protected):
            return text
        if re.search(r"\bf'|\bf\((?!x\))", text):
            # f' and f(2) need a callable name
            name = self.rng.choice([f for f in MATH_FUNCTIONS if f.endswith("(x)")])[0]
            return re.sub(r"\bf(?=['(])", name, text)
        func = self.rng.choice(MATH_FUNCTIONS)
        return re.sub(r"\bf\(x\)", func, text)

    def _vary_english(self, question: Question, rw: _SafeRewriter) -> str:
        starter = self.rng.choice(ENGLISH_STARTERS)
        return re.sub(r"^According to[^,]*,", f"{starter},", question.text)

    def _vary_general_test(self, question: Question, rw: _SafeRewriter) -> str:
        year = self.rng.choice(GENERAL_TEST_YEARS)
        return rw.sub(r"\b20\d{2}\b", question.text, lambda m: str(year))

    # --- exposure ---

    def _load_exposure(self, key: str) -> dict[str, int]:
        try:
            raw = self.store.get(key)
            return json.loads(raw) if raw else {}
        except (StorageError, ValueError) as e:
            logger.warning("Exposure counters for %s unreadable, resetting: %s", key, e)
            return {}

    def exposure_counts(self, subject: str, chapter: str) -> dict[str, int]:
        return self._load_exposure(exposure_key(subject, chapter))

    def filter_overexposed(self, questions: list[Question], subject: str, chapter: str) -> list[Question]:
        """Drop questions shown MAX_EXPOSURES times; count one more showing for the rest.

        Each id is counted at most once per call.
        """
        key = exposure_key(subject, chapter)
        counts = self._load_exposure(key)
        kept = [q for q in questions if counts.get(q.id, 0) < MAX_EXPOSURES]
        for qid in {q.id for q in kept}:
            counts[qid] = counts.get(qid, 0) + 1
        try:
            self.store.set(key, json.dumps(counts))
        except StorageError as e:
            logger.warning("Failed to save exposure data for %s: %s", key, e)
        if len(kept) < len(questions):
            logger.info("Retired %d over-exposed questions in %s - %s",
                        len(questions) - len(kept), subject, chapter)
        return kept

    # --- session counter ---

    def session_count(self) -> int:
        try:
            raw = self.store.get(SESSION_COUNT_KEY)
            return int(raw) if raw else 0
        except (StorageError, ValueError):
            return 0

    def increment_session_count(self) -> int:
        count = self.session_count() + 1
        try:
            self.store.set(SESSION_COUNT_KEY, str(count))
        except StorageError as e:
            logger.warning("Failed to save session count: %s", e)
        return count
