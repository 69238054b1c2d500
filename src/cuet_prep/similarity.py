"""Find previous-year questions (PYQs) that test the same idea as a mistake."""
import logging
import random
from collections import defaultdict
from dataclasses import replace
from typing import Iterable, Optional

from cuet_prep.bank import QuestionBank
from cuet_prep.models import Question, WrongQuestionRecord
from cuet_prep.shuffle import shuffled

logger = logging.getLogger(__name__)

# Topic -> keywords. Two concepts are related when they meet on a keyword.
CONCEPT_MAP = {
    # Physics
    "Electrostatics": ["electric field", "coulomb law", "electric potential", "capacitance", "gauss law"],
    "Current Electricity": ["ohm law", "resistance", "current", "voltage", "power", "kirchhoff"],
    "Magnetism": ["magnetic field", "magnetic force", "electromagnetic induction", "faraday law"],
    "Optics": ["reflection", "refraction", "lens", "mirror", "interference", "diffraction"],
    "Modern Physics": ["photoelectric effect", "atomic structure", "nuclear physics", "quantum"],
    # Chemistry
    "Chemical Bonding": ["ionic bond", "covalent bond", "metallic bond", "hybridization", "molecular geometry"],
    "Thermodynamics": ["enthalpy", "entropy", "gibbs energy", "heat capacity", "phase transition"],
    "Equilibrium": ["chemical equilibrium", "le chatelier", "equilibrium constant", "acid base"],
    "Electrochemistry": ["oxidation", "reduction", "electrode potential", "electrolysis", "galvanic cell"],
    "Organic Chemistry": ["functional groups", "isomerism", "reaction mechanisms", "nomenclature"],
    # Mathematics
    "Calculus": ["limits", "derivatives", "integrals", "differential equations", "continuity"],
    "Algebra": ["quadratic equations", "polynomials", "matrices", "determinants", "complex numbers"],
    "Coordinate Geometry": ["straight line", "circle", "parabola", "ellipse", "hyperbola"],
    "Trigonometry": ["trigonometric functions", "identities", "inverse trigonometric"],
    "Probability": ["permutation", "combination", "probability distribution", "statistics"],
    # English
    "Reading Comprehension": ["main idea", "inference", "vocabulary", "tone", "author purpose"],
    "Grammar": ["parts of speech", "tenses", "voice", "narration", "sentence structure"],
    "Vocabulary": ["synonyms", "antonyms", "idioms", "phrases", "word formation"],
    # General Test
    "General Knowledge": ["history", "geography", "polity", "economics", "current affairs"],
    "Logical Reasoning": ["syllogism", "coding decoding", "blood relations", "direction sense"],
    "Quantitative Aptitude": ["arithmetic", "algebra", "geometry", "data interpretation"],
}


def related_concepts(concept: str) -> list[str]:
    """Concepts sharing a keyword with ``concept``, deduplicated in map order."""
    wanted = concept.lower()
    related: list[str] = []
    for topic, keywords in CONCEPT_MAP.items():
        if topic.lower() == wanted:
            related.extend(keywords)
        elif any(kw in wanted or wanted in kw for kw in keywords):
            related.append(topic)
    return list(dict.fromkeys(related))


def _dedupe_key(q: Question) -> tuple[str, str, str]:
    return (q.subject, q.chapter, q.text[:50])


class SimilarityIndex:
    """PYQs from the bank indexed by subject, concept, year and difficulty."""

    def __init__(self, bank: QuestionBank, rng: Optional[random.Random] = None):
        self.rng = rng
        self.by_subject: dict[str, list[Question]] = defaultdict(list)
        self.by_concept: dict[str, list[Question]] = defaultdict(list)
        self.by_year: dict[str, list[Question]] = defaultdict(list)
        self.by_difficulty: dict[str, list[Question]] = defaultdict(list)
        for q in bank.all_questions():
            if not q.is_pyq:
                continue
            self.by_subject[q.subject.lower()].append(q)
            self.by_concept[(q.concept or q.chapter).lower()].append(q)
            self.by_year[q.year or "2023"].append(q)
            self.by_difficulty[q.difficulty or "medium"].append(q)
        logger.debug(
            "Built PYQ index: %d subjects, %d concepts, %d PYQs",
            len(self.by_subject), len(self.by_concept),
            sum(len(v) for v in self.by_subject.values()),
        )

    def _in_subject(self, questions: Iterable[Question], subject: str) -> list[Question]:
        wanted = subject.lower()
        return [q for q in questions if q.subject.lower() == wanted]

    def by_exact_concept(self, subject: str, concept: str) -> list[Question]:
        return shuffled(self._in_subject(self.by_concept.get(concept.lower(), []), subject), self.rng)

    def by_related_concepts(self, subject: str, concept: str) -> list[Question]:
        found: list[Question] = []
        for related in related_concepts(concept):
            related = related.lower()
            for indexed, questions in self.by_concept.items():
                if indexed == related or related in indexed:
                    found.extend(self._in_subject(questions, subject))
        return shuffled(found, self.rng)

    def by_chapter(self, subject: str, chapter: str) -> list[Question]:
        pool = self.by_subject.get(subject.lower(), [])
        return shuffled([q for q in pool if q.chapter == chapter], self.rng)

    def find_similar(self, subject: str, concept: str, limit: int = 5,
                     chapter: Optional[str] = None) -> list[Question]:
        """PYQs resembling a missed concept: same concept, then related, then same chapter."""
        candidates = self.by_exact_concept(subject, concept)
        if len(candidates) < limit:
            candidates += self.by_related_concepts(subject, concept)
        if chapter and len(candidates) < limit:
            candidates += self.by_chapter(subject, chapter)

        seen = set()
        results = []
        for q in candidates:
            key = _dedupe_key(q)
            if key in seen:
                continue
            seen.add(key)
            results.append(replace(
                q,
                source="similar_pyq",
                similarity_reason=self._reason(q, concept, chapter),
            ))
            if len(results) >= limit:
                break
        logger.info("Found %d similar PYQs for %s - %s", len(results), subject, concept)
        return results

    @staticmethod
    def _reason(q: Question, concept: str, chapter: Optional[str]) -> str:
        if q.concept.lower() == concept.lower():
            return "Same concept"
        if chapter and q.chapter == chapter:
            return "Same chapter"
        return "Related concept"

    def search(self, term: str, subject: Optional[str] = None, limit: int = 10) -> list[Question]:
        """PYQs whose text, concept or chapter contains ``term``."""
        term = term.lower()
        pool = (
            self.by_subject.get(subject.lower(), []) if subject
            else [q for qs in self.by_subject.values() for q in qs]
        )
        matches = [
            q for q in pool
            if term in q.text.lower() or term in q.concept.lower() or term in q.chapter.lower()
        ]
        return matches[:limit]

    def stats(self) -> dict:
        return {
            "total_pyqs": sum(len(v) for v in self.by_subject.values()),
            "by_subject": {s: len(v) for s, v in self.by_subject.items()},
            "by_year": {y: len(v) for y, v in self.by_year.items()},
            "concepts": len(self.by_concept),
            "by_difficulty": {d: len(v) for d, v in self.by_difficulty.items()},
        }

    def reuse_recommendations(self, wrong_records: list[WrongQuestionRecord],
                              subject: str, chapter: str) -> list[dict]:
        """Retry each missed PYQ, plus up to three PYQs similar to it."""
        recommendations = []
        for wrong in wrong_records:
            if wrong.source != "pyq" or wrong.subject != subject or wrong.chapter != chapter:
                continue
            recommendations.append({
                "type": "retry_same_pyq",
                "question_id": wrong.question_id,
                "reason": f"You got this PYQ wrong {wrong.mistake_count} times",
                "priority": "high" if wrong.mistake_count > 2 else "medium",
            })
            for similar in self.find_similar(subject, wrong.concept_tag, 3, chapter):
                if similar.id == wrong.question_id:
                    continue
                recommendations.append({
                    "type": "similar_pyq",
                    "question_id": similar.id,
                    "reason": f"Similar to PYQ you got wrong ({wrong.concept_tag})",
                    "priority": "medium",
                    "original_mistake_id": wrong.question_id,
                })
        return recommendations
