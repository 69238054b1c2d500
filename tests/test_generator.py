# tests/test_generator.py
import asyncio
import random

from cuet_prep.errors import GenerationError
from cuet_prep.generator import QuestionGenerator
from cuet_prep.models import Question
from cuet_prep.validation import is_placeholder, question_problems


class FakeRemote:
    def __init__(self, questions=None, error=None, available=True):
        self.questions = questions or []
        self.error = error
        self.is_available = available
        self.calls = []

    async def generate(self, subject, chapter, count, difficulty="medium", prompt_hint=None):
        self.calls.append((subject, chapter, count, difficulty, prompt_hint))
        if self.error:
            raise self.error
        return list(self.questions)


def _remote_question(i):
    return Question(
        id=f"groq-{i}", subject="Physics", chapter="Electrostatics", concept="Electrostatics",
        text=f"Remote question number {i} about charges?",
        options=["Alpha", "Beta", "Gamma", "Delta"], correct_index=0,
        explanation="Alpha is right.", source="groq",
    )


def test_template_chapter_has_no_placeholders():
    gen = QuestionGenerator(rng=random.Random(0))
    questions = gen.generate("Physics", "Electrostatics", 10)
    assert len(questions) == 10
    for q in questions:
        assert question_problems(q) == []
        assert not any(is_placeholder(o) for o in q.options)


def test_unknown_chapter_yields_distinct_valid_questions():
    gen = QuestionGenerator(rng=random.Random(0))
    questions = gen.generate("Physics", "Astrophysics of Black Holes", 20)
    assert len(questions) == 20
    assert len({q.text for q in questions}) == 20
    assert all(question_problems(q) == [] for q in questions)


def test_unknown_subject_uses_generic_stems():
    gen = QuestionGenerator(rng=random.Random(0))
    questions = gen.generate("Economics", "Demand", 5)
    assert len(questions) == 5
    assert all(q.source == "emergency_unique" for q in questions)


def test_generate_zero_count():
    assert QuestionGenerator().generate("Physics", "Electrostatics", 0) == []


def test_emergency_texts_unique_up_to_capacity():
    gen = QuestionGenerator(rng=random.Random(0))
    capacity = gen.emergency_capacity("Chemistry")
    assert capacity == 30
    texts = {gen.emergency_question("Chemistry", "Polymers", i).text for i in range(capacity)}
    assert len(texts) == capacity


def test_emergency_question_correct_option_survives_shuffle():
    gen = QuestionGenerator(rng=random.Random(5))
    q = gen.emergency_question("Physics", "Optics", 0)
    assert q.correct_option == "Electric field strength"
    assert q.id.startswith("emergency_unique_physics_optics")


def test_generate_for_concept_uses_template_when_known():
    gen = QuestionGenerator(rng=random.Random(0))
    q = gen.generate_for_concept("Physics", "Electrostatics", "Coulomb Law")
    assert q.source == "cuet_template"
    assert q.concept == "Coulomb Law"


def test_generate_for_concept_falls_back_to_emergency():
    gen = QuestionGenerator(rng=random.Random(0))
    q = gen.generate_for_concept("English", "Poetry", "Imagery")
    assert q.source == "emergency_unique"
    assert q.concept == "Imagery"
    assert "Imagery" in q.text


def test_cuet_questions_prefer_remote():
    remote = FakeRemote([_remote_question(i) for i in range(3)])
    gen = QuestionGenerator(remote=remote, rng=random.Random(0))
    questions = asyncio.run(gen.generate_cuet_questions("Physics", "Electrostatics", 5))
    assert len(questions) == 5
    assert [q.source for q in questions[:3]] == ["cuet_ai"] * 3
    assert remote.calls[0][2] == 5
    assert "Use concepts:" in remote.calls[0][4]


def test_cuet_questions_survive_remote_failure():
    remote = FakeRemote(error=GenerationError("boom"))
    gen = QuestionGenerator(remote=remote, rng=random.Random(0))
    questions = asyncio.run(gen.generate_cuet_questions("Physics", "Electrostatics", 4))
    assert len(questions) == 4
    assert all(q.source != "cuet_ai" for q in questions)


def test_cuet_questions_skip_remote_outside_syllabus():
    remote = FakeRemote([_remote_question(0)])
    gen = QuestionGenerator(remote=remote, rng=random.Random(0))
    asyncio.run(gen.generate_cuet_questions("Physics", "Unknown Chapter", 3))
    assert remote.calls == []
