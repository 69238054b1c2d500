# tests/test_variation.py
import json
import random

from cuet_prep.config import SESSION_COUNT_KEY
from cuet_prep.models import Question
from cuet_prep.variation import VariationEngine, exposure_key, variation_level


def _q(subject="Physics", text="A body moves 10 m in 2 s. Its motion is:",
       options=None, explanation="Equal distances in equal times.", **kw):
    return Question(
        id=kw.pop("id", "q1"), subject=subject, chapter=kw.pop("chapter", "Kinematics"),
        concept=kw.pop("concept", "Uniform Motion"), text=text,
        options=options or ["Uniform", "Accelerated", "Retarded", "Circular"],
        correct_index=kw.pop("correct_index", 0), explanation=explanation, **kw,
    )


def test_variation_level_bands():
    assert variation_level(0) == "minimal"
    assert variation_level(1) == "minimal"
    assert variation_level(3) == "moderate"
    assert variation_level(7) == "significant"
    assert variation_level(8) == "maximum"


def test_vary_keeps_identity_and_answer(memory_store):
    engine = VariationEngine(memory_store, rng=random.Random(4))
    original = _q()
    varied = engine.vary(original, "Physics", 0)
    assert varied.id == "q1"
    assert varied.original_mistake_id == "q1"
    assert varied.variation_level == "minimal"
    assert varied.correct_option == "Uniform"
    assert "10 m" not in varied.text


def test_physics_numbers_untouched_when_options_are_numeric(memory_store):
    engine = VariationEngine(memory_store, rng=random.Random(4))
    original = _q(text="A car covers 100 m in 5 s. Its speed is:",
                  options=["20 m/s", "10 m/s", "5 m/s", "25 m/s"])
    varied = engine.vary(original, "Physics", 0)
    assert "100 m in 5 s" in varied.text


def test_chemistry_swap_skips_text_named_in_options(memory_store):
    engine = VariationEngine(memory_store, rng=random.Random(1))
    original = _q(subject="Chemistry", text="Which is more soluble in water, NaCl or KCl?",
                  options=["NaCl", "KCl", "Both equally", "Neither"],
                  explanation="Potassium chloride dissolves more readily.", correct_index=1)
    varied = engine.vary(original, "Chemistry", 0)
    assert varied.text == original.text
    assert varied.correct_option == "KCl"


def test_english_starter_swap(memory_store):
    engine = VariationEngine(memory_store, rng=random.Random(0))
    original = _q(subject="English", text="According to the passage, the author feels:",
                  options=["Hopeful", "Angry", "Indifferent", "Confused"],
                  explanation="The closing lines are optimistic.")
    varied = engine.vary(original, "English", 0)
    assert varied.text.endswith(", the author feels:")


def test_repeated_mistakes_also_shuffle_options(memory_store):
    engine = VariationEngine(memory_store, rng=random.Random(9))
    varied = engine.vary(_q(), "Physics", 5)
    assert varied.was_shuffled is True
    assert varied.correct_option == "Uniform"
    assert varied.variation_level == "significant"


def test_existing_original_mistake_id_is_kept(memory_store):
    engine = VariationEngine(memory_store)
    varied = engine.vary(_q(id="variant_q0", original_mistake_id="q0"), "Physics")
    assert varied.original_mistake_id == "q0"


def test_exposure_retires_question_after_five_showings(memory_store):
    engine = VariationEngine(memory_store)
    questions = [_q(id="a"), _q(id="b")]
    for _ in range(5):
        assert len(engine.filter_overexposed(questions, "Physics", "Kinematics")) == 2
    assert engine.filter_overexposed(questions, "Physics", "Kinematics") == []
    assert engine.exposure_counts("Physics", "Kinematics") == {"a": 5, "b": 5}


def test_exposure_is_scoped_per_chapter(memory_store):
    engine = VariationEngine(memory_store)
    memory_store.set(exposure_key("Physics", "Kinematics"), json.dumps({"a": 5}))
    assert engine.filter_overexposed([_q(id="a")], "Physics", "Optics") != []
    assert engine.filter_overexposed([_q(id="a")], "Physics", "Kinematics") == []


def test_corrupt_exposure_data_resets(memory_store):
    memory_store.set(exposure_key("Physics", "Kinematics"), "not json")
    engine = VariationEngine(memory_store)
    assert len(engine.filter_overexposed([_q()], "Physics", "Kinematics")) == 1


def test_session_count(memory_store):
    engine = VariationEngine(memory_store)
    assert engine.session_count() == 0
    assert engine.increment_session_count() == 1
    assert engine.increment_session_count() == 2
    assert memory_store.get(SESSION_COUNT_KEY) == "2"


def test_function_rename_reaches_derivative(memory_store):
    original = _q(subject="Mathematics", text="If f(x) = x³ + 2x² - 5x + 1, then f'(x) is:",
                  options=["3x² + 4x - 5", "3x² + 4x + 5", "x³ + 4x - 5", "3x + 4"],
                  explanation="Using the power rule: d/dx(x³) = 3x², d/dx(2x²) = 4x, "
                              "d/dx(-5x) = -5, d/dx(1) = 0")
    names = set()
    for seed in range(30):
        varied = VariationEngine(memory_store, rng=random.Random(seed)).vary(original, "Mathematics")
        name = varied.text[3]
        names.add(name)
        assert varied.text.startswith(f"If {name}(x) = ")
        assert f"{name}'(x) is:" in varied.text
        assert varied.correct_option == "3x² + 4x - 5"
    assert names - {"f"}


def test_plain_function_stem_is_renamed(memory_store):
    original = _q(subject="Mathematics", text="The minimum value of f(x) = x² - 4x + 7 is:",
                  options=["3", "7", "4", "-3"], explanation="Completing the square: (x - 2)² + 3.")
    texts = {
        VariationEngine(memory_store, rng=random.Random(seed)).vary(original, "Mathematics").text
        for seed in range(20)
    }
    assert len(texts) > 1
    assert all(t.endswith(" = x² - 4x + 7 is:") for t in texts)
