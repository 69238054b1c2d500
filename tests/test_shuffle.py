# tests/test_shuffle.py
import random

import pytest

from cuet_prep.models import Question
from cuet_prep.shuffle import (
    build_options, shuffle_keeping_marked_value, shuffle_question_options, shuffled,
)


def test_shuffled_is_a_permutation_and_leaves_input_alone():
    items = ["a", "b", "c", "d"]
    out = shuffled(items, random.Random(3))
    assert sorted(out) == items
    assert items == ["a", "b", "c", "d"]


def test_marked_value_index_is_correct_for_many_seeds():
    items = ["4", "8", "16", "32"]
    for seed in range(50):
        out, index = shuffle_keeping_marked_value(items, "16", random.Random(seed))
        assert out[index] == "16"


def test_marked_value_must_be_present():
    with pytest.raises(ValueError):
        shuffle_keeping_marked_value(["a", "b"], "z")


def test_build_options_puts_correct_answer_somewhere():
    options, index = build_options("Ohm", ["Volt", "Ampere", "Watt"], random.Random(7))
    assert len(options) == 4
    assert options[index] == "Ohm"


def test_shuffle_question_options_keeps_answer():
    q = Question(
        id="q1", subject="Physics", chapter="Electrostatics", concept="Coulomb Law",
        text="If the distance between two point charges is doubled, the force becomes:",
        options=["Half", "One-fourth", "Double", "Four times"], correct_index=1,
        explanation="F is proportional to 1/r².",
    )
    for seed in range(20):
        out = shuffle_question_options(q, random.Random(seed))
        assert out.correct_option == "One-fourth"
        assert out.original_correct_index == 1
        assert out.was_shuffled is True
    assert q.was_shuffled is False
