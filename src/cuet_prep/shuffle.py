"""Value-preserving shuffles for answer options."""
import random
from dataclasses import replace
from typing import Optional, Sequence, TypeVar

from cuet_prep.models import Question

T = TypeVar("T")


def shuffled(items: Sequence[T], rng: Optional[random.Random] = None) -> list[T]:
    """Return a uniformly shuffled copy."""
    out = list(items)
    (rng or random).shuffle(out)
    return out


def shuffle_keeping_marked_value(items: Sequence[T], marked: T,
                                 rng: Optional[random.Random] = None) -> tuple[list[T], int]:
    """Shuffle items and return the new index of ``marked``.

    The index is found by value after shuffling, so it stays correct no
    matter where the marked item started.
    """
    out = shuffled(items, rng)
    try:
        return out, out.index(marked)
    except ValueError:
        raise ValueError(f"marked value {marked!r} not among items") from None


def build_options(correct: str, distractors: Sequence[str],
                  rng: Optional[random.Random] = None) -> tuple[list[str], int]:
    return shuffle_keeping_marked_value([correct, *distractors], correct, rng)


def shuffle_question_options(question: Question, rng: Optional[random.Random] = None) -> Question:
    """Copy of the question with options reordered and the key relocated."""
    options, index = shuffle_keeping_marked_value(question.options, question.correct_option, rng)
    return replace(
        question,
        options=options,
        correct_index=index,
        original_correct_index=question.correct_index,
        was_shuffled=True,
    )
