# tests/test_models.py
from cuet_prep.models import (
    AttemptRecord, ChapterMistake, ConceptMistake, Question, WrongQuestionRecord,
    attempt_source_for,
)


def _attempt(**overrides):
    data = dict(
        id="attempt_1", question_id="q1", subject="Physics", chapter="Electrostatics",
        concept_tag="Coulomb Law", source="pyq", selected_option_index=1,
        correct_option_index=0, is_correct=False, timestamp=1000,
    )
    data.update(overrides)
    return AttemptRecord(**data)


def _question(**overrides):
    data = dict(
        id="q1", subject="Physics", chapter="Electrostatics", concept="Coulomb Law",
        text="If the distance between two point charges is doubled, the force becomes:",
        options=["Half", "One-fourth", "Double", "Four times"], correct_index=1,
        explanation="F is proportional to 1/r².",
    )
    data.update(overrides)
    return Question(**data)


def test_attempt_record_dict_roundtrip_ignores_unknown_keys():
    data = _attempt().to_dict()
    data["legacy_field"] = "ignored"
    restored = AttemptRecord.from_dict(data)
    assert restored == _attempt()


def test_wrong_question_mistake_count_tracks_attempts():
    record = WrongQuestionRecord(
        question_id="q1", subject="Physics", chapter="Electrostatics",
        concept_tag="Coulomb Law", source="pyq", first_mistake_at=1000,
        last_attempted_at=3000, attempts=[_attempt(), _attempt(id="attempt_2", timestamp=3000)],
    )
    assert record.mistake_count == 2
    data = record.to_dict()
    assert data["mistake_count"] == 2
    restored = WrongQuestionRecord.from_dict(data)
    assert restored.mistake_count == 2
    assert isinstance(restored.attempts[0], AttemptRecord)


def test_aggregate_sets_survive_serialization():
    cm = ConceptMistake(subject="Physics", concept="Coulomb Law", questions={"q2", "q1"})
    assert cm.to_dict()["questions"] == ["q1", "q2"]
    assert ConceptMistake.from_dict(cm.to_dict()).questions == {"q1", "q2"}

    ch = ChapterMistake(subject="Physics", chapter="Electrostatics", concepts={"Gauss Law"})
    assert ChapterMistake.from_dict(ch.to_dict()).concepts == {"Gauss Law"}


def test_correct_option_follows_index():
    assert _question().correct_option == "One-fourth"


def test_attempt_source_for_pipeline_sources():
    assert attempt_source_for(_question(source="mistake_variant")) == "variant"
    assert attempt_source_for(_question(source="exact_pyq")) == "pyq"
    assert attempt_source_for(_question(source="bank", is_pyq=True)) == "pyq"
    assert attempt_source_for(_question(source="concept_aware_ai")) == "ai"
    assert attempt_source_for(_question(source="cuet_template")) == "template"
    assert attempt_source_for(_question(source="emergency_unique")) == "fallback"
