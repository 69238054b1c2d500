# tests/test_mistakes.py
import json

from cuet_prep.config import MISTAKE_LEDGER_KEY
from cuet_prep.errors import StorageError
from cuet_prep.mistakes import MistakeStore, improvement_trend
from cuet_prep.models import AttemptRecord
from cuet_prep.schedule import DAY_MS, MINUTE_MS


class BrokenStore:
    """Store that refuses every read and write."""

    def get(self, key):
        raise StorageError("disk gone")

    def set(self, key, value):
        raise StorageError("disk gone")


def _miss(store, qid="q1", concept="Coulomb Law", source="pyq", chapter="Electrostatics"):
    return store.record_attempt(
        qid, "Physics", chapter, is_correct=False, selected_option_index=2,
        correct_option_index=0, concept_tag=concept, source=source,
    )


def test_three_mistakes_share_one_record(memory_store, clock):
    store = MistakeStore(memory_store, clock=clock)
    for _ in range(3):
        _miss(store)
        clock.advance(1000)
    wrong = store.get_wrong_questions("Physics", "Electrostatics")
    assert len(wrong) == 1
    assert wrong[0].mistake_count == 3
    assert store.get_pyq_mistakes("Physics", "Electrostatics")["count"] == 3


def test_attempts_persist_across_instances(memory_store, clock):
    _miss(MistakeStore(memory_store, clock=clock))
    assert MISTAKE_LEDGER_KEY in memory_store.data
    fresh = MistakeStore(memory_store, clock=clock)
    assert fresh.get_summary()["total_attempts"] == 1
    assert fresh.get_summary()["unresolved_mistakes"] == 1


def test_missing_concept_tag_defaults_to_chapter(memory_store, clock):
    store = MistakeStore(memory_store, clock=clock)
    store.record_attempt("q9", "Physics", "Electrostatics", is_correct=False)
    assert store.attempt_history()[0].concept_tag == "Electrostatics"


def test_attempt_history_newest_first(memory_store, clock):
    store = MistakeStore(memory_store, clock=clock)
    _miss(store, "q1")
    clock.advance(10)
    _miss(store, "q2")
    history = store.attempt_history()
    assert [a.question_id for a in history] == ["q2", "q1"]


def test_review_gating_single_mistake(memory_store, clock):
    store = MistakeStore(memory_store, clock=clock)
    _miss(store)
    start = clock.now
    assert store.get_mistakes_for_review("Physics", "Electrostatics", now=start + MINUTE_MS) == []
    ready = store.get_mistakes_for_review("Physics", "Electrostatics", now=start + 4 * MINUTE_MS)
    assert len(ready) == 1


def test_review_gating_two_mistakes_wait_a_day(memory_store, clock):
    store = MistakeStore(memory_store, clock=clock)
    _miss(store)
    _miss(store)
    start = clock.now
    assert store.get_mistakes_for_review("Physics", "Electrostatics", now=start + 4 * MINUTE_MS) == []
    assert len(store.get_mistakes_for_review("Physics", "Electrostatics", now=start + DAY_MS)) == 1


def test_correct_answer_resolves_mistake(memory_store, clock):
    store = MistakeStore(memory_store, clock=clock)
    _miss(store)
    store.record_attempt("q1", "Physics", "Electrostatics", is_correct=True,
                         concept_tag="Coulomb Law")
    assert store.get_wrong_questions("Physics", "Electrostatics") == []
    assert store.get_summary()["total_mistakes"] == 1


def test_correct_variant_resolves_original(memory_store, clock):
    store = MistakeStore(memory_store, clock=clock)
    _miss(store)
    store.record_attempt("variant_q1", "Physics", "Electrostatics", is_correct=True,
                         source="variant", original_question_id="q1")
    assert store.get_wrong_questions("Physics", "Electrostatics") == []


def test_new_mistake_reopens_resolved_question(memory_store, clock):
    store = MistakeStore(memory_store, clock=clock)
    _miss(store)
    store.mark_resolved("q1")
    assert store.get_wrong_questions("Physics", "Electrostatics") == []
    _miss(store)
    wrong = store.get_wrong_questions("Physics", "Electrostatics")
    assert wrong[0].mistake_count == 2
    assert wrong[0].is_resolved is False


def test_wrong_questions_sorted_by_count(memory_store, clock):
    store = MistakeStore(memory_store, clock=clock)
    _miss(store, "q1")
    _miss(store, "q2")
    _miss(store, "q2")
    wrong = store.get_wrong_questions("Physics", "Electrostatics")
    assert [w.question_id for w in wrong] == ["q2", "q1"]


def test_weak_concepts_come_from_chapter_aggregate(memory_store, clock):
    store = MistakeStore(memory_store, clock=clock)
    _miss(store, "q1", concept="Gauss Law")
    _miss(store, "q2", concept="Coulomb Law")
    _miss(store, "q3", concept="Coulomb Law")
    weak = store.get_weak_concepts("Physics", "Electrostatics")
    assert [cm.concept for cm in weak] == ["Coulomb Law", "Gauss Law"]
    assert weak[0].questions == {"q2", "q3"}
    # substring lookup still works against concept names
    assert [cm.concept for cm in store.get_concept_mistakes("Physics", "gauss")] == ["Gauss Law"]


def test_non_pyq_mistakes_skip_pyq_aggregate(memory_store, clock):
    store = MistakeStore(memory_store, clock=clock)
    _miss(store, source="ai")
    assert store.get_pyq_mistakes("Physics", "Electrostatics")["count"] == 0


def test_learning_analytics(memory_store, clock):
    store = MistakeStore(memory_store, clock=clock)
    _miss(store, "q1")
    store.record_attempt("q2", "Physics", "Electrostatics", is_correct=True)
    analytics = store.get_learning_analytics("Physics", "Electrostatics")
    assert analytics["total_attempts"] == 2
    assert analytics["accuracy"] == 50
    assert analytics["questions_needing_review"] == 1
    assert analytics["improvement_trend"] == "insufficient_data"


def test_improvement_trend_detects_direction():
    def attempts(pattern):
        return [
            AttemptRecord(id=str(i), question_id="q", subject="Physics", chapter="c",
                          concept_tag="c", source="pyq", selected_option_index=0,
                          correct_option_index=0, is_correct=ok, timestamp=i)
            for i, ok in enumerate(pattern)
        ]
    assert improvement_trend(attempts([True] * 10 + [False] * 10)) == "improving"
    assert improvement_trend(attempts([False] * 10 + [True] * 10)) == "declining"
    assert improvement_trend(attempts([True] * 10)) == "stable"


def test_cleanup_drops_old_attempts_and_resolved(memory_store, clock):
    store = MistakeStore(memory_store, clock=clock)
    _miss(store, "old")
    store.mark_resolved("old")
    _miss(store, "still_wrong")
    clock.advance(31 * DAY_MS)
    _miss(store, "recent")
    removed = store.cleanup_old_data()
    assert removed == {"attempts": 2, "wrong_questions": 1}
    ids = {w.question_id for w in store.get_wrong_questions("Physics", "Electrostatics")}
    assert ids == {"still_wrong", "recent"}


def test_export_data_writes_json(memory_store, clock, tmp_path):
    store = MistakeStore(memory_store, clock=clock)
    _miss(store)
    path = store.export_data(str(tmp_path / "backup" / "ledger.json"))
    data = json.loads(path.read_text())
    assert len(data["wrongQuestions"]) == 1
    assert data["wrongQuestions"][0]["mistake_count"] == 1


def test_malformed_ledger_starts_empty(memory_store, clock):
    memory_store.set(MISTAKE_LEDGER_KEY, "{not json")
    store = MistakeStore(memory_store, clock=clock)
    assert store.get_summary()["total_attempts"] == 0
    _miss(store)
    assert store.get_summary()["total_attempts"] == 1


def test_broken_store_keeps_working_in_memory(clock):
    store = MistakeStore(BrokenStore(), clock=clock)
    _miss(store)
    assert store.save() is False
    assert store.get_wrong_questions("Physics", "Electrostatics")[0].question_id == "q1"


def test_record_prebuilt_attempt(memory_store, clock):
    store = MistakeStore(memory_store, clock=clock)
    attempt = AttemptRecord(
        id="ignored", question_id="q7", subject="Chemistry", chapter="Solutions",
        concept_tag="Molarity", source="pyq", selected_option_index=1,
        correct_option_index=0, is_correct=False, timestamp=0,
    )
    new_id = store.record(attempt)
    assert new_id != "ignored"
    assert store.attempt_history()[0].timestamp == clock.now
    assert store.attempts_for_question("q7") == 1
