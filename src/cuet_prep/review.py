"""Weak concept identification and the spaced-repetition review queue."""
from typing import Optional

from cuet_prep.mistakes import MistakeStore
from cuet_prep.schedule import review_schedule


def get_weak_concepts(mistakes: MistakeStore, subject: Optional[str] = None,
                      limit: int = 10) -> list[dict]:
    """Concepts still needing review across chapters, most-missed first."""
    rows = []
    for ch in mistakes.chapter_mistakes(subject):
        for cm in mistakes.get_weak_concepts(ch.subject, ch.chapter):
            rows.append({
                "subject": cm.subject,
                "chapter": ch.chapter,
                "concept": cm.concept,
                "mistake_count": cm.mistake_count,
                "questions": len(cm.questions),
                "last_mistake_at": cm.last_mistake_at,
            })
    seen = set()
    unique = []
    for row in sorted(rows, key=lambda r: (r["mistake_count"], r["last_mistake_at"]), reverse=True):
        key = (row["subject"], row["concept"])
        if key not in seen:
            seen.add(key)
            unique.append(row)
    return unique[:limit]


def get_review_queue(mistakes: MistakeStore, subject: Optional[str] = None,
                     now: Optional[int] = None, include_waiting: bool = False) -> list[dict]:
    """Unresolved mistakes with their review schedule, highest priority first.

    Only questions whose wait has elapsed are returned unless
    ``include_waiting`` is set.
    """
    now = mistakes.clock() if now is None else now
    queue = []
    for ch in mistakes.chapter_mistakes(subject):
        for wrong in mistakes.get_wrong_questions(ch.subject, ch.chapter, limit=100):
            schedule = review_schedule(wrong.mistake_count, wrong.last_attempted_at, now)
            if not schedule["is_ready"] and not include_waiting:
                continue
            queue.append({
                "question_id": wrong.question_id,
                "subject": wrong.subject,
                "chapter": wrong.chapter,
                "concept": wrong.concept_tag,
                "mistake_count": wrong.mistake_count,
                **schedule,
            })
    order = {"high": 0, "medium": 1, "low": 2}
    queue.sort(key=lambda r: (order[r["priority"]], r["next_review_at"]))
    return queue
