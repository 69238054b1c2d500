"""Progress dashboard scoring, engagement and statistics."""
from collections import defaultdict
from typing import Optional

from cuet_prep.mistakes import MistakeStore, now_ms
from cuet_prep.models import AttemptRecord
from cuet_prep.schedule import DAY_MS
from cuet_prep.standards import mastery_level

RECENT_ATTEMPTS = 50


def get_readiness_label(score: float) -> str:
    if score >= 80:
        return "READY"
    elif score >= 65:
        return "LIKELY"
    elif score >= 50:
        return "NEEDS WORK"
    return "NOT READY"


def get_readiness_color(score: float) -> str:
    if score >= 80:
        return "green"
    elif score >= 65:
        return "yellow"
    elif score >= 50:
        return "dark_orange"
    return "red"


def _accuracy(attempts: list[AttemptRecord]) -> float:
    if not attempts:
        return 0.0
    return sum(1 for a in attempts if a.is_correct) / len(attempts) * 100


def calc_readiness_score(mistakes: MistakeStore) -> float:
    return round(_accuracy(mistakes.attempt_history()), 1)


def get_chapter_scores(mistakes: MistakeStore, subject: Optional[str] = None) -> list[dict]:
    """Accuracy per (subject, chapter), weakest first."""
    grouped: dict[tuple[str, str], list[AttemptRecord]] = defaultdict(list)
    for a in mistakes.attempt_history():
        if subject is None or a.subject == subject:
            grouped[(a.subject, a.chapter)].append(a)
    results = []
    for (subj, chapter), attempts in grouped.items():
        score = round(_accuracy(attempts), 1)
        results.append({
            "subject": subj,
            "chapter": chapter,
            "total": len(attempts),
            "score": score,
            "label": get_readiness_label(score),
            "mastery": mastery_level(score),
        })
    results.sort(key=lambda r: r["score"])
    return results


# --- engagement ---

def accuracy_trend(attempts: list[AttemptRecord]) -> float:
    if len(attempts) < 10:
        return 75.0
    recent = attempts[:10]
    previous = attempts[10:20]
    if not previous:
        return 50.0
    trend = _accuracy(recent) - _accuracy(previous)
    return max(0.0, 50 + trend)


def session_frequency(attempts: list[AttemptRecord], now: int) -> float:
    if any(a.timestamp > now - DAY_MS for a in attempts):
        return 100.0
    if any(a.timestamp > now - 3 * DAY_MS for a in attempts):
        return 75.0
    if any(a.timestamp > now - 7 * DAY_MS for a in attempts):
        return 50.0
    return 25.0


def variety_score(attempts: list[AttemptRecord]) -> float:
    subjects = {a.subject for a in attempts}
    chapters = {(a.subject, a.chapter) for a in attempts}
    modes = {a.mode for a in attempts}
    return float(min(100, len(subjects) * 20 + len(chapters) * 5 + len(modes) * 10))


def calc_engagement_score(mistakes: MistakeStore, now: Optional[int] = None) -> float:
    """Weighted engagement: accuracy trend 40%, frequency 30%, variety 30%."""
    now = now_ms() if now is None else now
    recent = mistakes.attempt_history()[:RECENT_ATTEMPTS]
    if not recent:
        return 100.0
    score = (
        accuracy_trend(recent) * 0.4
        + session_frequency(recent, now) * 0.3
        + variety_score(recent) * 0.3
    )
    return round(max(0.0, min(100.0, score)), 1)


def get_recommendations(engagement: float, session_count: int) -> list[dict]:
    recommendations = []
    if engagement < 50:
        recommendations.append({
            "type": "variety",
            "message": "Try practicing different subjects to maintain engagement",
            "priority": "high",
        })
    if session_count > 100:
        recommendations.append({
            "type": "milestone",
            "message": f"Congratulations! You've completed {session_count} practice sessions",
            "priority": "celebration",
        })
    return recommendations


def get_study_stats(mistakes: MistakeStore, session_count: int = 0) -> dict:
    summary = mistakes.get_summary()
    return {
        "sessions_completed": session_count,
        "questions_answered": summary["total_attempts"],
        "unresolved_mistakes": summary["unresolved_mistakes"],
        "concepts_needing_review": summary["concepts_needing_review"],
        "avg_accuracy": calc_readiness_score(mistakes),
    }
