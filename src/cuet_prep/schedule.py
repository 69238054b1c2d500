"""Spaced repetition intervals for previously missed questions."""

MINUTE_MS = 60 * 1000
DAY_MS = 24 * 60 * MINUTE_MS

INTERVALS_MS = {
    "immediate": 0,
    "short": 3 * MINUTE_MS,
    "medium": DAY_MS,
    "long": 7 * DAY_MS,
}


def review_interval_ms(mistake_count: int) -> int:
    """Minimum wait before a missed question comes back for review.

    Three or more mistakes wait a week, exactly two wait a day, anything
    else comes back after three minutes.
    """
    if mistake_count >= 3:
        return INTERVALS_MS["long"]
    if mistake_count == 2:
        return INTERVALS_MS["medium"]
    return INTERVALS_MS["short"]


def review_schedule(mistake_count: int, last_attempt_at: int, now: int) -> dict:
    """Calculate review readiness for one missed question.

    Args:
        mistake_count: Number of incorrect attempts on the question
        last_attempt_at: Epoch ms of the most recent incorrect attempt
        now: Epoch ms to evaluate against

    Returns:
        Dict with is_ready, next_review_at, interval, priority.
    """
    interval = review_interval_ms(mistake_count)
    if mistake_count >= 3:
        priority = "high"
    elif mistake_count == 2:
        priority = "medium"
    else:
        priority = "low"
    return {
        "is_ready": now - last_attempt_at >= interval,
        "next_review_at": last_attempt_at + interval,
        "interval": interval,
        "priority": priority,
    }
