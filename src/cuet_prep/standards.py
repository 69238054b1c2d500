"""CUET exam patterns: question counts, time limits and mixing ratios per mode."""
from dataclasses import dataclass


@dataclass(frozen=True)
class MixingRatio:
    mistake: float
    pyq: float
    fresh: float


@dataclass(frozen=True)
class PracticeConfig:
    question_count: int
    time_limit_minutes: int
    mixing: MixingRatio
    description: str


PRACTICE_CONFIGS = {
    "daily": PracticeConfig(15, 20, MixingRatio(0.4, 0.3, 0.3),
                            "Smart daily practice targeting weak areas"),
    "chapter": PracticeConfig(20, 25, MixingRatio(0.5, 0.3, 0.2),
                              "Focused chapter practice with mistake reinforcement"),
    "pyq": PracticeConfig(25, 30, MixingRatio(0.2, 0.8, 0.0),
                          "Previous year questions with mistake-based selection"),
    "mock_full": PracticeConfig(200, 180, MixingRatio(0.3, 0.4, 0.3), "Full CUET simulation"),
    "mock_sectional": PracticeConfig(50, 45, MixingRatio(0.3, 0.4, 0.3), "Subject-wise sectional test"),
}
# Selection modes map onto the practice configs
PRACTICE_CONFIGS["mock"] = PRACTICE_CONFIGS["mock_sectional"]
MODES_FOR_PRACTICE = ("daily", "chapter", "pyq", "mock")

TIME_PER_QUESTION = {
    "Physics": 90,
    "Chemistry": 90,
    "Mathematics": 120,
    "English": 60,
    "General Test": 60,
}
DEFAULT_TIME_PER_QUESTION = 90

MASTERY_LEVELS = {"expert": 80, "proficient": 60, "developing": 30}

DIFFICULTY_PROGRESSION = {
    "beginner": {"easy": 0.5, "medium": 0.4, "hard": 0.1},
    "intermediate": {"easy": 0.3, "medium": 0.5, "hard": 0.2},
    "advanced": {"easy": 0.2, "medium": 0.4, "hard": 0.4},
}

STREAK_MAINTAIN = 70
STREAK_BONUS = 85
STREAK_PERFECT = 100


def practice_config(mode: str) -> PracticeConfig:
    return PRACTICE_CONFIGS.get(mode, PRACTICE_CONFIGS["chapter"])


def mixing_ratios(mode: str) -> MixingRatio:
    return practice_config(mode).mixing


def time_per_question(subject: str) -> int:
    """Seconds allotted per question in the subject."""
    return TIME_PER_QUESTION.get(subject, DEFAULT_TIME_PER_QUESTION)


def mastery_level(accuracy: float) -> str:
    if accuracy >= MASTERY_LEVELS["expert"]:
        return "expert"
    if accuracy >= MASTERY_LEVELS["proficient"]:
        return "proficient"
    if accuracy >= MASTERY_LEVELS["developing"]:
        return "developing"
    return "beginner"


def difficulty_distribution(level: str) -> dict:
    return DIFFICULTY_PROGRESSION.get(level, DIFFICULTY_PROGRESSION["intermediate"])


def meets_streak_requirement(accuracy: float) -> bool:
    return accuracy >= STREAK_MAINTAIN


def accuracy_bonus(accuracy: float) -> float:
    """XP multiplier for a session's accuracy."""
    if accuracy >= STREAK_PERFECT:
        return 2.0
    if accuracy >= STREAK_BONUS:
        return 1.5
    if accuracy >= STREAK_MAINTAIN:
        return 1.2
    return 1.0
