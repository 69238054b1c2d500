"""Runtime configuration, read from the environment once at import."""
import os
from pathlib import Path

DEFAULT_DB_PATH = os.getenv(
    "CUET_PREP_DB", str(Path.home() / ".cuet_prep" / "cuet_prep.db")
)

# Remote question generator (OpenAI-compatible chat completions)
GROQ_API_KEY = os.getenv("GROQ_API_KEY", "")
GROQ_BASE_URL = os.getenv("GROQ_BASE_URL", "https://api.groq.com/openai/v1")
AI_MODEL = os.getenv("CUET_AI_MODEL", "llama-3.3-70b-versatile")
GROQ_TIMEOUT = float(os.getenv("GROQ_TIMEOUT", "30"))

LOG_LEVEL = os.getenv("CUET_LOG_LEVEL", "WARNING")

# Storage keys
MISTAKE_LEDGER_KEY = "cuet-mistake-memory"
SESSION_COUNT_KEY = "cuet-session-count"
EXPOSURE_KEY_PREFIX = "question-exposure"

# Engine limits
ATTEMPT_HISTORY_LIMIT = 1000
MAX_EXPOSURES = 5
CLEANUP_WINDOW_DAYS = 30
EMERGENCY_FLOOR = 10
