import os
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=False)


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


OPENAI_API_KEY = str(os.getenv("OPENAI_API_KEY") or "").strip()
OPENAI_BASE_URL = str(os.getenv("OPENAI_BASE_URL") or "").strip() or None
MODEL_NAME = str(os.getenv("MODEL_NAME") or "gpt-4.1-mini").strip()
LLM_TIMEOUT_SEC = _env_float("LLM_TIMEOUT_SEC", 12.0)
QA_MODE = os.getenv("QA_MODE", "false").lower() == "true"

# Remote generation service; empty disables the remote tier.
QUESTION_SERVICE_URL = str(os.getenv("QUESTION_SERVICE_URL") or "").strip().rstrip("/")
QUESTION_SERVICE_TIMEOUT_SEC = _env_float("QUESTION_SERVICE_TIMEOUT_SEC", 15.0)

HUME_API_KEY = str(os.getenv("HUME_API_KEY") or "").strip()
HUME_BASE_URL = str(os.getenv("HUME_BASE_URL") or "https://api.hume.ai/v0").strip().rstrip("/")

AZURE_TTS_KEY = str(os.getenv("AZURE_TTS_KEY") or "").strip()
AZURE_TTS_REGION = str(os.getenv("AZURE_TTS_REGION") or "eastus").strip()
WHISPER_MODEL = str(os.getenv("WHISPER_MODEL") or "whisper-1").strip()

NOVELTY_MAX_ENTRIES = max(1, _env_int("NOVELTY_MAX_ENTRIES", 50))
NOVELTY_PROMPT_WINDOW = max(1, _env_int("NOVELTY_PROMPT_WINDOW", 10))
CONVERSATION_CAPACITY = max(1, _env_int("CONVERSATION_CAPACITY", 1000))
CONVERSATION_IDLE_TTL_SEC = max(60, _env_int("CONVERSATION_IDLE_TTL_SEC", 3600))

CAPTURE_POLL_INTERVAL_SEC = _env_float("CAPTURE_POLL_INTERVAL_SEC", 1.0)
CAPTURE_MAX_POLL_ATTEMPTS = max(1, _env_int("CAPTURE_MAX_POLL_ATTEMPTS", 30))
CAPTURE_FETCH_ATTEMPTS = max(1, _env_int("CAPTURE_FETCH_ATTEMPTS", 3))
CAPTURE_FETCH_BACKOFF_SEC = _env_float("CAPTURE_FETCH_BACKOFF_SEC", 2.0)
CAPTURE_DELAY_AFTER_QUESTION_SEC = _env_float("CAPTURE_DELAY_AFTER_QUESTION_SEC", 2.0)
CAPTURE_DELAY_AFTER_ANSWER_SEC = _env_float("CAPTURE_DELAY_AFTER_ANSWER_SEC", 1.0)
CAMERA_INDEX = _env_int("CAMERA_INDEX", 0)

INTERVIEW_TOTAL_MINUTES = max(1, _env_int("INTERVIEW_TOTAL_MINUTES", 3))
INTERVIEW_BREAK_SECONDS = max(1, _env_int("INTERVIEW_BREAK_SECONDS", 20))
TICK_INTERVAL_SEC = _env_float("TICK_INTERVAL_SEC", 1.0)
