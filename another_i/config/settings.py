# another_i/config/settings.py

from dataclasses import dataclass
import os
from pathlib import Path

from dotenv import load_dotenv

# Expose BASE_DIR for other modules
BASE_DIR = Path(__file__).resolve().parents[2]
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)

PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"
CHAT_PROMPT_PATH = PROMPTS_DIR / "chat_system_prompt.txt"
SUMMARY_PROMPT_PATH = PROMPTS_DIR / "summary_prompt.txt"
TITLE_PROMPT_PATH = PROMPTS_DIR / "title_prompt.txt"

# Fixed by the application's behavior, not tunable per deployment.
CONVERSATION_TITLE_PREVIEW_CHARS = 30
AI_TITLE_MAX_CHARS = 20
IMPORT_ASSISTANT_PREVIEW_CHARS = 500
KEY_POINT_PREVIEW_CHARS = 50
SEARCH_RESULT_LIMIT = 20
SEARCH_EXCERPT_CONTEXT = 60


@dataclass
class Settings:
    # Storage
    db_path: str = str(BASE_DIR / "another_i" / "data" / "another_i.db")

    # Logging
    log_dir: str = str(BASE_DIR / "another_i" / "logs")
    log_level: str = "INFO"

    # Vendor calls
    http_timeout_seconds: float = 60.0
    max_output_tokens: int = 4096

    # Payload caps (most recent N messages are sent)
    max_chat_messages: int = 20
    max_summary_messages: int = 30


def _parse_float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
        # safeguard: enforce positive
        return value if value > 0 else default
    except ValueError:
        return default


def _parse_int_env(name: str, default: int, min_val: int = 0, max_val: int = 10) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
        # safeguard: clamp into sane range
        return max(min_val, min(max_val, value))
    except ValueError:
        return default


def load_settings() -> Settings:
    """
    Load configuration from environment variables (and defaults).

    Nothing here is required: AI provider credentials are supplied by the
    user at runtime and persisted with the rest of the local state.
    Ensures the DB directory exists.
    """
    defaults = Settings()

    # --- DB path (optional override) ---
    db_path_env = os.getenv("ANOTHER_I_DB_PATH", defaults.db_path).strip() or defaults.db_path
    db_path = Path(db_path_env)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    # --- Logging ---
    log_dir = os.getenv("ANOTHER_I_LOG_DIR", defaults.log_dir).strip() or defaults.log_dir
    raw_level = os.getenv("ANOTHER_I_LOG_LEVEL", "INFO").strip().upper() or "INFO"
    if raw_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raw_level = "INFO"

    # --- Vendor tuning knobs ---
    timeout_seconds = _parse_float_env("ANOTHER_I_HTTP_TIMEOUT_SECONDS", defaults.http_timeout_seconds)
    max_tokens = _parse_int_env("ANOTHER_I_MAX_TOKENS", defaults.max_output_tokens, min_val=16, max_val=200000)
    max_chat = _parse_int_env("ANOTHER_I_MAX_CHAT_MESSAGES", defaults.max_chat_messages, min_val=1, max_val=200)
    max_summary = _parse_int_env(
        "ANOTHER_I_MAX_SUMMARY_MESSAGES", defaults.max_summary_messages, min_val=1, max_val=200
    )

    return Settings(
        db_path=str(db_path),
        log_dir=log_dir,
        log_level=raw_level,
        http_timeout_seconds=timeout_seconds,
        max_output_tokens=max_tokens,
        max_chat_messages=max_chat,
        max_summary_messages=max_summary,
    )
