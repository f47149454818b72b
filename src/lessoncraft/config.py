"""Environment-backed settings for the model adapter, storage, and logging."""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_GEMINI_KEY_FILE = Path(".api_keys/Gemini.md")
DEFAULT_DB_PATH = Path(".lessoncraft/lessons.db")
DEFAULT_MODEL_NAME = "gemini-2.5-flash"

COMPONENT_NAME = "LessonComponent"
INVOCATION_MARKER = f"render(<{COMPONENT_NAME} />);"


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def resolve_gemini_api_key(key_file: Path = DEFAULT_GEMINI_KEY_FILE) -> str | None:
    """Resolve the Gemini API key from environment or fallback file.

    Resolution order:
    1. ``GEMINI_API_KEY`` environment variable.
    2. ``key_file`` plaintext contents.

    Returns:
        The non-empty API key when found, otherwise ``None``.
    """
    api_key = (os.getenv("GEMINI_API_KEY") or "").strip()
    if api_key:
        return api_key

    if key_file.exists():
        fallback_key = key_file.read_text(encoding="utf-8").strip()
        if fallback_key:
            return fallback_key

    return None


def langfuse_credentials() -> tuple[str, str, str] | None:
    """Return ``(public_key, secret_key, base_url)`` or ``None`` when tracing is off.

    All three ``LANGFUSE_*`` variables must be set to enable tracing.
    """
    values = tuple(
        (os.getenv(name) or "").strip()
        for name in ("LANGFUSE_PUBLIC_KEY", "LANGFUSE_SECRET_KEY", "LANGFUSE_BASE_URL")
    )
    if not all(values):
        return None
    return values


def model_name() -> str:
    return (os.getenv("LESSONCRAFT_MODEL") or "").strip() or DEFAULT_MODEL_NAME


def llm_timeout_secs() -> float:
    return _env_float("LESSONCRAFT_LLM_TIMEOUT_SECS", 60.0)


def temperature() -> float:
    return _env_float("LESSONCRAFT_TEMPERATURE", 0.5)


def max_output_tokens() -> int:
    return _env_int("LESSONCRAFT_MAX_OUTPUT_TOKENS", 8192)


def db_path() -> Path:
    raw = (os.getenv("LESSONCRAFT_DB") or "").strip()
    return Path(raw) if raw else DEFAULT_DB_PATH


def log_level() -> str:
    return (os.getenv("LESSONCRAFT_LOG_LEVEL") or "").strip().upper() or "WARNING"
