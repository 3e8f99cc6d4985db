"""Environment driven configuration for the service."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

LOGGER = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_GROQ_PROXY_URL = "http://localhost:8000/api/groq"
DEFAULT_GROQ_API_URL = "https://api.groq.com/openai/v1/chat/completions"


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


@dataclass(slots=True)
class Settings:
    """Runtime settings resolved once at startup."""

    ollama_url: str = DEFAULT_OLLAMA_URL
    groq_proxy_url: str = DEFAULT_GROQ_PROXY_URL
    groq_api_url: str = DEFAULT_GROQ_API_URL
    groq_api_key: Optional[str] = None
    default_model: str = "qwen2.5:3b"
    fallback_model: str = "llama-3.1-8b-instant"
    cloud_quota_limit: int = 5
    cloud_usage_path: Optional[Path] = None
    chunk_size: int = 500
    chunk_overlap: int = 50
    ocr_language: str = "eng"
    max_pages: Optional[int] = None
    llm_timeout: float = 120.0
    llm_stub: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        usage_path = os.getenv("CLOUD_USAGE_PATH")
        max_pages = _env_int("MAX_PAGES", 0)
        return cls(
            ollama_url=_env_str("OLLAMA_URL", DEFAULT_OLLAMA_URL).rstrip("/"),
            groq_proxy_url=_env_str("GROQ_PROXY_URL", DEFAULT_GROQ_PROXY_URL),
            groq_api_url=_env_str("GROQ_API_URL", DEFAULT_GROQ_API_URL),
            groq_api_key=os.getenv("GROQ_API_KEY") or None,
            default_model=_env_str("DEFAULT_MODEL", "qwen2.5:3b"),
            fallback_model=_env_str("FALLBACK_MODEL", "llama-3.1-8b-instant"),
            cloud_quota_limit=max(_env_int("CLOUD_QUOTA_LIMIT", 5), 0),
            cloud_usage_path=Path(usage_path).expanduser() if usage_path else None,
            chunk_size=_env_int("CHUNK_SIZE", 500),
            chunk_overlap=_env_int("CHUNK_OVERLAP", 50),
            ocr_language=_env_str("OCR_LANG", "eng"),
            max_pages=max_pages if max_pages > 0 else None,
            llm_timeout=_env_float("LLM_TIMEOUT", 120.0),
            llm_stub=_env_flag("LLM_STUB"),
        )


_SETTINGS: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""

    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS


__all__ = ["Settings", "get_settings"]
