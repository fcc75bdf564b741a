from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


def env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class LLMConfig:
    """Groq settings; every field but the key can be set via ``LUNCHSCORE_LLM_*``."""

    api_key: str = os.getenv("GROQ_API_KEY", "")
    model: str = os.getenv("LUNCHSCORE_LLM_MODEL", "llama-3.3-70b-versatile")
    timeout: float = float(os.getenv("LUNCHSCORE_LLM_TIMEOUT", "10"))
    max_tokens: int = int(os.getenv("LUNCHSCORE_LLM_MAX_TOKENS", "1024"))
    temperature: float = float(os.getenv("LUNCHSCORE_LLM_TEMPERATURE", "0.3"))
    enabled: bool = env_flag("LUNCHSCORE_LLM_ENABLED", True)


DEFAULT_LLM_CONFIG = LLMConfig()
