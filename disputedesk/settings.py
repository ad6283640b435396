from __future__ import annotations

import os
import json
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict

from dotenv import load_dotenv

load_dotenv(override=False)


def _flag_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


def _flag_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


@dataclass(frozen=True)
class Settings:
    """Service settings, read once from the environment (and .env)."""

    provider: str = "ollama"              # "ollama" | "openai_compatible" | "none"
    model_id: str = "llama3.1:8b"
    api_base: str = ""
    api_key: str = ""
    extra_headers: Dict[str, str] = field(default_factory=dict)
    temperature: float = 0.2
    timeout_seconds: float = 60.0         # 0 disables the gateway timeout

    store: str = "file"                   # "file" | "memory"
    data_dir: str = "./data/sessions"
    replay_tokens: int = 0                # 0 = replay the full history
    recent_messages: int = 20
    session_cookie: str = "dispute_session_id"

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            provider=os.getenv("MODEL_PROVIDER", "ollama").strip().lower() or "ollama",
            model_id=os.getenv("MODEL_ID", "").strip() or "llama3.1:8b",
            api_base=os.getenv("LLM_API_BASE", "").strip(),
            api_key=os.getenv("LLM_API_KEY", "").strip(),
            extra_headers=json.loads(os.getenv("LLM_EXTRA_HEADERS", "") or "{}"),
            temperature=_flag_float("LLM_TEMPERATURE", 0.2),
            timeout_seconds=_flag_float("LLM_TIMEOUT_SECONDS", 60.0),
            store=os.getenv("DISPUTE_STORE", "file").strip().lower() or "file",
            data_dir=os.getenv("DISPUTE_DATA_DIR", "").strip() or "./data/sessions",
            replay_tokens=_flag_int("DISPUTE_REPLAY_TOKENS", 0),
            recent_messages=_flag_int("DISPUTE_RECENT_MESSAGES", 20),
            session_cookie=os.getenv("DISPUTE_SESSION_COOKIE", "").strip() or "dispute_session_id",
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
