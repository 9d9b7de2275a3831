from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv


load_dotenv()


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    return float(value) if value else None


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here.
    """

    def __init__(self) -> None:
        self.app_env: str = os.getenv("APP_ENV", "development")
        self.gemini_api_key: Optional[str] = os.getenv("GEMINI_API_KEY") or os.getenv(
            "GOOGLE_API_KEY"
        )
        self.gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash-001")
        self.temperature: float = float(os.getenv("MODEL_TEMPERATURE", "0.7"))
        self.top_p: float = float(os.getenv("MODEL_TOP_P", "0.9"))
        # "application/json" asks Gemini for JSON-typed replies
        self.response_mime_type: Optional[str] = os.getenv("MODEL_RESPONSE_MIME_TYPE") or None
        self.timeout: Optional[float] = _optional_float("MODEL_TIMEOUT")
        self.max_retries: int = int(os.getenv("MODEL_MAX_RETRIES", "0"))
        self.database_url: str = os.getenv("DATABASE_URL", "sqlite:///data/users.db")
        # Unset: a failed reply leaves the user turn unanswered
        self.fallback_reply: Optional[str] = os.getenv("FALLBACK_REPLY") or None
        self.assistant_name: str = os.getenv("ASSISTANT_NAME", "CodeFlex AI")
        # Oldest idle transcripts are evicted past this many open sessions
        self.session_max_count: int = int(os.getenv("SESSION_MAX_COUNT", "1000"))
        self.session_ttl: float = float(os.getenv("SESSION_TTL_SECONDS", "3600"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
