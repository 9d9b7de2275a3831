"""Tests for environment-driven settings."""

from config.settings import Settings

MODEL_VARS = (
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "GEMINI_MODEL",
    "MODEL_TEMPERATURE",
    "MODEL_TOP_P",
    "MODEL_RESPONSE_MIME_TYPE",
    "MODEL_TIMEOUT",
    "MODEL_MAX_RETRIES",
    "FALLBACK_REPLY",
    "SESSION_MAX_COUNT",
    "SESSION_TTL_SECONDS",
)


def _clear(monkeypatch):
    for name in MODEL_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    _clear(monkeypatch)
    settings = Settings()

    assert settings.gemini_api_key is None
    assert settings.gemini_model == "gemini-2.0-flash-001"
    assert settings.temperature == 0.7
    assert settings.top_p == 0.9
    assert settings.max_retries == 0
    assert settings.timeout is None
    assert settings.response_mime_type is None
    assert settings.fallback_reply is None
    assert settings.session_max_count == 1000
    assert settings.session_ttl == 3600


def test_google_api_key_fallback(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("GOOGLE_API_KEY", "google-key")
    assert Settings().gemini_api_key == "google-key"

    monkeypatch.setenv("GEMINI_API_KEY", "gemini-key")
    assert Settings().gemini_api_key == "gemini-key"


def test_overrides(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("MODEL_TEMPERATURE", "0.4")
    monkeypatch.setenv("MODEL_TIMEOUT", "12.5")
    monkeypatch.setenv("MODEL_MAX_RETRIES", "2")
    monkeypatch.setenv("MODEL_RESPONSE_MIME_TYPE", "application/json")
    monkeypatch.setenv("SESSION_MAX_COUNT", "50")

    settings = Settings()

    assert settings.temperature == 0.4
    assert settings.timeout == 12.5
    assert settings.max_retries == 2
    assert settings.response_mime_type == "application/json"
    assert settings.session_max_count == 50
