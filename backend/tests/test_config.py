"""
Tests for application settings
"""
from agriassist.core.config import Settings


def test_retry_defaults(monkeypatch):
    for name in ("AI_MAX_RETRIES", "AI_INITIAL_RETRY_DELAY_SECONDS", "AI_BACKOFF_MULTIPLIER"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings()

    assert settings.ai_max_retries == 2
    assert settings.ai_initial_retry_delay_seconds == 2.0
    assert settings.ai_backoff_multiplier == 2.0


def test_api_key_alias(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("API_KEY", "from-alias")

    assert Settings().gemini_api_key == "from-alias"


def test_gemini_api_key_env(monkeypatch):
    monkeypatch.delenv("API_KEY", raising=False)
    monkeypatch.setenv("GEMINI_API_KEY", "primary")

    assert Settings().gemini_api_key == "primary"


def test_allowed_origins_list():
    settings = Settings(allowed_origins="http://a.test, http://b.test,,")

    assert settings.allowed_origins_list == ["http://a.test", "http://b.test"]
