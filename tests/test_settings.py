"""
Tests for environment configuration and app start-up.
"""
import importlib

import pytest

from disputedesk import settings as settings_module
from disputedesk.settings import Settings

ENV_VARS = [
    "MODEL_PROVIDER", "MODEL_ID", "LLM_API_BASE", "LLM_API_KEY", "LLM_EXTRA_HEADERS",
    "LLM_TEMPERATURE", "LLM_TIMEOUT_SECONDS", "DISPUTE_STORE", "DISPUTE_DATA_DIR",
    "DISPUTE_REPLAY_TOKENS", "DISPUTE_RECENT_MESSAGES", "DISPUTE_SESSION_COOKIE", "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    settings_module.get_settings.cache_clear()
    yield monkeypatch
    settings_module.get_settings.cache_clear()


class TestFromEnv:

    def test_defaults(self, clean_env):
        assert Settings.from_env() == Settings()

    def test_overrides(self, clean_env):
        clean_env.setenv("MODEL_PROVIDER", "OpenAI_Compatible")
        clean_env.setenv("LLM_EXTRA_HEADERS", '{"X-Team": "disputes"}')
        clean_env.setenv("LLM_TIMEOUT_SECONDS", "2.5")
        clean_env.setenv("DISPUTE_REPLAY_TOKENS", "500")
        clean_env.setenv("DISPUTE_STORE", "MEMORY")
        clean_env.setenv("LOG_LEVEL", "debug")
        s = Settings.from_env()
        assert s.provider == "openai_compatible"
        assert s.extra_headers == {"X-Team": "disputes"}
        assert s.timeout_seconds == 2.5
        assert s.replay_tokens == 500
        assert s.store == "memory"
        assert s.log_level == "DEBUG"

    @pytest.mark.parametrize("value", ["", "   "])
    def test_blank_model_id_falls_back(self, clean_env, value):
        clean_env.setenv("MODEL_ID", value)
        assert Settings.from_env().model_id == "llama3.1:8b"

    def test_get_settings_is_cached(self, clean_env):
        assert settings_module.get_settings() is settings_module.get_settings()


class TestStartup:

    def test_import_survives_bad_environment(self, clean_env):
        clean_env.setenv("MODEL_PROVIDER", "bogus")
        clean_env.setenv("LLM_EXTRA_HEADERS", "{not json")
        import disputedesk.main as main
        importlib.reload(main)
        assert callable(main.create_app)

    def test_bad_provider_fails_when_app_is_built(self):
        from disputedesk.main import create_app
        with pytest.raises(ValueError):
            create_app(settings=Settings(provider="bogus", store="memory"))

    def test_run_serves_app_factory(self, clean_env, monkeypatch):
        import uvicorn
        from disputedesk import main

        calls = []
        monkeypatch.setattr(uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))
        main.run()
        target, kwargs = calls[0]
        assert target == "disputedesk.main:create_app"
        assert kwargs["factory"] is True
