# ABOUTME: Unit tests for pydantic-settings configuration.
# ABOUTME: Validates defaults, environment overrides including nested policies, and the lazy singleton.

import pytest
from pydantic import ValidationError

from trpg_events.config import settings as settings_module
from trpg_events.config.settings import Settings, get_settings


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Run each test without a .env file and with a fresh singleton"""
    monkeypatch.chdir(tmp_path)
    for name in ("OPENAI_API_KEY", "OPENAI_MODEL", "SESSION_STORE", "LOG_LEVEL", "DEFAULT_MAX_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(settings_module, "_settings", None)


class TestSettings:
    """Test suite for Settings"""

    def test_defaults(self):
        settings = Settings()

        assert settings.openai_api_key is None
        assert settings.openai_model == "gpt-4o"
        assert settings.session_store == "memory"
        assert settings.default_max_attempts == 3
        assert settings.difficulty.target_numbers["medium"] == 15
        assert settings.penalties.critical_failure_hp_loss == 2
        assert len(settings.retry.skill_rules) == 2

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("SESSION_STORE", "redis")
        monkeypatch.setenv("DEFAULT_MAX_ATTEMPTS", "5")

        settings = Settings()

        assert settings.openai_api_key == "sk-test"
        assert settings.session_store == "redis"
        assert settings.default_max_attempts == 5

    def test_nested_policy_override(self, monkeypatch):
        """Test nested policies are set with the __ delimiter"""
        monkeypatch.setenv("PENALTIES__FAILURE_TIME_LOSS", "3")
        monkeypatch.setenv("DIFFICULTY__RETRY_PENALTY", "4")

        settings = Settings()

        assert settings.penalties.failure_time_loss == 3
        assert settings.difficulty.retry_penalty == 4
        assert settings.difficulty.target_numbers["hard"] == 20

    def test_unknown_store_rejected(self, monkeypatch):
        monkeypatch.setenv("SESSION_STORE", "postgres")

        with pytest.raises(ValidationError):
            Settings()

    def test_env_file_loaded(self, tmp_path):
        (tmp_path / ".env").write_text("OPENAI_MODEL=gpt-4o-mini\nLOG_LEVEL=DEBUG\n")

        settings = Settings()

        assert settings.openai_model == "gpt-4o-mini"
        assert settings.log_level == "DEBUG"

    def test_get_settings_is_singleton(self):
        assert get_settings() is get_settings()
