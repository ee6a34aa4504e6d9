"""Tests for environment-driven Settings."""

import pytest
from pydantic import ValidationError

from backend.settings import Settings, get_settings


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "ENVIRONMENT",
        "ORACLE_PROVIDER",
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "ALLOWED_ORIGINS",
        "MAX_GENERATION_ATTEMPTS",
        "PROGRAM_SCHEMA_MODE",
        "PROGRAM_BUILDER_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettingsDefaults:
    @pytest.mark.unit
    def test_defaults(self, clean_env):
        settings = Settings(_env_file=None)

        assert settings.environment == "development"
        assert settings.oracle_provider == "openai"
        assert settings.program_model == "gpt-4.1-mini"
        assert settings.max_generation_attempts == 3
        assert settings.program_schema_mode == "strict"
        assert settings.schema_enforcement is True
        assert settings.allowed_origins == ["*"]
        assert settings.program_builder_api_key is None
        assert settings.generation_deadline_seconds is None

    @pytest.mark.unit
    def test_reads_environment(self, clean_env):
        clean_env.setenv("ORACLE_PROVIDER", "anthropic")
        clean_env.setenv("ANTHROPIC_API_KEY", "sk-ant")
        clean_env.setenv("MAX_GENERATION_ATTEMPTS", "5")
        clean_env.setenv("PROGRAM_SCHEMA_MODE", "loose")

        settings = Settings(_env_file=None)

        assert settings.oracle_provider == "anthropic"
        assert settings.oracle_api_key == "sk-ant"
        assert settings.oracle_api_key_name == "ANTHROPIC_API_KEY"
        assert settings.max_generation_attempts == 5
        assert settings.program_schema_mode == "loose"


class TestSettingsValidation:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ('["https://a.example", "https://b.example"]', ["https://a.example", "https://b.example"]),
            ("https://a.example, https://b.example", ["https://a.example", "https://b.example"]),
            ("", ["*"]),
        ],
    )
    def test_allowed_origins_formats(self, clean_env, raw, expected):
        clean_env.setenv("ALLOWED_ORIGINS", raw)
        assert Settings(_env_file=None).allowed_origins == expected

    @pytest.mark.unit
    def test_environment_normalised(self, clean_env):
        settings = Settings(environment="PRODUCTION", _env_file=None)
        assert settings.environment == "production"
        assert settings.is_production is True
        assert settings.is_test is False

    @pytest.mark.unit
    def test_invalid_environment(self, clean_env):
        with pytest.raises(ValidationError):
            Settings(environment="moon", _env_file=None)

    @pytest.mark.unit
    @pytest.mark.parametrize("attempts", [0, 6])
    def test_attempt_budget_bounds(self, clean_env, attempts):
        with pytest.raises(ValidationError):
            Settings(max_generation_attempts=attempts, _env_file=None)

    @pytest.mark.unit
    def test_unknown_provider(self, clean_env):
        with pytest.raises(ValidationError):
            Settings(oracle_provider="llama", _env_file=None)


class TestGetSettings:
    @pytest.mark.unit
    def test_cached(self, clean_env):
        assert get_settings() is get_settings()

    @pytest.mark.unit
    def test_cache_clear_picks_up_env(self, clean_env):
        first = get_settings()
        clean_env.setenv("OPENAI_API_KEY", "sk-new")
        get_settings.cache_clear()

        assert get_settings() is not first
        assert get_settings().openai_api_key == "sk-new"
