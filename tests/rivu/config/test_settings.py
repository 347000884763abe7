"""
Tests for environment-driven settings.
"""

from __future__ import annotations

import pytest

from rivu.config.settings import DEFAULT_DATABASE_URL, Settings
from rivu.lib.exceptions import ConfigurationError

_VARS = (
    "RIVU_DATABASE_URL",
    "RIVU_ENVIRONMENT",
    "RIVU_DEV_MODE",
    "LOG_LEVEL",
    "RIVU_API_SECRET_KEY",
    "RIVU_CORS_ORIGINS",
    "RIVU_NUDGE_DEDUPE",
    "RIVU_NUDGE_DISPLAY_LIMIT",
    "RIVU_HOST",
    "RIVU_PORT",
)


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env) -> None:
    settings = Settings.from_env()

    assert settings.database_url == DEFAULT_DATABASE_URL
    assert settings.environment == "development"
    assert settings.dev_mode is False
    assert settings.api_secret_key is None
    assert settings.cors_origins == ()
    assert settings.nudge_dedupe is True
    assert settings.nudge_display_limit == 3
    assert settings.port == 8000


def test_reads_environment(clean_env) -> None:
    clean_env.setenv("RIVU_DATABASE_URL", "postgresql://rivu@db/rivu")
    clean_env.setenv("RIVU_DEV_MODE", "true")
    clean_env.setenv("LOG_LEVEL", "debug")
    clean_env.setenv("RIVU_CORS_ORIGINS", "https://app.rivu.io, https://admin.rivu.io,")
    clean_env.setenv("RIVU_NUDGE_DEDUPE", "0")
    clean_env.setenv("RIVU_NUDGE_DISPLAY_LIMIT", "5")
    clean_env.setenv("RIVU_PORT", "9000")

    settings = Settings.from_env()

    assert settings.database_url == "postgresql://rivu@db/rivu"
    assert settings.dev_mode is True
    assert settings.log_level == "DEBUG"
    assert settings.cors_origins == ("https://app.rivu.io", "https://admin.rivu.io")
    assert settings.nudge_dedupe is False
    assert settings.nudge_display_limit == 5
    assert settings.port == 9000


def test_non_integer_limit(clean_env) -> None:
    clean_env.setenv("RIVU_NUDGE_DISPLAY_LIMIT", "three")
    with pytest.raises(ConfigurationError):
        Settings.from_env()


def test_display_limit_must_be_positive() -> None:
    with pytest.raises(ConfigurationError):
        Settings(nudge_display_limit=0).validate()


def test_wildcard_cors_rejected_in_production() -> None:
    with pytest.raises(ConfigurationError):
        Settings(environment="production", cors_origins=("*",)).validate()
    Settings(environment="development", cors_origins=("*",)).validate()
