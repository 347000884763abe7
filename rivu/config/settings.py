"""
Runtime Settings for Rivu Core.

All configuration comes from environment variables so the same build runs
in development, CI and production without code changes.

Variables:
    RIVU_DATABASE_URL: SQLAlchemy URL (default: local SQLite file)
    RIVU_ENVIRONMENT: "development" | "production"
    RIVU_DEV_MODE: "1" enables human-readable console logging
    LOG_LEVEL: stdlib level name (default: INFO)
    RIVU_API_SECRET_KEY: HS256 signing key for API bearer tokens
    RIVU_CORS_ORIGINS: comma-separated list of allowed origins
    RIVU_NUDGE_DEDUPE: "1" (default) skips candidates matching an active nudge
    RIVU_NUDGE_DISPLAY_LIMIT: number of active nudges shown on the profile
    RIVU_HOST / RIVU_PORT: uvicorn bind address

Usage:
    from rivu.config.settings import get_settings

    settings = get_settings()
    engine = create_engine(settings.database_url)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache

from rivu.lib.exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./rivu.db"
DEFAULT_NUDGE_DISPLAY_LIMIT = 3


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration values."""

    database_url: str = DEFAULT_DATABASE_URL
    environment: str = "development"
    dev_mode: bool = False
    log_level: str = "INFO"
    api_secret_key: str | None = None
    cors_origins: tuple[str, ...] = field(default_factory=tuple)
    nudge_dedupe: bool = True
    nudge_display_limit: int = DEFAULT_NUDGE_DISPLAY_LIMIT
    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from the current environment."""
        cors_raw = os.getenv("RIVU_CORS_ORIGINS", "")
        settings = cls(
            database_url=os.getenv("RIVU_DATABASE_URL", DEFAULT_DATABASE_URL),
            environment=os.getenv("RIVU_ENVIRONMENT", "development"),
            dev_mode=_env_flag("RIVU_DEV_MODE", "0"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            api_secret_key=os.getenv("RIVU_API_SECRET_KEY") or None,
            cors_origins=tuple(o.strip() for o in cors_raw.split(",") if o.strip()),
            nudge_dedupe=_env_flag("RIVU_NUDGE_DEDUPE", "1"),
            nudge_display_limit=_env_int("RIVU_NUDGE_DISPLAY_LIMIT", DEFAULT_NUDGE_DISPLAY_LIMIT),
            host=os.getenv("RIVU_HOST", "0.0.0.0"),
            port=_env_int("RIVU_PORT", 8000),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """Reject combinations that must never reach production."""
        if self.nudge_display_limit < 1:
            raise ConfigurationError("RIVU_NUDGE_DISPLAY_LIMIT must be at least 1")
        if self.is_production and "*" in self.cors_origins:
            raise ConfigurationError(
                "RIVU_CORS_ORIGINS contains wildcard '*' which is forbidden in production. "
                "Specify explicit origins instead."
            )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached process settings."""
    return Settings.from_env()


__all__ = ["Settings", "get_settings", "DEFAULT_DATABASE_URL"]
