"""
Database wiring for Rivu Core.

Builds the SQLAlchemy engine and session factory from settings. The API
opens one session per request from ``get_session_factory()``.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import rivu.models  # noqa: F401  (registers all tables)
from rivu.config.settings import get_settings
from rivu.models.base import Base

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections may be shared across threads."""
    connect_args: dict[str, object] = {}
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    connect_args["check_same_thread"] = False
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # one shared connection, otherwise every thread gets an empty database
        return create_engine(database_url, connect_args=connect_args, poolclass=StaticPool)
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return build_engine(get_settings().database_url)


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker[Session]:
    return sessionmaker(bind=get_engine(), expire_on_commit=False)


def init_db(engine: Engine | None = None) -> None:
    """Create all tables that do not exist yet."""
    engine = engine or get_engine()
    Base.metadata.create_all(engine)
    logger.info("Database schema ensured (dialect=%s)", engine.dialect.name)


__all__ = ["build_engine", "get_engine", "get_session_factory", "init_db"]
