"""
Shared test fixtures for Rivu Core.

This module provides common fixtures used across all test modules:
- Environment setup (API secret, dev mode, in-memory database URL)
- A frozen, advanceable clock
- Database engine, session factory and session (in-memory SQLite)
- Settings and the wired service graph
- Factory helpers for users and ledger rows

Usage:
    All fixtures are automatically available to any test in the tests/ directory.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# 1. Environment setup -- must run before any application imports
#    because get_settings() caches the first read.
# ---------------------------------------------------------------------------

os.environ.setdefault("RIVU_API_SECRET_KEY", "test-secret-key-for-jwt-signing-at-least-32-bytes-long")
os.environ.setdefault("RIVU_DEV_MODE", "1")
os.environ.setdefault("RIVU_DATABASE_URL", "sqlite://")

# ---------------------------------------------------------------------------
# Application imports (after env vars are set)
# ---------------------------------------------------------------------------

from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from rivu.config.settings import Settings  # noqa: E402
from rivu.infra.database import build_engine, init_db  # noqa: E402
from rivu.models import (  # noqa: E402
    BudgetCategory,
    OnboardingStage,
    SavingsGoal,
    Transaction,
    User,
)
from rivu.services.container import Services, build_services  # noqa: E402

TEST_SECRET_KEY = os.environ["RIVU_API_SECRET_KEY"]

# Wednesday, mid-month, so +/- a few days stays inside March 2026
NOW = datetime(2026, 3, 18, 12, 0, 0, tzinfo=UTC)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ---------------------------------------------------------------------------
# 2. Clock and settings
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        dev_mode=True,
        api_secret_key=TEST_SECRET_KEY,
        nudge_dedupe=True,
        nudge_display_limit=3,
    )


# ---------------------------------------------------------------------------
# 3. Database -- fresh in-memory SQLite per test
# ---------------------------------------------------------------------------


@pytest.fixture()
def session_factory() -> Iterator[sessionmaker[Session]]:
    engine = build_engine("sqlite://")
    init_db(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """
    Provide a SQLAlchemy session backed by an in-memory SQLite database.

    All tables registered with Base.metadata are created automatically.
    """
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def services(db_session: Session, settings: Settings, clock: FrozenClock) -> Services:
    return build_services(db_session, settings=settings, clock=clock)


# ---------------------------------------------------------------------------
# 4. Factories
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """
    Create and commit a user.

    Defaults describe an established user: onboarding finished long ago,
    one login, no activity timestamps.
    """
    counter = {"n": 0}

    def _make(**overrides: Any) -> User:
        counter["n"] += 1
        n = counter["n"]
        values: dict[str, Any] = {
            "username": f"user{n}",
            "email": f"user{n}@example.com",
            "onboarding_stage": OnboardingStage.COMPLETED.value,
            "onboarding_completed": True,
            "login_count": 1,
            "account_creation_date": NOW - timedelta(days=60),
        }
        values.update(overrides)
        user = User(**values)
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def add_category(db_session: Session) -> Callable[..., BudgetCategory]:
    def _add(user: User, name: str, budget: str, spent: str = "0") -> BudgetCategory:
        category = BudgetCategory(
            user_id=user.id,
            name=name,
            budget_amount=Decimal(budget),
            spent_amount=Decimal(spent),
        )
        db_session.add(category)
        db_session.commit()
        return category

    return _add


@pytest.fixture()
def add_transaction(db_session: Session) -> Callable[..., Transaction]:
    def _add(user: User, amount: str = "10", when: datetime = NOW, **extra: Any) -> Transaction:
        transaction = Transaction(
            user_id=user.id,
            type=extra.pop("type", "expense"),
            amount=Decimal(amount),
            date=when,
            **extra,
        )
        db_session.add(transaction)
        db_session.commit()
        return transaction

    return _add


@pytest.fixture()
def add_goal(db_session: Session) -> Callable[..., SavingsGoal]:
    def _add(user: User, name: str, target: str, current: str = "0") -> SavingsGoal:
        goal = SavingsGoal(
            user_id=user.id,
            name=name,
            target_amount=Decimal(target),
            current_amount=Decimal(current),
        )
        goal.recompute_progress()
        db_session.add(goal)
        db_session.commit()
        return goal

    return _add
