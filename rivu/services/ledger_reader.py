"""
Ledger Reader for Rivu Core.

Read-only accessor over a user's budget categories, transactions and savings
goals. The score calculator and the nudge rules only ever see the immutable
snapshots built here, never ORM rows, so both stay pure functions of their
inputs.

A user with no rows gets empty collections, not an error. Transactions are
returned newest first.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from rivu.lib.exceptions import NotFoundError
from rivu.lib.timeutil import ensure_utc
from rivu.models.ledger import BudgetCategory, SavingsGoal, Transaction
from rivu.models.user import OnboardingStage, User


@dataclass(frozen=True)
class CategorySnapshot:
    id: int
    name: str
    budget_amount: Decimal
    spent_amount: Decimal


@dataclass(frozen=True)
class TransactionSnapshot:
    id: int
    type: str
    amount: Decimal
    date: datetime
    category: str = ""
    merchant: str = ""
    source: str = "manual"
    is_duplicate: bool = False


@dataclass(frozen=True)
class GoalSnapshot:
    id: int
    name: str
    target_amount: Decimal
    current_amount: Decimal
    monthly_savings: tuple[tuple[str, Decimal], ...] = ()


@dataclass(frozen=True)
class LedgerSnapshot:
    """Everything the engines read about one user's money."""

    user_id: int
    categories: tuple[CategorySnapshot, ...] = ()
    transactions: tuple[TransactionSnapshot, ...] = ()
    goals: tuple[GoalSnapshot, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.categories or self.transactions or self.goals)


@dataclass(frozen=True)
class UserState:
    """User fields consumed by the score and nudge engines."""

    user_id: int
    onboarding_stage: OnboardingStage = OnboardingStage.NEW
    onboarding_completed: bool = False
    login_count: int = 0
    last_login: datetime | None = None
    last_transaction_date: datetime | None = None
    last_goal_update_date: datetime | None = None
    account_creation_date: datetime | None = None


def _decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _optional_utc(value: datetime | None) -> datetime | None:
    return ensure_utc(value) if value is not None else None


def _parse_stage(raw: str | None) -> OnboardingStage:
    try:
        return OnboardingStage(raw or OnboardingStage.NEW.value)
    except ValueError:
        return OnboardingStage.NEW


def goal_snapshot(goal: SavingsGoal) -> GoalSnapshot:
    monthly = tuple(
        (str(entry.get("month", "")), _decimal(entry.get("amount", 0)))
        for entry in goal.monthly_savings
    )
    return GoalSnapshot(
        id=int(goal.id),
        name=str(goal.name),
        target_amount=_decimal(goal.target_amount),
        current_amount=_decimal(goal.current_amount),
        monthly_savings=monthly,
    )


def user_state_from(user: User) -> UserState:
    return UserState(
        user_id=int(user.id),
        onboarding_stage=_parse_stage(user.onboarding_stage),
        onboarding_completed=bool(user.onboarding_completed),
        login_count=int(user.login_count or 0),
        last_login=_optional_utc(user.last_login),
        last_transaction_date=_optional_utc(user.last_transaction_date),
        last_goal_update_date=_optional_utc(user.last_goal_update_date),
        account_creation_date=_optional_utc(user.account_creation_date),
    )


class LedgerReader:
    """
    Builds snapshots from the database.

    Usage:
        reader = LedgerReader(session)
        snapshot = reader.snapshot(user_id=1)
        state = reader.user_state(user_id=1)
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_user(self, user_id: int) -> User:
        """Load a user row or raise ``NotFoundError``."""
        user = self._session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def user_state(self, user_id: int) -> UserState:
        return user_state_from(self.get_user(user_id))

    def snapshot(self, user_id: int) -> LedgerSnapshot:
        categories = self._session.scalars(
            select(BudgetCategory)
            .where(BudgetCategory.user_id == user_id)
            .order_by(BudgetCategory.id)
        ).all()
        transactions = self._session.scalars(
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
        ).all()
        goals = self._session.scalars(
            select(SavingsGoal)
            .where(SavingsGoal.user_id == user_id)
            .order_by(SavingsGoal.id)
        ).all()

        return LedgerSnapshot(
            user_id=user_id,
            categories=tuple(
                CategorySnapshot(
                    id=int(c.id),
                    name=str(c.name),
                    budget_amount=_decimal(c.budget_amount),
                    spent_amount=_decimal(c.spent_amount),
                )
                for c in categories
            ),
            transactions=tuple(
                TransactionSnapshot(
                    id=int(t.id),
                    type=str(t.type),
                    amount=_decimal(t.amount),
                    date=ensure_utc(t.date),
                    category=str(t.category or ""),
                    merchant=str(t.merchant or ""),
                    source=str(t.source or "manual"),
                    is_duplicate=bool(t.is_duplicate),
                )
                for t in transactions
            ),
            goals=tuple(goal_snapshot(g) for g in goals),
        )


__all__ = [
    "CategorySnapshot",
    "TransactionSnapshot",
    "GoalSnapshot",
    "LedgerSnapshot",
    "UserState",
    "LedgerReader",
    "goal_snapshot",
    "user_state_from",
]
