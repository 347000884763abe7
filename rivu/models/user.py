"""
User Model for Rivu Core.

Only the columns the score and nudge engines consume live here: onboarding
progress, engagement counters and the activity timestamps that drive the
inactivity rules. Credentials and profile details belong to the auth layer.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String
from sqlalchemy.orm import relationship

from rivu.models.base import Base


class OnboardingStage(StrEnum):
    """Ordered onboarding progression."""

    NEW = "new"
    BUDGET_CREATED = "budget_created"
    TRANSACTION_ADDED = "transaction_added"
    GOAL_CREATED = "goal_created"
    COMPLETED = "completed"


class User(Base):
    """
    User model.

    Attributes:
        id: Primary key
        username: Unique login name
        email: Unique e-mail address
        onboarding_stage: OnboardingStage value
        onboarding_completed: True once the user reached "completed"
        login_count: Number of successful logins
        last_login: Timestamp of the most recent login
        last_transaction_date: Set whenever a transaction is created
        last_goal_update_date: Set on goal creation and contribution
        last_budget_update_date: Set on budget category creation
        account_creation_date: Start of the 7-day onboarding window (nullable;
            a missing value keeps the user in the window)
    """

    __tablename__ = "users"

    # Relationships
    budget_categories = relationship("BudgetCategory", back_populates="user", cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="user", cascade="all, delete-orphan")
    savings_goals = relationship("SavingsGoal", back_populates="user", cascade="all, delete-orphan")
    nudges = relationship("Nudge", back_populates="user", cascade="all, delete-orphan")
    rivu_score = relationship("RivuScore", back_populates="user", uselist=False, cascade="all, delete-orphan")

    # Columns
    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False)

    # Onboarding
    onboarding_stage = Column(String(20), default=OnboardingStage.NEW.value, nullable=False)
    onboarding_completed = Column(Boolean, default=False, nullable=False)

    # Engagement metrics
    login_count = Column(Integer, default=0, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)
    last_transaction_date = Column(DateTime(timezone=True), nullable=True)
    last_goal_update_date = Column(DateTime(timezone=True), nullable=True)
    last_budget_update_date = Column(DateTime(timezone=True), nullable=True)

    account_creation_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_user_onboarding_stage", "onboarding_stage"),
        Index("idx_user_last_transaction", "last_transaction_date"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, stage={self.onboarding_stage}, logins={self.login_count})>"


__all__ = ["User", "OnboardingStage"]
