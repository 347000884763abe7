"""
Models package for Rivu Core.

This package exports all SQLAlchemy models. Importing it registers every
table with ``Base.metadata``.

Usage:
    from rivu.models import User, BudgetCategory, Transaction, SavingsGoal
    from rivu.models import RivuScore, ScoreHistory, Nudge
"""

from rivu.models.base import Base
from rivu.models.ledger import (
    BudgetCategory,
    SavingsGoal,
    Transaction,
    TransactionSource,
    TransactionType,
)
from rivu.models.nudge import Nudge, NudgeStatus, NudgeType
from rivu.models.rivu_score import HistoryEntryKind, RivuScore, ScoreHistory
from rivu.models.user import OnboardingStage, User

__all__ = [
    # Base
    "Base",
    # Core Models
    "User",
    "BudgetCategory",
    "Transaction",
    "SavingsGoal",
    "RivuScore",
    "ScoreHistory",
    "Nudge",
    # Enums
    "OnboardingStage",
    "TransactionType",
    "TransactionSource",
    "HistoryEntryKind",
    "NudgeType",
    "NudgeStatus",
]
