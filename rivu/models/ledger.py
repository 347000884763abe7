"""
Ledger Models for Rivu Core.

Budget categories, transactions and savings goals. These rows are the only
inputs the Rivu Score engine reads; every write to them goes through
``LedgerService`` so the post-commit hook can trigger a recalculation.

Data Classification: FINANCIAL
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from rivu.models.base import Base

# Money precision shared by all amount columns
MONEY = Numeric(12, 2, asdecimal=True)


class TransactionType(StrEnum):
    """Direction of a transaction."""

    INCOME = "income"
    EXPENSE = "expense"


class TransactionSource(StrEnum):
    """Where a transaction came from."""

    MANUAL = "manual"
    CSV = "csv"
    PLAID = "plaid"


class BudgetCategory(Base):
    """
    Monthly budget for one spending category.

    ``spent_amount`` is incremented by expense transactions whose category
    name matches ``name``.
    """

    __tablename__ = "budget_categories"

    user = relationship("User", back_populates="budget_categories")

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    budget_amount = Column(MONEY, nullable=False)
    spent_amount = Column(MONEY, nullable=False, default=Decimal("0"))
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    __table_args__ = (Index("idx_budget_category_user_name", "user_id", "name"),)

    def __repr__(self) -> str:
        return f"<BudgetCategory(id={self.id}, user_id={self.user_id}, name={self.name})>"


class Transaction(Base):
    """Single income or expense entry."""

    __tablename__ = "transactions"

    user = relationship("User", back_populates="transactions")

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(10), nullable=False, default=TransactionType.EXPENSE.value)
    amount = Column(MONEY, nullable=False)
    date = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    merchant = Column(String(255), nullable=False, default="")
    category = Column(String(100), nullable=False, default="")
    account = Column(String(100), nullable=False, default="")
    source = Column(String(10), nullable=False, default=TransactionSource.MANUAL.value)
    is_duplicate = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    __table_args__ = (Index("idx_transaction_user_date", "user_id", "date"),)

    def __repr__(self) -> str:
        return f"<Transaction(id={self.id}, user_id={self.user_id}, type={self.type})>"


class SavingsGoal(Base):
    """
    Savings goal with a month-keyed contribution log.

    ``progress_percentage`` is stored unclamped (a goal can be over-funded).
    ``monthly_savings`` holds a JSON list of ``{"month": "YYYY-MM", "amount": "<decimal string>"}``
    in month order.
    """

    __tablename__ = "savings_goals"

    user = relationship("User", back_populates="savings_goals")

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    target_amount = Column(MONEY, nullable=False)
    current_amount = Column(MONEY, nullable=False, default=Decimal("0"))
    progress_percentage = Column(Numeric(8, 2, asdecimal=True), nullable=False, default=Decimal("0"))
    target_date = Column(DateTime(timezone=True), nullable=True)
    _monthly_savings_json = Column("monthly_savings", Text, nullable=False, default="[]")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    @property
    def monthly_savings(self) -> list[dict[str, Any]]:
        """Decoded contribution log."""
        if not self._monthly_savings_json:
            return []
        try:
            data = json.loads(str(self._monthly_savings_json))
        except json.JSONDecodeError:
            return []
        return data if isinstance(data, list) else []

    @monthly_savings.setter
    def monthly_savings(self, value: list[dict[str, Any]]) -> None:
        setattr(self, "_monthly_savings_json", json.dumps(value))

    def recompute_progress(self) -> None:
        """``current / target * 100``; 0 when the target is 0."""
        target = Decimal(self.target_amount or 0)
        if target > 0:
            progress = Decimal(self.current_amount or 0) / target * 100
            self.progress_percentage = progress.quantize(Decimal("0.01"))
        else:
            self.progress_percentage = Decimal("0")

    def __repr__(self) -> str:
        return f"<SavingsGoal(id={self.id}, user_id={self.user_id}, name={self.name})>"


__all__ = [
    "BudgetCategory",
    "Transaction",
    "SavingsGoal",
    "TransactionType",
    "TransactionSource",
]
