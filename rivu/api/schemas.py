"""
Pydantic Schemas for the Rivu Core REST API.

Request bodies for every endpoint, the ``{success, data, error}`` response
envelope, and serializers from ORM rows to JSON-ready dicts.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from rivu.lib.errors import build_error_response
from rivu.models.ledger import BudgetCategory, SavingsGoal, Transaction
from rivu.models.rivu_score import ScoreHistory

# =============================================================================
# Response Envelope
# =============================================================================


def success_response(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data, "error": None}


def error_response(code: str, message: str | None = None, details: dict[str, Any] | None = None) -> dict[str, Any]:
    return {"success": False, "data": None, "error": build_error_response(code, message, details)}


# =============================================================================
# Auth / User Schemas
# =============================================================================


class RegisterRequest(BaseModel):
    """Request schema for registering a user."""

    username: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)


class OnboardingStageUpdate(BaseModel):
    stage: str = Field(..., min_length=1, max_length=20)


# =============================================================================
# Score Schemas
# =============================================================================


class ScoreHistoryEntryCreate(BaseModel):
    """Manual annotation on the score timeline (e.g. "completed a goal")."""

    reason: str = Field(..., min_length=1, max_length=500)
    change: int = Field(..., ge=-100, le=100)
    notes: str | None = Field(None, max_length=2000)


# =============================================================================
# Nudge Schemas
# =============================================================================


class NudgeCreate(BaseModel):
    type: str = Field(..., min_length=1, max_length=30)
    message: str = Field(..., min_length=1, max_length=1000)
    trigger_condition: dict[str, Any] | None = None
    due_date: datetime | None = None


# =============================================================================
# Ledger Schemas
# =============================================================================


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    budget_amount: Decimal
    spent_amount: Decimal = Decimal("0")


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    budget_amount: Decimal | None = None
    spent_amount: Decimal | None = None


class TransactionCreate(BaseModel):
    type: str = Field(..., max_length=10)
    amount: Decimal
    date: datetime | None = None
    merchant: str = Field(default="", max_length=255)
    category: str = Field(default="", max_length=100)
    account: str = Field(default="", max_length=100)
    source: str = Field(default="manual", max_length=10)
    is_duplicate: bool = False


class TransactionUpdate(BaseModel):
    type: str | None = Field(None, max_length=10)
    amount: Decimal | None = None
    date: datetime | None = None
    merchant: str | None = Field(None, max_length=255)
    category: str | None = Field(None, max_length=100)
    account: str | None = Field(None, max_length=100)
    source: str | None = Field(None, max_length=10)
    is_duplicate: bool | None = None


class GoalCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    target_amount: Decimal
    current_amount: Decimal = Decimal("0")
    target_date: datetime | None = None


class GoalUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    target_amount: Decimal | None = None
    target_date: datetime | None = None


class GoalContribution(BaseModel):
    amount: Decimal


# =============================================================================
# Serializers
# =============================================================================


def _money(value: Any) -> float:
    return float(value or 0)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def category_to_dict(category: BudgetCategory) -> dict[str, Any]:
    return {
        "id": category.id,
        "name": category.name,
        "budgetAmount": _money(category.budget_amount),
        "spentAmount": _money(category.spent_amount),
    }


def transaction_to_dict(transaction: Transaction) -> dict[str, Any]:
    return {
        "id": transaction.id,
        "type": transaction.type,
        "amount": _money(transaction.amount),
        "date": _iso(transaction.date),
        "merchant": transaction.merchant,
        "category": transaction.category,
        "account": transaction.account,
        "source": transaction.source,
        "isDuplicate": bool(transaction.is_duplicate),
    }


def goal_to_dict(goal: SavingsGoal) -> dict[str, Any]:
    return {
        "id": goal.id,
        "name": goal.name,
        "targetAmount": _money(goal.target_amount),
        "currentAmount": _money(goal.current_amount),
        "progressPercentage": _money(goal.progress_percentage),
        "targetDate": _iso(goal.target_date),
        "monthlySavings": [
            {"month": entry.get("month"), "amount": _money(entry.get("amount"))}
            for entry in goal.monthly_savings
        ],
    }


def history_entry_to_dict(entry: ScoreHistory) -> dict[str, Any]:
    return {
        "id": entry.id,
        "score": entry.score,
        "previousScore": entry.previous_score,
        "change": entry.change,
        "reason": entry.reason,
        "notes": entry.notes,
        "kind": entry.kind,
        "date": _iso(entry.created_at),
    }


__all__ = [
    "success_response",
    "error_response",
    "RegisterRequest",
    "OnboardingStageUpdate",
    "ScoreHistoryEntryCreate",
    "NudgeCreate",
    "CategoryCreate",
    "CategoryUpdate",
    "TransactionCreate",
    "TransactionUpdate",
    "GoalCreate",
    "GoalUpdate",
    "GoalContribution",
    "category_to_dict",
    "transaction_to_dict",
    "goal_to_dict",
    "history_entry_to_dict",
]
