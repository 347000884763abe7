"""
Ledger Service for Rivu Core.

Create/update/delete for budget categories, transactions and savings goals,
plus goal contributions. Every write is committed first and then announced
on the ``LedgerEventBus``; subscribers (score recalculation, nudge check)
can fail without affecting the committed write.

Side effects on the user row:
- category created: last_budget_update_date, stage new -> budget_created
- transaction created: last_transaction_date, stage new|budget_created -> transaction_added
- goal created: last_goal_update_date, stage transaction_added -> goal_created
- goal contribution: last_goal_update_date

Expense creation increments the matching category's ``spent_amount``.
Updates and deletes never roll it back; the score is recalculated instead.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from rivu.core.ledger_events import LedgerEvent, LedgerEventBus, LedgerEventType
from rivu.lib.exceptions import NotFoundError, ValidationError
from rivu.lib.timeutil import Clock, ensure_utc, month_key, utc_now
from rivu.models.ledger import (
    BudgetCategory,
    SavingsGoal,
    Transaction,
    TransactionSource,
    TransactionType,
)
from rivu.models.user import OnboardingStage, User

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

# Stage advances triggered by ledger writes: event -> (allowed from-stages, to-stage)
STAGE_ADVANCES: dict[LedgerEventType, tuple[frozenset[str], OnboardingStage]] = {
    LedgerEventType.CATEGORY_CREATED: (
        frozenset({OnboardingStage.NEW.value}),
        OnboardingStage.BUDGET_CREATED,
    ),
    LedgerEventType.TRANSACTION_CREATED: (
        frozenset({OnboardingStage.NEW.value, OnboardingStage.BUDGET_CREATED.value}),
        OnboardingStage.TRANSACTION_ADDED,
    ),
    LedgerEventType.GOAL_CREATED: (
        frozenset({OnboardingStage.TRANSACTION_ADDED.value}),
        OnboardingStage.GOAL_CREATED,
    ),
}


def to_money(value: Any, field_name: str, *, allow_zero: bool = True) -> Decimal:
    """
    Parse an amount into a 2-place Decimal.

    Raises:
        ValidationError: Not a number, negative, or zero when ``allow_zero`` is False
    """
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field_name} must be a number") from e
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a number")
    if amount < 0 or (not allow_zero and amount == 0):
        bound = "zero or more" if allow_zero else "greater than zero"
        raise ValidationError(f"{field_name} must be {bound}")
    return amount.quantize(CENTS)


def _enum_value(enum_cls: type, value: Any, field_name: str) -> str:
    try:
        return enum_cls(value).value
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"{field_name} must be one of: {allowed}") from e


def merge_monthly_saving(log: list[dict[str, Any]], month: str, amount: Decimal) -> list[dict[str, Any]]:
    """Add ``amount`` under ``month``; the log stays sorted by month."""
    merged: dict[str, Decimal] = {}
    for entry in log:
        key = str(entry.get("month", ""))
        merged[key] = merged.get(key, Decimal("0")) + Decimal(str(entry.get("amount", 0)))
    merged[month] = merged.get(month, Decimal("0")) + amount
    return [{"month": key, "amount": str(merged[key].quantize(CENTS))} for key in sorted(merged)]


class LedgerService:
    """
    Usage:
        service = LedgerService(session, bus)
        category = service.create_category(user_id=1, name="Groceries", budget_amount="400")
        service.create_transaction(user_id=1, type="expense", amount="25.50", category="Groceries")
    """

    def __init__(
        self,
        session: Session,
        bus: LedgerEventBus | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._session = session
        self._bus = bus or LedgerEventBus()
        self._clock = clock

    @property
    def bus(self) -> LedgerEventBus:
        return self._bus

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _user(self, user_id: int) -> User:
        user = self._session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def _owned(self, model: type, resource: str, entity_id: int, user_id: int) -> Any:
        row = self._session.get(model, entity_id)
        if row is None or row.user_id != user_id:
            raise NotFoundError(resource, entity_id)
        return row

    def _advance_stage(self, user: User, event_type: LedgerEventType) -> None:
        rule = STAGE_ADVANCES.get(event_type)
        if rule is None:
            return
        from_stages, to_stage = rule
        if user.onboarding_stage in from_stages:
            logger.info(
                "Onboarding stage for user_id=%s: %s -> %s",
                user.id,
                user.onboarding_stage,
                to_stage.value,
            )
            user.onboarding_stage = to_stage.value

    def _commit_and_publish(
        self,
        event_type: LedgerEventType,
        user_id: int,
        entity_id: int | None,
        **payload: Any,
    ) -> None:
        try:
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        self._bus.publish(
            LedgerEvent(
                event_type=event_type,
                user_id=user_id,
                entity_id=entity_id,
                payload=payload,
                occurred_at=self._clock(),
            )
        )

    # ------------------------------------------------------------------
    # Budget categories
    # ------------------------------------------------------------------

    def list_categories(self, user_id: int) -> list[BudgetCategory]:
        return list(
            self._session.scalars(
                select(BudgetCategory)
                .where(BudgetCategory.user_id == user_id)
                .order_by(BudgetCategory.id)
            ).all()
        )

    def get_category(self, user_id: int, category_id: int) -> BudgetCategory:
        return self._owned(BudgetCategory, "BudgetCategory", category_id, user_id)

    def create_category(
        self,
        user_id: int,
        name: str,
        budget_amount: Any,
        spent_amount: Any = 0,
    ) -> BudgetCategory:
        if not name or not name.strip():
            raise ValidationError("Category name must not be empty")
        budget = to_money(budget_amount, "budget_amount")
        spent = to_money(spent_amount, "spent_amount")
        user = self._user(user_id)
        now = self._clock()

        category = BudgetCategory(
            user_id=user_id,
            name=name.strip(),
            budget_amount=budget,
            spent_amount=spent,
            created_at=now,
        )
        self._session.add(category)
        user.last_budget_update_date = now
        self._advance_stage(user, LedgerEventType.CATEGORY_CREATED)
        self._session.flush()

        category_id = int(category.id)
        self._commit_and_publish(LedgerEventType.CATEGORY_CREATED, user_id, category_id)
        return category

    def update_category(
        self,
        user_id: int,
        category_id: int,
        name: str | None = None,
        budget_amount: Any = None,
        spent_amount: Any = None,
    ) -> BudgetCategory:
        category = self.get_category(user_id, category_id)
        if name is not None:
            if not name.strip():
                raise ValidationError("Category name must not be empty")
            category.name = name.strip()
        if budget_amount is not None:
            category.budget_amount = to_money(budget_amount, "budget_amount")
        if spent_amount is not None:
            category.spent_amount = to_money(spent_amount, "spent_amount")
        self._user(user_id).last_budget_update_date = self._clock()

        self._commit_and_publish(LedgerEventType.CATEGORY_UPDATED, user_id, category_id)
        return category

    def delete_category(self, user_id: int, category_id: int) -> None:
        category = self.get_category(user_id, category_id)
        self._session.delete(category)
        self._commit_and_publish(LedgerEventType.CATEGORY_DELETED, user_id, category_id)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def list_transactions(self, user_id: int, limit: int | None = None) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self._session.scalars(stmt).all())

    def get_transaction(self, user_id: int, transaction_id: int) -> Transaction:
        return self._owned(Transaction, "Transaction", transaction_id, user_id)

    def create_transaction(
        self,
        user_id: int,
        type: str,
        amount: Any,
        date: datetime | None = None,
        merchant: str = "",
        category: str = "",
        account: str = "",
        source: str = TransactionSource.MANUAL.value,
        is_duplicate: bool = False,
    ) -> Transaction:
        """
        Record a transaction.

        Raises:
            ValidationError: Bad type, source or non-positive amount
            NotFoundError: Unknown user
        """
        tx_type = _enum_value(TransactionType, type, "type")
        tx_source = _enum_value(TransactionSource, source, "source")
        value = to_money(amount, "amount", allow_zero=False)
        user = self._user(user_id)
        now = self._clock()

        transaction = Transaction(
            user_id=user_id,
            type=tx_type,
            amount=value,
            date=ensure_utc(date) if date is not None else now,
            merchant=merchant,
            category=category,
            account=account,
            source=tx_source,
            is_duplicate=is_duplicate,
            created_at=now,
        )
        self._session.add(transaction)

        if tx_type == TransactionType.EXPENSE.value and category:
            budget = self._session.scalars(
                select(BudgetCategory).where(
                    BudgetCategory.user_id == user_id,
                    BudgetCategory.name == category,
                )
            ).first()
            if budget is not None:
                budget.spent_amount = Decimal(budget.spent_amount or 0) + value

        user.last_transaction_date = now
        self._advance_stage(user, LedgerEventType.TRANSACTION_CREATED)
        self._session.flush()

        transaction_id = int(transaction.id)
        self._commit_and_publish(
            LedgerEventType.TRANSACTION_CREATED, user_id, transaction_id, type=tx_type
        )
        return transaction

    def update_transaction(self, user_id: int, transaction_id: int, **changes: Any) -> Transaction:
        """
        Update mutable transaction fields.

        Accepted keys: type, amount, date, merchant, category, account,
        source, is_duplicate. Category spend is not adjusted.
        """
        transaction = self.get_transaction(user_id, transaction_id)
        for key, value in changes.items():
            if value is None:
                continue
            if key == "type":
                transaction.type = _enum_value(TransactionType, value, "type")
            elif key == "source":
                transaction.source = _enum_value(TransactionSource, value, "source")
            elif key == "amount":
                transaction.amount = to_money(value, "amount", allow_zero=False)
            elif key == "date":
                transaction.date = ensure_utc(value)
            elif key in {"merchant", "category", "account", "is_duplicate"}:
                setattr(transaction, key, value)
            else:
                raise ValidationError(f"Unknown transaction field {key!r}")

        self._commit_and_publish(LedgerEventType.TRANSACTION_UPDATED, user_id, transaction_id)
        return transaction

    def delete_transaction(self, user_id: int, transaction_id: int) -> None:
        transaction = self.get_transaction(user_id, transaction_id)
        self._session.delete(transaction)
        self._commit_and_publish(LedgerEventType.TRANSACTION_DELETED, user_id, transaction_id)

    # ------------------------------------------------------------------
    # Savings goals
    # ------------------------------------------------------------------

    def list_goals(self, user_id: int) -> list[SavingsGoal]:
        return list(
            self._session.scalars(
                select(SavingsGoal).where(SavingsGoal.user_id == user_id).order_by(SavingsGoal.id)
            ).all()
        )

    def get_goal(self, user_id: int, goal_id: int) -> SavingsGoal:
        return self._owned(SavingsGoal, "SavingsGoal", goal_id, user_id)

    def create_goal(
        self,
        user_id: int,
        name: str,
        target_amount: Any,
        current_amount: Any = 0,
        target_date: datetime | None = None,
    ) -> SavingsGoal:
        if not name or not name.strip():
            raise ValidationError("Goal name must not be empty")
        target = to_money(target_amount, "target_amount")
        current = to_money(current_amount, "current_amount")
        user = self._user(user_id)
        now = self._clock()

        goal = SavingsGoal(
            user_id=user_id,
            name=name.strip(),
            target_amount=target,
            current_amount=current,
            target_date=ensure_utc(target_date) if target_date is not None else None,
            created_at=now,
            updated_at=now,
        )
        goal.monthly_savings = []
        goal.recompute_progress()
        self._session.add(goal)

        user.last_goal_update_date = now
        self._advance_stage(user, LedgerEventType.GOAL_CREATED)
        self._session.flush()

        goal_id = int(goal.id)
        self._commit_and_publish(LedgerEventType.GOAL_CREATED, user_id, goal_id)
        return goal

    def update_goal(
        self,
        user_id: int,
        goal_id: int,
        name: str | None = None,
        target_amount: Any = None,
        target_date: datetime | None = None,
    ) -> SavingsGoal:
        goal = self.get_goal(user_id, goal_id)
        if name is not None:
            if not name.strip():
                raise ValidationError("Goal name must not be empty")
            goal.name = name.strip()
        if target_amount is not None:
            goal.target_amount = to_money(target_amount, "target_amount")
            goal.recompute_progress()
        if target_date is not None:
            goal.target_date = ensure_utc(target_date)
        goal.updated_at = self._clock()

        self._commit_and_publish(LedgerEventType.GOAL_UPDATED, user_id, goal_id)
        return goal

    def contribute_to_goal(self, user_id: int, goal_id: int, amount: Any) -> SavingsGoal:
        """
        Add money to a goal and log it under the current month.

        Raises:
            ValidationError: Non-positive amount
            NotFoundError: Unknown or foreign goal
        """
        value = to_money(amount, "amount", allow_zero=False)
        goal = self.get_goal(user_id, goal_id)
        user = self._user(user_id)
        now = self._clock()

        goal.current_amount = Decimal(goal.current_amount or 0) + value
        goal.recompute_progress()
        goal.monthly_savings = merge_monthly_saving(goal.monthly_savings, month_key(now), value)
        goal.updated_at = now
        user.last_goal_update_date = now

        self._commit_and_publish(LedgerEventType.GOAL_CONTRIBUTION, user_id, goal_id)
        return goal

    def delete_goal(self, user_id: int, goal_id: int) -> None:
        goal = self.get_goal(user_id, goal_id)
        self._session.delete(goal)
        self._commit_and_publish(LedgerEventType.GOAL_DELETED, user_id, goal_id)


__all__ = ["LedgerService", "STAGE_ADVANCES", "to_money", "merge_monthly_saving"]
