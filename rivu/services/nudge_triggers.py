"""
Nudge Trigger Conditions.

Every nudge records why it fired. The payload is a tagged union keyed by
``type``; each variant has its own typed fields. Stored payloads are
validated through ``parse_trigger`` and written as canonical JSON.
"""

from __future__ import annotations

from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from rivu.lib.exceptions import ValidationError
from rivu.models.nudge import canonical_json


class _Trigger(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    # Payload fields compared when looking for an active duplicate; None compares all of them
    dedupe_fields: ClassVar[tuple[str, ...] | None] = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    def to_json(self) -> str:
        return canonical_json(self.to_payload())

    def dedupe_key(self) -> dict[str, Any] | None:
        """Fields an active nudge must share to count as a duplicate, or None for the whole payload."""
        if self.dedupe_fields is None:
            return None
        payload = self.to_payload()
        return {name: payload.get(name) for name in self.dedupe_fields}


class NewUserTrigger(_Trigger):
    """Welcome nudge for a user at stage ``new``."""

    type: Literal["new_user"] = "new_user"


class FirstTransactionTrigger(_Trigger):
    """Budget exists but no transaction has been recorded."""

    type: Literal["first_transaction"] = "first_transaction"


class FirstGoalTrigger(_Trigger):
    """Transactions exist but no savings goal."""

    type: Literal["first_goal"] = "first_goal"


class TransactionInactivityTrigger(_Trigger):
    dedupe_fields: ClassVar[tuple[str, ...] | None] = ("type",)

    type: Literal["transaction_inactivity"] = "transaction_inactivity"
    days_since: int = Field(..., ge=0)


class GoalInactivityTrigger(_Trigger):
    dedupe_fields: ClassVar[tuple[str, ...] | None] = ("type",)

    type: Literal["goal_inactivity"] = "goal_inactivity"
    days_since: int = Field(..., ge=0)


class BudgetRiskTrigger(_Trigger):
    dedupe_fields: ClassVar[tuple[str, ...] | None] = ("type", "category_id")

    type: Literal["budget_risk"] = "budget_risk"
    category_id: int
    category_name: str
    percent_used: int = Field(..., ge=0)


class ManualTrigger(_Trigger):
    """Created through the API rather than by a rule."""

    type: Literal["manual"] = "manual"
    note: str | None = None


TriggerCondition = Annotated[
    NewUserTrigger
    | FirstTransactionTrigger
    | FirstGoalTrigger
    | TransactionInactivityTrigger
    | GoalInactivityTrigger
    | BudgetRiskTrigger
    | ManualTrigger,
    Field(discriminator="type"),
]

_trigger_adapter: TypeAdapter[Any] = TypeAdapter(TriggerCondition)


def parse_trigger(payload: dict[str, Any] | None) -> TriggerCondition:
    """
    Validate a raw payload against the union.

    ``None`` or ``{}`` means a manual trigger.

    Raises:
        ValidationError: Unknown ``type`` or bad fields
    """
    if not payload:
        return ManualTrigger()
    try:
        return _trigger_adapter.validate_python(payload)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid trigger condition: {exc.errors()[0]['msg']}") from exc


__all__ = [
    "TriggerCondition",
    "NewUserTrigger",
    "FirstTransactionTrigger",
    "FirstGoalTrigger",
    "TransactionInactivityTrigger",
    "GoalInactivityTrigger",
    "BudgetRiskTrigger",
    "ManualTrigger",
    "parse_trigger",
]
