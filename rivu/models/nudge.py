"""
Nudge Model for Rivu Core.

A nudge is a contextual prompt derived from rule evaluation. Rows are never
deleted; they move ``active -> dismissed`` or ``active -> completed`` and stay
there.

The trigger condition is stored as canonical JSON (sorted keys) so two
payloads with the same content compare equal as strings, which is what the
active-duplicate check relies on.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from rivu.models.base import Base


class NudgeType(StrEnum):
    """Kinds of nudges."""

    ONBOARDING = "onboarding"
    BUDGET_WARNING = "budget_warning"
    GOAL_REMINDER = "goal_reminder"
    TRANSACTION_REMINDER = "transaction_reminder"
    SCORE_ALERT = "score_alert"
    ACTIVITY_REMINDER = "activity_reminder"


class NudgeStatus(StrEnum):
    """Lifecycle states. DISMISSED and COMPLETED are terminal."""

    ACTIVE = "active"
    DISMISSED = "dismissed"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self is not NudgeStatus.ACTIVE


def canonical_json(payload: dict[str, Any]) -> str:
    """Stable JSON encoding used for storage and equality checks."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


class Nudge(Base):
    """
    Persisted nudge.

    Attributes:
        id: Primary key
        user_id: Owner
        type: NudgeType value
        message: User-facing text
        status: NudgeStatus value
        trigger_condition_json: Canonical JSON of the trigger payload
        due_date: Optional "show from" timestamp
        created_at / dismissed_at / completed_at: Lifecycle timestamps
    """

    __tablename__ = "nudges"

    user = relationship("User", back_populates="nudges")

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(30), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String(12), nullable=False, default=NudgeStatus.ACTIVE.value)
    trigger_condition_json = Column("trigger_condition", Text, nullable=False, default="{}")
    due_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    dismissed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_nudge_user_status", "user_id", "status"),
        Index("idx_nudge_user_type", "user_id", "type"),
    )

    @property
    def trigger_condition(self) -> dict[str, Any]:
        """Decoded trigger payload."""
        try:
            data = json.loads(str(self.trigger_condition_json or "{}"))
        except json.JSONDecodeError:
            return {}
        return data if isinstance(data, dict) else {}

    @trigger_condition.setter
    def trigger_condition(self, value: dict[str, Any]) -> None:
        self.trigger_condition_json = canonical_json(value)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "message": self.message,
            "status": self.status,
            "trigger_condition": self.trigger_condition,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "dismissed_at": self.dismissed_at.isoformat() if self.dismissed_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    def __repr__(self) -> str:
        return f"<Nudge(id={self.id}, user_id={self.user_id}, type={self.type}, status={self.status})>"


__all__ = ["Nudge", "NudgeType", "NudgeStatus", "canonical_json"]
