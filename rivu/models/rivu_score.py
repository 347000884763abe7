"""
Rivu Score Models.

``RivuScore`` is the materialized "latest" view: one row per user, upserted
by every recalculation. ``ScoreHistory`` is the append-only snapshot log the
trend, recent-change and monthly-average views are derived from.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from rivu.models.base import Base


class HistoryEntryKind(StrEnum):
    """Origin of a history row."""

    CALCULATED = "calculated"  # written by a recalculation
    MANUAL = "manual"          # annotation added through addScoreHistoryEntry


class RivuScore(Base):
    """Latest score and sub-factor breakdown for a user."""

    __tablename__ = "rivu_scores"

    user = relationship("User", back_populates="rivu_score")

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    score = Column(Integer, nullable=False)
    budget_adherence = Column(Integer, nullable=False)
    savings_progress = Column(Integer, nullable=False)
    weekly_activity = Column(Integer, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<RivuScore(user_id={self.user_id}, score={self.score})>"


class ScoreHistory(Base):
    """One point in a user's score timeline."""

    __tablename__ = "score_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(12), nullable=False, default=HistoryEntryKind.CALCULATED.value)
    score = Column(Integer, nullable=False)
    previous_score = Column(Integer, nullable=True)
    change = Column(Integer, nullable=True)
    budget_adherence = Column(Integer, nullable=True)
    savings_progress = Column(Integer, nullable=True)
    weekly_activity = Column(Integer, nullable=True)
    reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    _change_factors_json = Column("change_factors", Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    __table_args__ = (Index("idx_score_history_user_created", "user_id", "created_at"),)

    @property
    def change_factors(self) -> dict[str, int]:
        """Per-factor deltas recorded with this snapshot."""
        if not self._change_factors_json:
            return {}
        try:
            data: Any = json.loads(str(self._change_factors_json))
        except json.JSONDecodeError:
            return {}
        return data if isinstance(data, dict) else {}

    @change_factors.setter
    def change_factors(self, value: dict[str, int] | None) -> None:
        setattr(self, "_change_factors_json", json.dumps(value, sort_keys=True) if value else None)

    def __repr__(self) -> str:
        return f"<ScoreHistory(id={self.id}, user_id={self.user_id}, score={self.score}, kind={self.kind})>"


__all__ = ["RivuScore", "ScoreHistory", "HistoryEntryKind"]
