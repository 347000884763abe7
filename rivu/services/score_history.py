"""
Score History Store for Rivu Core.

Append-only snapshot log behind the score trend views. Each recalculation
appends a ``calculated`` row; ``addScoreHistoryEntry`` appends a ``manual``
annotation. Rows are never updated.

Derived views (all computed from rows, never from an independent score):
- range listing for ``1month`` / ``3months`` / ``6months`` / ``year``
- recent changes between the two latest calculated snapshots
- monthly averages
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from rivu.lib.exceptions import ValidationError
from rivu.lib.timeutil import ensure_utc, month_key
from rivu.models.rivu_score import HistoryEntryKind, ScoreHistory
from rivu.services.score_calculator import ScoreBreakdown, round_half_up

logger = logging.getLogger(__name__)

TIME_RANGE_DAYS: dict[str, int] = {
    "1month": 30,
    "3months": 90,
    "6months": 180,
    "year": 365,
}

DEFAULT_TIME_RANGE = "1month"

FACTOR_LABELS: dict[str, str] = {
    "budget_adherence": "Budget Adherence",
    "savings_progress": "Savings Goal Progress",
    "weekly_activity": "Weekly Activity",
}


def parse_time_range(time_range: str | None) -> timedelta:
    """Map a time-range name to its window, raising ``ValidationError`` for unknown names."""
    key = time_range or DEFAULT_TIME_RANGE
    if key not in TIME_RANGE_DAYS:
        raise ValidationError(
            f"Unknown time range {key!r}; expected one of {', '.join(TIME_RANGE_DAYS)}"
        )
    return timedelta(days=TIME_RANGE_DAYS[key])


def factor_deltas(current: ScoreBreakdown, previous: ScoreBreakdown | None) -> dict[str, int]:
    if previous is None:
        return {}
    return {
        "budget_adherence": current.budget_adherence - previous.budget_adherence,
        "savings_progress": current.savings_progress - previous.savings_progress,
        "weekly_activity": current.weekly_activity - previous.weekly_activity,
    }


class ScoreHistoryStore:
    """
    Persistence for ``ScoreHistory`` rows.

    The store adds rows to the session; the caller commits.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def append_calculated(
        self,
        user_id: int,
        breakdown: ScoreBreakdown,
        previous: ScoreBreakdown | None,
        reason: str,
        now: datetime,
    ) -> ScoreHistory:
        previous_score = previous.score if previous is not None else None
        entry = ScoreHistory(
            user_id=user_id,
            kind=HistoryEntryKind.CALCULATED.value,
            score=breakdown.score,
            previous_score=previous_score,
            change=breakdown.score - previous_score if previous_score is not None else None,
            budget_adherence=breakdown.budget_adherence,
            savings_progress=breakdown.savings_progress,
            weekly_activity=breakdown.weekly_activity,
            reason=reason,
            created_at=now,
        )
        entry.change_factors = factor_deltas(breakdown, previous)
        self._session.add(entry)
        return entry

    def append_manual(
        self,
        user_id: int,
        score: int,
        delta: int,
        reason: str,
        now: datetime,
        notes: str | None = None,
    ) -> ScoreHistory:
        entry = ScoreHistory(
            user_id=user_id,
            kind=HistoryEntryKind.MANUAL.value,
            score=score,
            previous_score=score - delta,
            change=delta,
            reason=reason,
            notes=notes,
            created_at=now,
        )
        self._session.add(entry)
        return entry

    def list_range(
        self,
        user_id: int,
        time_range: str | None,
        now: datetime,
        limit: int | None = None,
    ) -> list[ScoreHistory]:
        """
        History rows inside the window, oldest first.

        Args:
            user_id: Owner
            time_range: One of ``TIME_RANGE_DAYS``
            now: End of the window
            limit: Keep only the most recent N rows

        Raises:
            ValidationError: Unknown time range or non-positive limit
        """
        window = parse_time_range(time_range)
        if limit is not None and limit < 1:
            raise ValidationError("limit must be at least 1")

        since = ensure_utc(now) - window
        stmt = (
            select(ScoreHistory)
            .where(ScoreHistory.user_id == user_id, ScoreHistory.created_at >= since)
            .order_by(ScoreHistory.created_at.desc(), ScoreHistory.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = list(self._session.scalars(stmt).all())
        rows.reverse()
        return rows

    def latest_calculated(self, user_id: int, count: int = 2) -> list[ScoreHistory]:
        """Most recent calculated snapshots, newest first."""
        stmt = (
            select(ScoreHistory)
            .where(
                ScoreHistory.user_id == user_id,
                ScoreHistory.kind == HistoryEntryKind.CALCULATED.value,
            )
            .order_by(ScoreHistory.created_at.desc(), ScoreHistory.id.desc())
            .limit(count)
        )
        return list(self._session.scalars(stmt).all())


def history_point(entry: ScoreHistory) -> dict[str, Any]:
    return {
        "id": entry.id,
        "date": ensure_utc(entry.created_at).isoformat(),
        "score": entry.score,
        "change": entry.change,
        "kind": entry.kind,
        "reason": entry.reason,
        "notes": entry.notes,
    }


def _change_reason(label: str, delta: int) -> str:
    direction = "improved" if delta > 0 else "declined"
    return f"{label} {direction} by {abs(delta)} points"


def recent_changes(latest: list[ScoreHistory]) -> dict[str, Any] | None:
    """
    Summarise the move between the two newest calculated snapshots.

    Args:
        latest: Calculated snapshots, newest first

    Returns:
        ``{"netChange": int, "changes": [...]}`` or None with fewer than two
    """
    if len(latest) < 2:
        return None

    current, previous = latest[0], latest[1]
    changes = []
    for attr, label in FACTOR_LABELS.items():
        delta = int(getattr(current, attr) or 0) - int(getattr(previous, attr) or 0)
        if delta:
            changes.append({"factor": label, "change": delta, "reason": _change_reason(label, delta)})

    return {"netChange": current.score - previous.score, "changes": changes}


def monthly_averages(entries: list[ScoreHistory]) -> list[dict[str, Any]]:
    """Average score per ``YYYY-MM`` for chronologically ordered rows."""
    buckets: OrderedDict[str, list[int]] = OrderedDict()
    for entry in entries:
        buckets.setdefault(month_key(entry.created_at), []).append(entry.score)

    result: list[dict[str, Any]] = []
    previous_average: int | None = None
    for month, scores in buckets.items():
        average = round_half_up(Decimal(sum(scores)) / len(scores))
        result.append(
            {
                "month": month,
                "averageScore": average,
                "change": 0 if previous_average is None else average - previous_average,
            }
        )
        previous_average = average
    return result


__all__ = [
    "TIME_RANGE_DAYS",
    "DEFAULT_TIME_RANGE",
    "FACTOR_LABELS",
    "ScoreHistoryStore",
    "parse_time_range",
    "factor_deltas",
    "history_point",
    "recent_changes",
    "monthly_averages",
]
