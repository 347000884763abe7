"""
Rivu Score Service.

Orchestrates the score pipeline for one user:

    LedgerReader -> calculate_score -> RivuScore upsert + ScoreHistory append

and builds the presentation payload (factors with ratings, raw factors,
recent changes, monthly averages, improvement areas). Recalculation is also
the ledger-event subscriber: ``on_ledger_event`` is registered on the
``LedgerEventBus`` so every committed ledger write refreshes the score.
"""

from __future__ import annotations

import logging
import math
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from rivu.core.ledger_events import LedgerEvent
from rivu.infra.monitoring import record_score_recalculation, track_score_calculation
from rivu.lib.exceptions import CalculationError, NotFoundError
from rivu.lib.timeutil import Clock, ensure_utc, utc_now
from rivu.models.rivu_score import RivuScore, ScoreHistory
from rivu.services.ledger_reader import GoalSnapshot, LedgerReader, LedgerSnapshot
from rivu.services.score_calculator import (
    FACTOR_WEIGHTS,
    ScoreBreakdown,
    calculate_score,
    round_half_up,
)
from rivu.services.score_history import (
    FACTOR_LABELS,
    ScoreHistoryStore,
    history_point,
    monthly_averages,
    recent_changes,
)

logger = logging.getLogger(__name__)

IMPROVEMENT_TARGET = 80

# (minimum, label), highest band first
RATING_BANDS: tuple[tuple[int, str], ...] = (
    (90, "Excellent"),
    (70, "Good"),
    (50, "Fair"),
    (30, "Poor"),
)


def rating_for(value: int) -> str:
    for minimum, label in RATING_BANDS:
        if value >= minimum:
            return label
    return "Needs Improvement"


def estimate_months_to_goal(goal: GoalSnapshot) -> int | None:
    """
    Months until a goal is reached at its average monthly saving.

    Returns:
        0 when already reached, None without usable savings history
    """
    remaining = goal.target_amount - goal.current_amount
    if remaining <= 0:
        return 0

    amounts = [amount for _, amount in goal.monthly_savings]
    if not amounts:
        return None
    average = sum(amounts, Decimal("0")) / len(amounts)
    if average <= 0:
        return None
    return math.ceil(remaining / average)


def _closest_goal_estimate(snapshot: LedgerSnapshot) -> tuple[str, int] | None:
    estimates = [
        (goal.name, months)
        for goal in snapshot.goals
        if (months := estimate_months_to_goal(goal))
    ]
    if not estimates:
        return None
    return min(estimates, key=lambda item: item[1])


def _strategy(factor: str, snapshot: LedgerSnapshot) -> str:
    if factor == "budget_adherence":
        if not snapshot.categories:
            return "Create budget categories and keep spending within each limit."
        over = [c.name for c in snapshot.categories if c.spent_amount > c.budget_amount]
        if over:
            return f"Bring spending in {', '.join(over)} back under budget."
        return "Keep spending within each category's budget."
    if factor == "savings_progress":
        if not snapshot.goals:
            return "Set a savings goal and contribute to it regularly."
        closest = _closest_goal_estimate(snapshot)
        if closest is not None:
            name, months = closest
            return (
                f"Keep up regular contributions; at your current pace {name} "
                f"is about {months} month{'s' if months != 1 else ''} away."
            )
        return "Make a contribution to your savings goals every month."
    return "Record transactions as they happen; ten a week keeps this factor at its maximum."


def improvement_areas(breakdown: ScoreBreakdown, snapshot: LedgerSnapshot) -> list[dict[str, Any]]:
    """Factors below the target, largest potential gain first."""
    values = {
        "budget_adherence": breakdown.budget_adherence,
        "savings_progress": breakdown.savings_progress,
        "weekly_activity": breakdown.weekly_activity,
    }
    areas = []
    for factor, current in values.items():
        if current >= IMPROVEMENT_TARGET:
            continue
        areas.append(
            {
                "factor": FACTOR_LABELS[factor],
                "currentValue": current,
                "targetValue": IMPROVEMENT_TARGET,
                "improvementStrategy": _strategy(factor, snapshot),
                "potentialScoreGain": round_half_up(
                    (IMPROVEMENT_TARGET - current) * FACTOR_WEIGHTS[factor]
                ),
            }
        )
    areas.sort(key=lambda area: area["potentialScoreGain"], reverse=True)
    return areas


def _breakdown_of(row: RivuScore | ScoreHistory) -> ScoreBreakdown:
    return ScoreBreakdown(
        score=int(row.score),
        budget_adherence=int(row.budget_adherence or 0),
        savings_progress=int(row.savings_progress or 0),
        weekly_activity=int(row.weekly_activity or 0),
    )


class RivuScoreService:
    """
    Score engine entry point.

    Usage:
        service = RivuScoreService(session)
        report = service.get_score(user_id=1)
        service.recalculate_score(user_id=1, trigger="api")
    """

    def __init__(self, session: Session, clock: Clock = utc_now) -> None:
        self._session = session
        self._clock = clock
        self._reader = LedgerReader(session)
        self._history = ScoreHistoryStore(session)

    def _stored(self, user_id: int) -> RivuScore | None:
        return self._session.scalars(
            select(RivuScore).where(RivuScore.user_id == user_id)
        ).first()

    def calculate(self, user_id: int) -> ScoreBreakdown:
        """Compute without persisting."""
        state = self._reader.user_state(user_id)
        snapshot = self._reader.snapshot(user_id)
        try:
            return calculate_score(snapshot, state.login_count, self._clock())
        except ArithmeticError as exc:
            raise CalculationError(f"Could not score user {user_id}: {exc}") from exc

    def recalculate_score(self, user_id: int, trigger: str = "api") -> RivuScore:
        """
        Recompute, upsert the latest row and append a history snapshot.

        Args:
            user_id: User to score
            trigger: What caused the recalculation (metric label and history reason)

        Raises:
            NotFoundError: Unknown user
        """
        now = self._clock()
        try:
            with track_score_calculation():
                breakdown = self.calculate(user_id)

            row = self._stored(user_id)
            previous = _breakdown_of(row) if row is not None else None
            if row is None:
                row = RivuScore(user_id=user_id, created_at=now)
                self._session.add(row)
            row.score = breakdown.score
            row.budget_adherence = breakdown.budget_adherence
            row.savings_progress = breakdown.savings_progress
            row.weekly_activity = breakdown.weekly_activity
            row.updated_at = now

            reason = "Initial score calculation" if previous is None else f"Recalculated after {trigger}"
            self._history.append_calculated(user_id, breakdown, previous, reason, now)
            self._session.commit()
        except Exception:
            self._session.rollback()
            record_score_recalculation(trigger, succeeded=False)
            raise

        record_score_recalculation(trigger, succeeded=True)
        logger.info(
            "Rivu score recalculated for user_id=%s: %s (trigger=%s)",
            user_id,
            breakdown.score,
            trigger,
        )
        return row

    def on_ledger_event(self, event: LedgerEvent) -> None:
        """Ledger-event subscriber."""
        self.recalculate_score(event.user_id, trigger=event.name)

    def get_score(self, user_id: int, time_range: str | None = None) -> dict[str, Any]:
        """Stored score report, calculating first when none exists."""
        row = self._stored(user_id)
        if row is None:
            row = self.recalculate_score(user_id, trigger="initial")
        return self.build_report(user_id, row, time_range)

    def build_report(
        self,
        user_id: int,
        row: RivuScore,
        time_range: str | None = None,
    ) -> dict[str, Any]:
        breakdown = _breakdown_of(row)
        snapshot = self._reader.snapshot(user_id)
        entries = self._history.list_range(user_id, time_range, self._clock())

        report: dict[str, Any] = {
            "score": breakdown.score,
            "rating": rating_for(breakdown.score),
            "factors": [
                {
                    "name": FACTOR_LABELS[factor],
                    "percentage": value,
                    "rating": rating_for(value),
                }
                for factor, value in (
                    ("budget_adherence", breakdown.budget_adherence),
                    ("savings_progress", breakdown.savings_progress),
                    ("weekly_activity", breakdown.weekly_activity),
                )
            ],
            "rawFactors": breakdown.as_raw_factors(),
            "lastUpdated": ensure_utc(row.updated_at).isoformat(),
            "monthlyAverages": monthly_averages(entries),
            "improvementAreas": improvement_areas(breakdown, snapshot),
        }
        changes = recent_changes(self._history.latest_calculated(user_id))
        if changes is not None:
            report["recentChanges"] = changes
        return report

    def get_score_history(
        self,
        user_id: int,
        time_range: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Chronological ``{date, score, ...}`` points inside the window."""
        self._reader.get_user(user_id)
        entries = self._history.list_range(user_id, time_range, self._clock(), limit=limit)
        return [history_point(entry) for entry in entries]

    def add_score_history_entry(
        self,
        user_id: int,
        reason: str,
        delta: int,
        notes: str | None = None,
    ) -> ScoreHistory:
        """
        Annotate the timeline with a manual entry at the current score.

        Raises:
            NotFoundError: The user has no score yet
        """
        row = self._stored(user_id)
        if row is None:
            raise NotFoundError("RivuScore", user_id)

        entry = self._history.append_manual(
            user_id, int(row.score), delta, reason, self._clock(), notes=notes
        )
        self._session.commit()
        logger.info("Manual score history entry added for user_id=%s", user_id)
        return entry


__all__ = [
    "RivuScoreService",
    "IMPROVEMENT_TARGET",
    "rating_for",
    "estimate_months_to_goal",
    "improvement_areas",
]
