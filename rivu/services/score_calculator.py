"""
Score Calculator for Rivu Core.

Pure functions from a ledger snapshot and the user's login count to the
Rivu Score and its three sub-factors. Nothing here touches the database or
the clock; ``now`` is passed in.

Weights:
- Budget adherence: 50%
- Savings progress: 30%
- Weekly activity: 20%

Rounding is half-up (0.5 rounds away from zero) throughout.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from rivu.lib.timeutil import ensure_utc
from rivu.services.ledger_reader import LedgerSnapshot

ADHERENCE_WEIGHT = Decimal("0.5")
SAVINGS_WEIGHT = Decimal("0.3")
ACTIVITY_WEIGHT = Decimal("0.2")

ACTIVITY_WINDOW = timedelta(days=7)
ACTIVITY_POINTS_PER_TRANSACTION = 10
LOGIN_FLOOR_SCORE = 10

FACTOR_WEIGHTS: dict[str, Decimal] = {
    "budget_adherence": ADHERENCE_WEIGHT,
    "savings_progress": SAVINGS_WEIGHT,
    "weekly_activity": ACTIVITY_WEIGHT,
}


def round_half_up(value: Decimal | int | float) -> int:
    """Round to the nearest integer, halves away from zero."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class ScoreBreakdown:
    """The four integers persisted for a user."""

    score: int
    budget_adherence: int
    savings_progress: int
    weekly_activity: int

    def as_raw_factors(self) -> dict[str, int]:
        return {
            "budgetAdherence": self.budget_adherence,
            "savingsProgress": self.savings_progress,
            "weeklyActivity": self.weekly_activity,
        }


def calculate_budget_adherence(snapshot: LedgerSnapshot) -> int:
    total_budgeted = sum((c.budget_amount for c in snapshot.categories), Decimal("0"))
    if total_budgeted <= 0:
        return 0

    total_overspent = sum(
        (max(Decimal("0"), c.spent_amount - c.budget_amount) for c in snapshot.categories),
        Decimal("0"),
    )
    ratio = (total_budgeted - total_overspent) / total_budgeted
    ratio = max(Decimal("0"), min(Decimal("1"), ratio))
    return round_half_up(ratio * 100)


def calculate_savings_progress(snapshot: LedgerSnapshot) -> int:
    total_target = sum((g.target_amount for g in snapshot.goals), Decimal("0"))
    if total_target <= 0:
        return 0

    total_saved = sum((g.current_amount for g in snapshot.goals), Decimal("0"))
    progress = round_half_up(total_saved / total_target * 100)
    return max(0, min(100, progress))


def count_recent_transactions(snapshot: LedgerSnapshot, now: datetime) -> int:
    """Transactions dated within ``[now - 7 days, now]``, both ends inclusive."""
    now = ensure_utc(now)
    window_start = now - ACTIVITY_WINDOW
    return sum(1 for t in snapshot.transactions if window_start <= ensure_utc(t.date) <= now)


def calculate_weekly_activity(snapshot: LedgerSnapshot, now: datetime) -> int:
    count = count_recent_transactions(snapshot, now)
    return min(100, count * ACTIVITY_POINTS_PER_TRANSACTION)


def composite_score(
    budget_adherence: int,
    savings_progress: int,
    weekly_activity: int,
) -> int:
    weighted = (
        budget_adherence * ADHERENCE_WEIGHT
        + savings_progress * SAVINGS_WEIGHT
        + weekly_activity * ACTIVITY_WEIGHT
    )
    return round_half_up(weighted)


def calculate_score(snapshot: LedgerSnapshot, login_count: int, now: datetime) -> ScoreBreakdown:
    """
    Compute the Rivu Score for one user.

    Args:
        snapshot: The user's ledger
        login_count: Number of recorded logins
        now: Reference time for the activity window

    Returns:
        ScoreBreakdown; zero-data users get all zeros, or the welcome floor
        of 10 once they have logged in
    """
    adherence = calculate_budget_adherence(snapshot)
    progress = calculate_savings_progress(snapshot)
    activity = calculate_weekly_activity(snapshot, now)

    if snapshot.transactions or snapshot.categories:
        score = composite_score(adherence, progress, activity)
    elif login_count > 0:
        score = LOGIN_FLOOR_SCORE
    else:
        score = 0

    return ScoreBreakdown(
        score=score,
        budget_adherence=adherence,
        savings_progress=progress,
        weekly_activity=activity,
    )


__all__ = [
    "ADHERENCE_WEIGHT",
    "SAVINGS_WEIGHT",
    "ACTIVITY_WEIGHT",
    "FACTOR_WEIGHTS",
    "LOGIN_FLOOR_SCORE",
    "ScoreBreakdown",
    "round_half_up",
    "calculate_budget_adherence",
    "calculate_savings_progress",
    "count_recent_transactions",
    "calculate_weekly_activity",
    "composite_score",
    "calculate_score",
]
