"""
Nudge Rule Engine.

Evaluates the fixed rule set against a user's state and ledger and returns
candidate nudges. Evaluation is pure; persistence and dedupe happen in
``NudgeService``.

Two phases, never mixed in one pass:
- Onboarding (user is "new"): at most one onboarding nudge, chosen by stage
- Behavioral (user is past onboarding): transaction inactivity, goal
  inactivity and budget risk, all firing independently
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from rivu.lib.timeutil import days_since, ensure_utc
from rivu.models.nudge import NudgeType
from rivu.models.user import OnboardingStage
from rivu.services.ledger_reader import CategorySnapshot, LedgerSnapshot, UserState
from rivu.services.nudge_triggers import (
    BudgetRiskTrigger,
    FirstGoalTrigger,
    FirstTransactionTrigger,
    GoalInactivityTrigger,
    NewUserTrigger,
    TransactionInactivityTrigger,
    TriggerCondition,
)
from rivu.services.score_calculator import round_half_up

# Onboarding window length from account creation
NEW_USER_WINDOW = timedelta(days=7)

TRANSACTION_INACTIVITY_DAYS = 5
GOAL_INACTIVITY_DAYS = 14

# Budget-risk band: lower bound inclusive, upper bound exclusive
BUDGET_RISK_LOWER = Decimal("0.8")
BUDGET_RISK_UPPER = Decimal("1.0")


@dataclass(frozen=True)
class NudgeCandidate:
    """A nudge the rules want to show, before persistence."""

    type: NudgeType
    message: str
    trigger: TriggerCondition


def is_new_user(state: UserState, now: datetime) -> bool:
    """
    True inside the onboarding window.

    A missing account creation date keeps the user in the window.
    """
    if state.onboarding_completed:
        return False
    if state.account_creation_date is None:
        return True
    return ensure_utc(now) - ensure_utc(state.account_creation_date) < NEW_USER_WINDOW


def onboarding_candidate(state: UserState, snapshot: LedgerSnapshot) -> NudgeCandidate | None:
    stage = state.onboarding_stage
    if stage is OnboardingStage.NEW:
        return NudgeCandidate(
            type=NudgeType.ONBOARDING,
            message="Welcome to Rivu! Start by creating your first budget category.",
            trigger=NewUserTrigger(),
        )
    if stage is OnboardingStage.BUDGET_CREATED and state.last_transaction_date is None:
        return NudgeCandidate(
            type=NudgeType.ONBOARDING,
            message="Nice budget! Now add your first transaction to start tracking spending.",
            trigger=FirstTransactionTrigger(),
        )
    if stage is OnboardingStage.TRANSACTION_ADDED and not snapshot.goals:
        return NudgeCandidate(
            type=NudgeType.ONBOARDING,
            message="You're tracking spending. Create a savings goal to put money aside.",
            trigger=FirstGoalTrigger(),
        )
    return None


def budget_usage(category: CategorySnapshot) -> Decimal | None:
    """spent / budget, or None when the category has no budget."""
    if category.budget_amount <= 0:
        return None
    return category.spent_amount / category.budget_amount


def behavioral_candidates(
    state: UserState,
    snapshot: LedgerSnapshot,
    now: datetime,
) -> list[NudgeCandidate]:
    candidates: list[NudgeCandidate] = []

    if state.last_transaction_date is not None:
        idle = days_since(state.last_transaction_date, now)
        if idle >= TRANSACTION_INACTIVITY_DAYS:
            candidates.append(
                NudgeCandidate(
                    type=NudgeType.TRANSACTION_REMINDER,
                    message=f"It's been {idle} days since your last transaction. Keep your spending up to date.",
                    trigger=TransactionInactivityTrigger(days_since=idle),
                )
            )

    if state.last_goal_update_date is not None:
        idle = days_since(state.last_goal_update_date, now)
        if idle >= GOAL_INACTIVITY_DAYS:
            candidates.append(
                NudgeCandidate(
                    type=NudgeType.GOAL_REMINDER,
                    message=f"Your savings goals haven't been updated in {idle} days. Consider making a contribution.",
                    trigger=GoalInactivityTrigger(days_since=idle),
                )
            )

    for category in snapshot.categories:
        usage = budget_usage(category)
        if usage is None or not (BUDGET_RISK_LOWER <= usage < BUDGET_RISK_UPPER):
            continue
        percent = round_half_up(usage * 100)
        candidates.append(
            NudgeCandidate(
                type=NudgeType.BUDGET_WARNING,
                message=f"You've used {percent}% of your {category.name} budget.",
                trigger=BudgetRiskTrigger(
                    category_id=category.id,
                    category_name=category.name,
                    percent_used=percent,
                ),
            )
        )

    return candidates


def evaluate_rules(state: UserState, snapshot: LedgerSnapshot, now: datetime) -> list[NudgeCandidate]:
    """All candidates for one evaluation pass."""
    if is_new_user(state, now):
        candidate = onboarding_candidate(state, snapshot)
        return [candidate] if candidate is not None else []
    return behavioral_candidates(state, snapshot, now)


__all__ = [
    "NudgeCandidate",
    "NEW_USER_WINDOW",
    "TRANSACTION_INACTIVITY_DAYS",
    "GOAL_INACTIVITY_DAYS",
    "is_new_user",
    "onboarding_candidate",
    "budget_usage",
    "behavioral_candidates",
    "evaluate_rules",
]
