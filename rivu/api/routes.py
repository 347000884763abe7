"""
REST API Routes for Rivu Core.

All responses use the ``{success, data, error}`` envelope. Domain
exceptions are translated to status codes by the handlers registered in
``create_app``.

Endpoints (all under /api/v1 prefix):
- /health - Health check
- /auth/register - Register a user and receive a bearer token
- /rivu-score - Score report, recalculation, history
- /nudges - List, create, check, dismiss, complete
- /user - Profile, login, onboarding stage
- /budget-categories, /transactions, /goals - Ledger CRUD
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query

from rivu.api.auth import AuthService
from rivu.api.dependencies import get_auth_service, get_current_user_id, get_services
from rivu.api.schemas import (
    CategoryCreate,
    CategoryUpdate,
    GoalContribution,
    GoalCreate,
    GoalUpdate,
    NudgeCreate,
    OnboardingStageUpdate,
    RegisterRequest,
    ScoreHistoryEntryCreate,
    TransactionCreate,
    TransactionUpdate,
    category_to_dict,
    goal_to_dict,
    history_entry_to_dict,
    success_response,
    transaction_to_dict,
)
from rivu.services.container import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")


# =============================================================================
# Health / Auth
# =============================================================================


@router.get("/health")
def health_check() -> dict[str, Any]:
    return success_response({"status": "ok"})


@router.post("/auth/register", status_code=201)
def register(
    data: RegisterRequest,
    services: Services = Depends(get_services),
    auth_service: AuthService = Depends(get_auth_service),
) -> dict[str, Any]:
    user = services.users.register_user(data.username, data.email)
    token = auth_service.generate_token(int(user.id))
    return success_response(
        {
            "user_id": user.id,
            "access_token": auth_service.encode_token(token),
            "token_type": token.token_type,
            "expires_at": token.expires_at.isoformat(),
        }
    )


# =============================================================================
# Rivu Score
# =============================================================================


@router.get("/rivu-score")
def get_rivu_score(
    time_range: str = Query("1month"),
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return success_response(services.scores.get_score(user_id, time_range))


@router.post("/rivu-score/recalculate")
def recalculate_rivu_score(
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    row = services.scores.recalculate_score(user_id, trigger="api")
    return success_response(services.scores.build_report(user_id, row))


@router.get("/rivu-score/history")
def get_rivu_score_history(
    time_range: str = Query("1month"),
    limit: int | None = Query(None, ge=1, le=1000),
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    history = services.scores.get_score_history(user_id, time_range, limit=limit)
    return success_response({"timeRange": time_range, "history": history})


@router.post("/rivu-score/history", status_code=201)
def add_rivu_score_history_entry(
    data: ScoreHistoryEntryCreate,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    entry = services.scores.add_score_history_entry(user_id, data.reason, data.change, notes=data.notes)
    return success_response(history_entry_to_dict(entry))


# =============================================================================
# Nudges
# =============================================================================


@router.get("/nudges")
def list_nudges(
    status: str | None = Query(None),
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    nudges = services.nudges.list_nudges(user_id, status)
    return success_response({"nudges": [n.to_dict() for n in nudges], "total": len(nudges)})


@router.post("/nudges", status_code=201)
def create_nudge(
    data: NudgeCreate,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    nudge = services.nudges.create_nudge(
        user_id,
        data.type,
        data.message,
        trigger_condition=data.trigger_condition,
        due_date=data.due_date,
    )
    return success_response(nudge.to_dict())


@router.post("/nudges/check")
def check_nudges(
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    created = services.nudges.check_and_create_nudges(user_id)
    return success_response({"nudges": [n.to_dict() for n in created], "created": len(created)})


@router.patch("/nudges/{nudge_id}/dismiss")
def dismiss_nudge(
    nudge_id: int,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return success_response(services.nudges.dismiss_nudge(nudge_id, user_id=user_id).to_dict())


@router.patch("/nudges/{nudge_id}/complete")
def complete_nudge(
    nudge_id: int,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return success_response(services.nudges.complete_nudge(nudge_id, user_id=user_id).to_dict())


# =============================================================================
# User
# =============================================================================


@router.get("/user/profile")
def get_profile(
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return success_response(services.users.get_profile(user_id))


@router.post("/user/login")
def record_login(
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    user = services.users.record_login(user_id)
    return success_response({"loginCount": user.login_count})


@router.patch("/user/onboarding-stage")
def update_onboarding_stage(
    data: OnboardingStageUpdate,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    user = services.users.update_onboarding_stage(user_id, data.stage)
    return success_response(
        {
            "onboardingStage": user.onboarding_stage,
            "onboardingCompleted": bool(user.onboarding_completed),
        }
    )


# =============================================================================
# Budget Categories
# =============================================================================


@router.get("/budget-categories")
def list_categories(
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    categories = services.ledger.list_categories(user_id)
    return success_response({"categories": [category_to_dict(c) for c in categories]})


@router.post("/budget-categories", status_code=201)
def create_category(
    data: CategoryCreate,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    category = services.ledger.create_category(
        user_id, data.name, data.budget_amount, spent_amount=data.spent_amount
    )
    return success_response(category_to_dict(category))


@router.patch("/budget-categories/{category_id}")
def update_category(
    category_id: int,
    data: CategoryUpdate,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    category = services.ledger.update_category(user_id, category_id, **data.model_dump(exclude_none=True))
    return success_response(category_to_dict(category))


@router.delete("/budget-categories/{category_id}")
def delete_category(
    category_id: int,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    services.ledger.delete_category(user_id, category_id)
    return success_response({"deleted": category_id})


# =============================================================================
# Transactions
# =============================================================================


@router.get("/transactions")
def list_transactions(
    limit: int | None = Query(None, ge=1, le=1000),
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    transactions = services.ledger.list_transactions(user_id, limit=limit)
    return success_response(
        {"transactions": [transaction_to_dict(t) for t in transactions], "total": len(transactions)}
    )


@router.post("/transactions", status_code=201)
def create_transaction(
    data: TransactionCreate,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    transaction = services.ledger.create_transaction(user_id, **data.model_dump())
    return success_response(transaction_to_dict(transaction))


@router.patch("/transactions/{transaction_id}")
def update_transaction(
    transaction_id: int,
    data: TransactionUpdate,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    transaction = services.ledger.update_transaction(
        user_id, transaction_id, **data.model_dump(exclude_none=True)
    )
    return success_response(transaction_to_dict(transaction))


@router.delete("/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    services.ledger.delete_transaction(user_id, transaction_id)
    return success_response({"deleted": transaction_id})


# =============================================================================
# Savings Goals
# =============================================================================


@router.get("/goals")
def list_goals(
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    goals = services.ledger.list_goals(user_id)
    return success_response({"goals": [goal_to_dict(g) for g in goals]})


@router.post("/goals", status_code=201)
def create_goal(
    data: GoalCreate,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    goal = services.ledger.create_goal(
        user_id,
        data.name,
        data.target_amount,
        current_amount=data.current_amount,
        target_date=data.target_date,
    )
    return success_response(goal_to_dict(goal))


@router.patch("/goals/{goal_id}")
def update_goal(
    goal_id: int,
    data: GoalUpdate,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    goal = services.ledger.update_goal(user_id, goal_id, **data.model_dump(exclude_none=True))
    return success_response(goal_to_dict(goal))


@router.post("/goals/{goal_id}/contribute")
def contribute_to_goal(
    goal_id: int,
    data: GoalContribution,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    goal = services.ledger.contribute_to_goal(user_id, goal_id, data.amount)
    return success_response(goal_to_dict(goal))


@router.delete("/goals/{goal_id}")
def delete_goal(
    goal_id: int,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    services.ledger.delete_goal(user_id, goal_id)
    return success_response({"deleted": goal_id})


__all__ = ["router"]
