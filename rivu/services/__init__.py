"""
Services for Rivu Core.

Services:
    - LedgerReader: snapshots of categories, transactions and goals
    - score_calculator: pure Rivu Score functions
    - ScoreHistoryStore: append-only score timeline
    - RivuScoreService: recalculation, report, history
    - nudge_rules: onboarding and behavioral rule evaluation
    - NudgeStore / NudgeService: nudge persistence and lifecycle
    - LedgerService: ledger writes that publish ledger events
    - UserService: registration, logins, onboarding, profile
    - build_services: request-scoped wiring
"""

from .container import Services, build_services
from .ledger_reader import LedgerReader, LedgerSnapshot, UserState
from .ledger_service import LedgerService
from .nudge_rules import NudgeCandidate, evaluate_rules, is_new_user
from .nudge_service import NudgeService
from .nudge_store import NudgeStore
from .score_calculator import ScoreBreakdown, calculate_score
from .score_history import ScoreHistoryStore
from .score_service import RivuScoreService, estimate_months_to_goal
from .user_service import UserService

__all__ = [
    "Services",
    "build_services",
    "LedgerReader",
    "LedgerSnapshot",
    "UserState",
    "LedgerService",
    "NudgeCandidate",
    "evaluate_rules",
    "is_new_user",
    "NudgeService",
    "NudgeStore",
    "ScoreBreakdown",
    "calculate_score",
    "ScoreHistoryStore",
    "RivuScoreService",
    "estimate_months_to_goal",
    "UserService",
]
