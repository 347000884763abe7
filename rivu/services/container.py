"""
Service wiring.

Builds the request-scoped service graph around one SQLAlchemy session and
connects the ledger-event subscribers:

- every ledger event -> RivuScoreService.on_ledger_event
- transaction_created -> NudgeService.on_ledger_event
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from rivu.config.settings import Settings, get_settings
from rivu.core.ledger_events import LedgerEventBus, LedgerEventType
from rivu.lib.timeutil import Clock, utc_now
from rivu.services.ledger_service import LedgerService
from rivu.services.nudge_service import NudgeService
from rivu.services.score_service import RivuScoreService
from rivu.services.user_service import UserService


@dataclass
class Services:
    bus: LedgerEventBus
    ledger: LedgerService
    scores: RivuScoreService
    nudges: NudgeService
    users: UserService


def build_services(
    session: Session,
    settings: Settings | None = None,
    clock: Clock = utc_now,
) -> Services:
    """Create all services for one session with subscribers attached."""
    settings = settings or get_settings()

    bus = LedgerEventBus()
    scores = RivuScoreService(session, clock=clock)
    nudges = NudgeService(session, clock=clock, dedupe=settings.nudge_dedupe)
    bus.subscribe(scores.on_ledger_event)
    bus.subscribe(nudges.on_ledger_event, only={LedgerEventType.TRANSACTION_CREATED})

    return Services(
        bus=bus,
        ledger=LedgerService(session, bus, clock=clock),
        scores=scores,
        nudges=nudges,
        users=UserService(
            session,
            nudges,
            clock=clock,
            display_limit=settings.nudge_display_limit,
        ),
    )


__all__ = ["Services", "build_services"]
