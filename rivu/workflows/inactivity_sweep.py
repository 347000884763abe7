"""
Inactive-user nudge sweep.

Optional batch job that runs the nudge check for many users, for example
from a nightly cron. Each user is processed in a fresh session; one user's
failure is logged and reported and the sweep moves on.

Usage:
    from rivu.infra.database import get_session_factory

    report = run_inactivity_sweep(get_session_factory())
    print(report.to_dict())
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from rivu.config.settings import Settings, get_settings
from rivu.infra.monitoring import record_nudge_failure
from rivu.lib.timeutil import Clock, utc_now
from rivu.models.user import User
from rivu.services.nudge_service import NudgeService

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Outcome of one sweep."""

    checked: int = 0
    nudges_created: int = 0
    failed_user_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked": self.checked,
            "nudges_created": self.nudges_created,
            "failed_user_ids": list(self.failed_user_ids),
        }


def _all_user_ids(session_factory: Callable[[], Session]) -> list[int]:
    with session_factory() as session:
        return list(session.scalars(select(User.id).order_by(User.id)).all())


def run_inactivity_sweep(
    session_factory: Callable[[], Session],
    user_ids: Iterable[int] | None = None,
    settings: Settings | None = None,
    clock: Clock = utc_now,
    should_stop: Callable[[], bool] | None = None,
) -> SweepReport:
    """
    Run the nudge check for each user in isolation.

    Args:
        session_factory: Creates one session per user
        user_ids: Users to check (default: every user)
        settings: Dedupe policy source (default: process settings)
        clock: Time source
        should_stop: Polled between users; True ends the sweep early

    Returns:
        SweepReport
    """
    settings = settings or get_settings()
    ids = list(user_ids) if user_ids is not None else _all_user_ids(session_factory)
    report = SweepReport()

    for user_id in ids:
        if should_stop is not None and should_stop():
            logger.info("Inactivity sweep stopped early after %d user(s)", report.checked)
            break

        report.checked += 1
        with session_factory() as session:
            service = NudgeService(session, clock=clock, dedupe=settings.nudge_dedupe)
            try:
                created = service.check_and_create_nudges(user_id)
            except Exception:
                session.rollback()
                logger.exception("Inactivity sweep failed for user_id=%s", user_id)
                record_nudge_failure("sweep")
                report.failed_user_ids.append(user_id)
                continue
        report.nudges_created += len(created)

    logger.info(
        "Inactivity sweep finished: checked=%d created=%d failed=%d",
        report.checked,
        report.nudges_created,
        len(report.failed_user_ids),
    )
    return report


__all__ = ["SweepReport", "run_inactivity_sweep"]
