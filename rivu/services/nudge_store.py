"""
Nudge Lifecycle Store.

Persistence for nudges:
- create: insert one row and commit it on its own
- set_status: ``active -> dismissed|completed`` with the matching timestamp
- list_by_user: newest first, optional status filter
- find_active_duplicate: same (user, type, trigger condition or its key fields) still active

Rows are never deleted.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from rivu.lib.exceptions import InvalidStateError, NotFoundError, ValidationError
from rivu.models.nudge import Nudge, NudgeStatus, NudgeType

logger = logging.getLogger(__name__)


class NudgeStore:
    """
    Usage:
        store = NudgeStore(session)
        nudge = store.create(user_id=1, nudge_type=NudgeType.ONBOARDING, ...)
        store.set_status(nudge.id, NudgeStatus.DISMISSED, now)
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def create(
        self,
        user_id: int,
        nudge_type: NudgeType,
        message: str,
        trigger_json: str,
        now: datetime,
        due_date: datetime | None = None,
    ) -> Nudge:
        """Insert and commit a single active nudge."""
        nudge = Nudge(
            user_id=user_id,
            type=nudge_type.value,
            message=message,
            status=NudgeStatus.ACTIVE.value,
            trigger_condition_json=trigger_json,
            due_date=due_date,
            created_at=now,
        )
        self._session.add(nudge)
        self._session.commit()
        return nudge

    def get(self, nudge_id: int, user_id: int | None = None) -> Nudge:
        """
        Load a nudge, optionally scoped to its owner.

        Raises:
            NotFoundError: Missing, or owned by another user
        """
        nudge = self._session.get(Nudge, nudge_id)
        if nudge is None or (user_id is not None and nudge.user_id != user_id):
            raise NotFoundError("Nudge", nudge_id)
        return nudge

    def set_status(
        self,
        nudge_id: int,
        status: NudgeStatus,
        now: datetime,
        user_id: int | None = None,
    ) -> Nudge:
        """
        Move a nudge to a terminal status and stamp the matching timestamp.

        Repeating the same terminal status rewrites its timestamp.

        Raises:
            NotFoundError: Unknown nudge
            ValidationError: ``status`` is not terminal
            InvalidStateError: The nudge is already in the other terminal status
        """
        if not status.is_terminal:
            raise ValidationError("Nudges can only move to dismissed or completed")

        nudge = self.get(nudge_id, user_id=user_id)
        current = NudgeStatus(nudge.status)
        if current.is_terminal and current is not status:
            raise InvalidStateError(f"Nudge {nudge_id} is already {current.value}")

        nudge.status = status.value
        if status is NudgeStatus.DISMISSED:
            nudge.dismissed_at = now
        else:
            nudge.completed_at = now
        self._session.commit()
        return nudge

    def list_by_user(self, user_id: int, status: NudgeStatus | None = None) -> list[Nudge]:
        """Nudges for a user, newest first (ties by id, newest first)."""
        stmt = select(Nudge).where(Nudge.user_id == user_id)
        if status is not None:
            stmt = stmt.where(Nudge.status == status.value)
        stmt = stmt.order_by(Nudge.created_at.desc(), Nudge.id.desc())
        return list(self._session.scalars(stmt).all())

    def find_active_duplicate(
        self,
        user_id: int,
        nudge_type: NudgeType,
        trigger_json: str,
        key: dict[str, Any] | None = None,
    ) -> Nudge | None:
        """
        First active nudge of the same type carrying the same trigger.

        With ``key`` only those payload fields have to match, so a reminder
        whose day count moved on still counts as the same nudge.
        """
        stmt = select(Nudge).where(
            Nudge.user_id == user_id,
            Nudge.type == nudge_type.value,
            Nudge.status == NudgeStatus.ACTIVE.value,
        )
        if key is None:
            return self._session.scalars(stmt.where(Nudge.trigger_condition_json == trigger_json).limit(1)).first()

        for nudge in self._session.scalars(stmt.order_by(Nudge.id)):
            payload = nudge.trigger_condition
            if all(payload.get(name) == value for name, value in key.items()):
                return nudge
        return None


__all__ = ["NudgeStore"]
