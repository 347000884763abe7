"""
Nudge Service.

Runs the rule engine for a user and persists what it produces:

    LedgerReader -> evaluate_rules -> (dedupe) -> NudgeStore.create

Each candidate is persisted in isolation: a failure while storing one
nudge is rolled back, logged and counted, and the remaining candidates are
still processed.

Also owns the user-facing lifecycle operations (list, manual create,
dismiss, complete).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from rivu.core.ledger_events import LedgerEvent
from rivu.infra.monitoring import (
    record_nudge_created,
    record_nudge_failure,
    record_nudge_skipped,
)
from rivu.lib.exceptions import InvalidStateError, ValidationError
from rivu.lib.timeutil import Clock, ensure_utc, utc_now
from rivu.models.nudge import Nudge, NudgeStatus, NudgeType
from rivu.services.ledger_reader import LedgerReader
from rivu.services.nudge_rules import NudgeCandidate, evaluate_rules
from rivu.services.nudge_store import NudgeStore
from rivu.services.nudge_triggers import parse_trigger

logger = logging.getLogger(__name__)


def parse_status(value: str | NudgeStatus | None) -> NudgeStatus | None:
    if value is None or isinstance(value, NudgeStatus):
        return value
    try:
        return NudgeStatus(value)
    except ValueError as e:
        raise ValidationError(f"Unknown nudge status {value!r}") from e


def parse_nudge_type(value: str | NudgeType) -> NudgeType:
    if isinstance(value, NudgeType):
        return value
    try:
        return NudgeType(value)
    except ValueError as e:
        raise ValidationError(f"Unknown nudge type {value!r}") from e


class NudgeService:
    """
    Usage:
        service = NudgeService(session, dedupe=True)
        created = service.check_and_create_nudges(user_id=1)
        service.dismiss_nudge(created[0].id, user_id=1)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock = utc_now,
        dedupe: bool = True,
    ) -> None:
        self._session = session
        self._clock = clock
        self._dedupe = dedupe
        self._reader = LedgerReader(session)
        self._store = NudgeStore(session)

    @property
    def store(self) -> NudgeStore:
        return self._store

    # ------------------------------------------------------------------
    # Rule evaluation
    # ------------------------------------------------------------------

    def check_and_create_nudges(self, user_id: int) -> list[Nudge]:
        """
        Evaluate the rules for a user and persist new nudges.

        Returns:
            Nudges created by this pass

        Raises:
            NotFoundError: Unknown user
        """
        now = self._clock()
        state = self._reader.user_state(user_id)
        snapshot = self._reader.snapshot(user_id)
        candidates = evaluate_rules(state, snapshot, now)

        created: list[Nudge] = []
        for candidate in candidates:
            nudge = self._persist_candidate(user_id, candidate, now)
            if nudge is not None:
                created.append(nudge)

        if created:
            logger.info("Created %d nudge(s) for user_id=%s", len(created), user_id)
        return created

    def _persist_candidate(self, user_id: int, candidate: NudgeCandidate, now: datetime) -> Nudge | None:
        trigger_json = candidate.trigger.to_json()
        try:
            if self._dedupe and self._store.find_active_duplicate(
                user_id, candidate.type, trigger_json, key=candidate.trigger.dedupe_key()
            ):
                record_nudge_skipped(candidate.type.value)
                return None
            nudge = self._store.create(user_id, candidate.type, candidate.message, trigger_json, now)
        except Exception:
            self._session.rollback()
            logger.exception(
                "Failed to persist %s nudge for user_id=%s",
                candidate.type.value,
                user_id,
            )
            record_nudge_failure("persist")
            return None

        record_nudge_created(candidate.type.value)
        return nudge

    def check_nudges_safely(self, user_id: int) -> list[Nudge]:
        """Nudge check for login and profile flows; failures never propagate."""
        try:
            return self.check_and_create_nudges(user_id)
        except Exception:
            self._session.rollback()
            logger.exception("Nudge check failed for user_id=%s", user_id)
            record_nudge_failure("check")
            return []

    def on_ledger_event(self, event: LedgerEvent) -> None:
        """Ledger-event subscriber for newly created transactions."""
        self.check_and_create_nudges(event.user_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def list_nudges(self, user_id: int, status: str | NudgeStatus | None = None) -> list[Nudge]:
        return self._store.list_by_user(user_id, parse_status(status))

    def top_active(self, user_id: int, limit: int) -> list[Nudge]:
        """Most recent active nudges, capped for display."""
        return self._store.list_by_user(user_id, NudgeStatus.ACTIVE)[:limit]

    def create_nudge(
        self,
        user_id: int,
        nudge_type: str | NudgeType,
        message: str,
        trigger_condition: dict[str, Any] | None = None,
        due_date: datetime | None = None,
    ) -> Nudge:
        """
        Create a nudge outside the rule engine.

        Raises:
            ValidationError: Unknown type, empty message or bad trigger payload
            NotFoundError: Unknown user
        """
        resolved_type = parse_nudge_type(nudge_type)
        if not message or not message.strip():
            raise ValidationError("Nudge message must not be empty")
        trigger = parse_trigger(trigger_condition)
        self._reader.get_user(user_id)

        nudge = self._store.create(
            user_id,
            resolved_type,
            message.strip(),
            trigger.to_json(),
            self._clock(),
            due_date=ensure_utc(due_date) if due_date is not None else None,
        )
        record_nudge_created(resolved_type.value)
        logger.info("Manual %s nudge created for user_id=%s", resolved_type.value, user_id)
        return nudge

    def dismiss_nudge(self, nudge_id: int, user_id: int | None = None) -> Nudge:
        return self._transition(nudge_id, NudgeStatus.DISMISSED, user_id)

    def complete_nudge(self, nudge_id: int, user_id: int | None = None) -> Nudge:
        return self._transition(nudge_id, NudgeStatus.COMPLETED, user_id)

    def _transition(self, nudge_id: int, status: NudgeStatus, user_id: int | None) -> Nudge:
        try:
            return self._store.set_status(nudge_id, status, self._clock(), user_id=user_id)
        except InvalidStateError as e:
            logger.info("Ignoring %s for nudge %s: %s", status.value, nudge_id, e)
            return self._store.get(nudge_id, user_id=user_id)


__all__ = ["NudgeService", "parse_status", "parse_nudge_type"]
