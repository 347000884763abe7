"""
Ledger Events for Rivu Core.

Ledger events are emitted by ``LedgerService`` after a budget category,
transaction or savings goal write has been committed. Subscribers (score
recalculation, post-transaction nudge check) run synchronously in the same
request, but a subscriber that raises never undoes the write and never
prevents the next subscriber from running.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from rivu.infra.monitoring import record_ledger_handler_error

logger = logging.getLogger(__name__)


class LedgerEventType(Enum):
    """Committed ledger mutations."""

    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"

    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    GOAL_CREATED = "goal_created"
    GOAL_UPDATED = "goal_updated"
    GOAL_CONTRIBUTION = "goal_contribution"
    GOAL_DELETED = "goal_deleted"


@dataclass(frozen=True)
class LedgerEvent:
    """A committed ledger mutation.

    Attributes:
        event_type: What happened
        user_id: Owner of the mutated row
        entity_id: Primary key of the mutated row
        payload: Extra context for subscribers
        occurred_at: Commit time
    """

    event_type: LedgerEventType
    user_id: int
    entity_id: int | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def name(self) -> str:
        return self.event_type.value


LedgerEventHandler = Callable[[LedgerEvent], None]


def _handler_name(handler: LedgerEventHandler) -> str:
    return getattr(handler, "__name__", type(handler).__name__)


class LedgerEventBus:
    """In-process publish/subscribe for committed ledger mutations.

    Usage:
        bus = LedgerEventBus()
        bus.subscribe(recalculate_on_ledger_change)
        bus.subscribe(check_nudges, only={LedgerEventType.TRANSACTION_CREATED})
        bus.publish(LedgerEvent(LedgerEventType.TRANSACTION_CREATED, user_id=1, entity_id=7))
    """

    def __init__(self) -> None:
        self._subscribers: list[tuple[LedgerEventHandler, frozenset[LedgerEventType] | None]] = []

    def subscribe(
        self,
        handler: LedgerEventHandler,
        only: set[LedgerEventType] | frozenset[LedgerEventType] | None = None,
    ) -> None:
        """Register a handler for all events, or only for ``only``."""
        self._subscribers.append((handler, frozenset(only) if only is not None else None))

    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: LedgerEvent) -> list[bool]:
        """Deliver an event to every matching subscriber.

        Returns:
            One success flag per matching subscriber, in subscription order
        """
        results: list[bool] = []
        for handler, only in self._subscribers:
            if only is not None and event.event_type not in only:
                continue
            try:
                handler(event)
                results.append(True)
            except Exception:
                name = _handler_name(handler)
                logger.exception(
                    "Ledger event handler %s failed for %s (user_id=%s)",
                    name,
                    event.name,
                    event.user_id,
                )
                record_ledger_handler_error(event.name, name)
                results.append(False)
        return results


__all__ = ["LedgerEventType", "LedgerEvent", "LedgerEventHandler", "LedgerEventBus"]
