"""
Core package for Rivu Core.

- ledger_events.py: post-commit hook between ledger writes and the engines
"""

from rivu.core.ledger_events import (
    LedgerEvent,
    LedgerEventBus,
    LedgerEventHandler,
    LedgerEventType,
)

__all__ = ["LedgerEvent", "LedgerEventBus", "LedgerEventHandler", "LedgerEventType"]
