"""
Custom exception hierarchy for Rivu Core.

All exceptions inherit from RivuException, enabling a catch-all for
Rivu-specific errors while keeping the ability to catch specific types.

Zero-data users are not an error: the score engine returns valid zero or
floor scores for them, so there is no "calculation skipped" exception.
"""

from __future__ import annotations


class RivuException(Exception):
    """Base exception for all Rivu Core errors."""


class ConfigurationError(RivuException):
    """Missing environment variables, invalid config values, or startup failures."""


class NotFoundError(RivuException):
    """A referenced user, category, transaction, goal, score or nudge does not exist."""

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        if resource_id is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} {resource_id} not found"
        super().__init__(message)


class InvalidStateError(RivuException):
    """Invalid state transitions (e.g. moving a nudge out of a terminal state)."""


class ValidationError(RivuException):
    """Input validation, parsing, or type conversion failures."""


class CalculationError(RivuException):
    """The score engine could not produce a result for a user."""


__all__ = [
    "RivuException",
    "ConfigurationError",
    "NotFoundError",
    "InvalidStateError",
    "ValidationError",
    "CalculationError",
]
