"""
Lib package for Rivu Core.

Contains shared utilities:
- exceptions.py: Exception hierarchy (NotFoundError, InvalidStateError, ...)
- errors.py: Error codes and response builder for the API layer
- logging.py: structlog setup (import directly, it depends on config)
- timeutil.py: UTC clock helpers
"""

from rivu.lib.errors import (
    AUTH_REQUIRED,
    INTERNAL_ERROR,
    INVALID_STATE,
    NOT_FOUND,
    VALIDATION_ERROR,
    build_error_response,
    get_error_message,
)
from rivu.lib.exceptions import (
    CalculationError,
    ConfigurationError,
    InvalidStateError,
    NotFoundError,
    RivuException,
    ValidationError,
)

__all__ = [
    # Errors
    "AUTH_REQUIRED",
    "NOT_FOUND",
    "VALIDATION_ERROR",
    "INVALID_STATE",
    "INTERNAL_ERROR",
    "get_error_message",
    "build_error_response",
    # Exceptions
    "RivuException",
    "ConfigurationError",
    "NotFoundError",
    "InvalidStateError",
    "ValidationError",
    "CalculationError",
]
