"""
Centralized Error Response Builder for Rivu Core.

Provides consistent error codes and messages for the API layer. The
builder returns structured error dicts compatible with the response
envelope used by every endpoint.
"""

from __future__ import annotations

from typing import Any

# =============================================================================
# Error Code Constants
# =============================================================================

AUTH_REQUIRED = "AUTH_REQUIRED"
NOT_FOUND = "NOT_FOUND"
VALIDATION_ERROR = "VALIDATION_ERROR"
INVALID_STATE = "INVALID_STATE"
INTERNAL_ERROR = "INTERNAL_ERROR"

_ERROR_MESSAGES: dict[str, str] = {
    AUTH_REQUIRED: "Authentication is required.",
    NOT_FOUND: "The requested resource was not found.",
    VALIDATION_ERROR: "Invalid input. Please check your request.",
    INVALID_STATE: "The resource is not in a state that allows this action.",
    INTERNAL_ERROR: "An internal error occurred. Please try again.",
}


def get_error_message(code: str) -> str:
    """
    Get the default message for an error code.

    Falls back to a generic message if the error code is unknown.
    """
    return _ERROR_MESSAGES.get(code, "An error occurred.")


def build_error_response(
    code: str,
    message: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build a structured error dict: {"code": str, "message": str, "details": dict?}.

    If no message is provided, the default message for the code is used.
    """
    error: dict[str, Any] = {
        "code": code,
        "message": message if message is not None else get_error_message(code),
    }
    if details is not None:
        error["details"] = details
    return error


__all__ = [
    "AUTH_REQUIRED",
    "NOT_FOUND",
    "VALIDATION_ERROR",
    "INVALID_STATE",
    "INTERNAL_ERROR",
    "get_error_message",
    "build_error_response",
]
