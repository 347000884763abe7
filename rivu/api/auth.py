"""
Authentication for the Rivu Core REST API.

Bearer tokens are HS256 JWTs (PyJWT) whose ``sub`` claim is the user id.
Issuing tokens for real logins belongs to the surrounding auth layer; this
module only signs and verifies them.

The signing key comes from RIVU_API_SECRET_KEY; there is no fallback key
and the app refuses to start without one.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt as pyjwt

from rivu.config.settings import Settings, get_settings
from rivu.lib.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


@dataclass
class AuthToken:
    """Decoded bearer token."""

    user_id: int
    issued_at: datetime
    expires_at: datetime
    token_type: str = "Bearer"
    jti: str = field(default_factory=lambda: str(uuid.uuid4()))

    def is_expired(self) -> bool:
        return datetime.now(UTC) >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "token_type": self.token_type,
            "jti": self.jti,
        }


class AuthService:
    """
    Signs and verifies API tokens.

    Usage:
        auth = AuthService(secret_key="...")
        token = auth.generate_token(user_id=1)
        jwt_string = auth.encode_token(token)
        decoded = auth.decode_token(jwt_string)
    """

    TOKEN_EXPIRY_DAYS = 30

    def __init__(self, secret_key: str | None = None) -> None:
        """
        Args:
            secret_key: Signing key (default: RIVU_API_SECRET_KEY)

        Raises:
            ConfigurationError: No key available
        """
        resolved_key = secret_key or get_settings().api_secret_key
        if not resolved_key:
            raise ConfigurationError(
                "RIVU_API_SECRET_KEY environment variable is required. "
                "Set it to a cryptographically random string."
            )
        self.secret_key: str = resolved_key

    def generate_token(self, user_id: int, expires_in: timedelta | None = None) -> AuthToken:
        now = datetime.now(UTC)
        return AuthToken(
            user_id=user_id,
            issued_at=now,
            expires_at=now + (expires_in or timedelta(days=self.TOKEN_EXPIRY_DAYS)),
        )

    def encode_token(self, token: AuthToken) -> str:
        payload: dict[str, Any] = {
            "sub": str(token.user_id),
            "iat": token.issued_at,
            "exp": token.expires_at,
            "type": token.token_type,
            "jti": token.jti,
        }
        return pyjwt.encode(payload, self.secret_key, algorithm=ALGORITHM)

    def decode_token(self, token_str: str) -> AuthToken | None:
        """
        Verify a JWT and return its token, or None if invalid or expired.
        """
        try:
            payload = pyjwt.decode(
                token_str,
                self.secret_key,
                algorithms=[ALGORITHM],
                options={"require": ["sub", "exp", "iat"]},
            )
            return AuthToken(
                user_id=int(payload["sub"]),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
                token_type=payload.get("type", "Bearer"),
                jti=payload.get("jti", ""),
            )
        except pyjwt.ExpiredSignatureError:
            logger.info("Rejected expired API token")
            return None
        except (pyjwt.InvalidTokenError, ValueError) as e:
            logger.warning("Rejected invalid API token: %s", type(e).__name__)
            return None


def validate_secrets(settings: Settings | None = None) -> None:
    """Fail fast at startup when the signing key is missing."""
    settings = settings or get_settings()
    if not settings.api_secret_key:
        raise ConfigurationError(
            "RIVU_API_SECRET_KEY environment variable is required. "
            "Set it to a cryptographically random string."
        )


__all__ = ["AuthToken", "AuthService", "validate_secrets", "ALGORITHM"]
