"""
FastAPI Dependencies for authentication, sessions and services.

``create_app`` stores the settings, the auth service and the session
factory on ``app.state``; the dependencies below read them from there.
"""

import logging
from collections.abc import Iterator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from rivu.api.auth import AuthService, AuthToken
from rivu.services.container import Services, build_services

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/register", auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_db(request: Request) -> Iterator[Session]:
    """One session per request."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_services(request: Request, db: Session = Depends(get_db)) -> Services:
    return build_services(db, settings=request.app.state.settings)


def get_current_user_token(
    token: str | None = Depends(oauth2_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthToken:
    """
    Dependency to get the current user's authenticated token.

    Raises HTTPException if token is missing or invalid.
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    auth_token = auth_service.decode_token(token)
    if not auth_token or auth_token.is_expired():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth_token


def get_current_user_id(token: AuthToken = Depends(get_current_user_token)) -> int:
    return token.user_id


__all__ = [
    "get_auth_service",
    "get_db",
    "get_services",
    "get_current_user_token",
    "get_current_user_id",
]
