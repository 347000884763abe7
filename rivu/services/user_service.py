"""
User Service for Rivu Core.

Engagement bookkeeping around the nudge engine: registration, logins,
onboarding stage changes and the profile view. Login, registration and
profile fetches each run a nudge check whose failure is logged and
swallowed so the surrounding action still succeeds.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from rivu.lib.exceptions import NotFoundError, ValidationError
from rivu.lib.timeutil import Clock, utc_now
from rivu.models.user import OnboardingStage, User
from rivu.services.nudge_service import NudgeService

logger = logging.getLogger(__name__)


def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


class UserService:
    """
    Usage:
        users = UserService(session, nudges)
        user = users.register_user("ana", "ana@example.com")
        users.record_login(user.id)
    """

    def __init__(
        self,
        session: Session,
        nudges: NudgeService,
        clock: Clock = utc_now,
        display_limit: int = 3,
    ) -> None:
        self._session = session
        self._nudges = nudges
        self._clock = clock
        self._display_limit = display_limit

    def get_user(self, user_id: int) -> User:
        user = self._session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def register_user(self, username: str, email: str) -> User:
        """
        Create a user at stage ``new`` with their first login recorded.

        Raises:
            ValidationError: Missing or already taken username/email
        """
        username = (username or "").strip()
        email = (email or "").strip().lower()
        if not username or not email:
            raise ValidationError("username and email are required")
        taken = self._session.scalars(
            select(User).where((User.username == username) | (User.email == email))
        ).first()
        if taken is not None:
            raise ValidationError("username or email already registered")

        now = self._clock()
        user = User(
            username=username,
            email=email,
            onboarding_stage=OnboardingStage.NEW.value,
            onboarding_completed=False,
            login_count=1,
            last_login=now,
            account_creation_date=now,
            created_at=now,
        )
        self._session.add(user)
        self._session.commit()
        logger.info("Registered user_id=%s", user.id)

        self._nudges.check_nudges_safely(int(user.id))
        return user

    def record_login(self, user_id: int) -> User:
        user = self.get_user(user_id)
        user.login_count = int(user.login_count or 0) + 1
        user.last_login = self._clock()
        self._session.commit()

        self._nudges.check_nudges_safely(user_id)
        return user

    def update_onboarding_stage(self, user_id: int, stage: str | OnboardingStage) -> User:
        """
        Set the onboarding stage; ``completed`` also marks onboarding done.

        Raises:
            ValidationError: Unknown stage
            NotFoundError: Unknown user
        """
        try:
            resolved = OnboardingStage(stage)
        except ValueError as e:
            raise ValidationError(f"Unknown onboarding stage {stage!r}") from e

        user = self.get_user(user_id)
        user.onboarding_stage = resolved.value
        if resolved is OnboardingStage.COMPLETED:
            user.onboarding_completed = True
        self._session.commit()
        logger.info("Onboarding stage for user_id=%s set to %s", user_id, resolved.value)
        return user

    def get_profile(self, user_id: int) -> dict[str, Any]:
        """Onboarding fields plus the most recent active nudges."""
        user = self.get_user(user_id)
        self._nudges.check_nudges_safely(user_id)
        active = self._nudges.top_active(user_id, self._display_limit)
        return {
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "onboardingStage": user.onboarding_stage,
            "onboardingCompleted": bool(user.onboarding_completed),
            "loginCount": int(user.login_count or 0),
            "lastLogin": _iso(user.last_login),
            "lastTransactionDate": _iso(user.last_transaction_date),
            "lastGoalUpdateDate": _iso(user.last_goal_update_date),
            "accountCreationDate": _iso(user.account_creation_date),
            "nudges": [nudge.to_dict() for nudge in active],
        }


__all__ = ["UserService"]
