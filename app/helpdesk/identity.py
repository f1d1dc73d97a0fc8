"""
Who is acting: login/logout and the session slot holding the signed-in user.

The slot lives in any mutable mapping (Flask's signed-cookie session in the
web app, a plain dict in scripts and tests). Only the password-free profile is
ever written to it.
"""

from __future__ import annotations

import json
import logging
from collections.abc import MutableMapping
from typing import Any

from werkzeug.security import check_password_hash

from app.helpdesk.entities import Role, User, parse_timestamp
from app.helpdesk.errors import AuthenticationFailed
from app.helpdesk.repository import EntityRepository

logger = logging.getLogger(__name__)

SESSION_KEY = "helpdesk_pro_user"


def user_to_session(user: User) -> str:
    return json.dumps(
        {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "role": user.role.value,
            "created_at": user.created_at.isoformat() if user.created_at else None,
        }
    )


def user_from_session(raw: str) -> User:
    data = json.loads(raw)
    return User(
        id=str(data["id"]),
        name=data["name"],
        email=data["email"],
        role=Role(data["role"]),
        created_at=parse_timestamp(data.get("created_at")),
    )


class IdentityHolder:
    """Single slot for the authenticated user of one browser session."""

    def __init__(self, session: MutableMapping[str, Any]):
        self.session = session

    def set(self, user: User) -> None:
        self.session[SESSION_KEY] = user_to_session(user.without_secret())

    def clear(self) -> None:
        self.session.pop(SESSION_KEY, None)

    def get(self) -> User | None:
        raw = self.session.get(SESSION_KEY)
        if not raw:
            return None
        try:
            return user_from_session(raw)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable session identity: %s", e)
            self.clear()
            return None


class AuthService:
    def __init__(self, repository: EntityRepository, holder: IdentityHolder):
        self.repository = repository
        self.holder = holder

    def login(self, email: str, password: str) -> User:
        """
        Returns the signed-in user without its password hash.
        Unknown email and wrong password are indistinguishable to the caller.
        """
        user = self.repository.get_user_by_email(email, include_password_hash=True)
        if not user or not user.password_hash or not check_password_hash(user.password_hash, password or ""):
            self.holder.clear()
            raise AuthenticationFailed()
        profile = user.without_secret()
        self.holder.set(profile)
        return profile

    def logout(self) -> None:
        self.holder.clear()

    def get_current_user(self) -> User | None:
        return self.holder.get()

    def refresh(self) -> User | None:
        """
        Re-read the session user from the store so role changes and deletions
        apply on the next request. The slot is cleared when the user is gone.
        """
        cached = self.holder.get()
        if cached is None:
            return None
        user = self.repository.get_user(cached.id)
        if user is None:
            logger.info("Session user %s no longer exists, clearing session", cached.id)
            self.holder.clear()
            return None
        profile = user.without_secret()
        if profile != cached:
            self.holder.set(profile)
        return profile
