# src/taskup/core/session.py

from __future__ import annotations

"""
Explicit "who is logged in" context.

A Session is created per login and handed to the task adapter, instead of the
adapter reading a global current-user. Ending a session makes every later
owner lookup fail with AuthError, so work that outlives a logout can never
write into the next user's data.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from .errors import AuthError


@dataclass(slots=True, frozen=True)
class User:
    uid: str
    email: str


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class Session:
    def __init__(self, user: User | None = None) -> None:
        self._user = user
        self._ended = user is None

    @property
    def user(self) -> User | None:
        return None if self._ended else self._user

    @property
    def owner_id(self) -> str | None:
        user = self.user
        return user.uid if user is not None else None

    @property
    def is_active(self) -> bool:
        return self.user is not None

    def require_owner(self) -> str:
        owner_id = self.owner_id
        if owner_id is None:
            raise AuthError("not signed in")
        return owner_id

    def end(self) -> None:
        self._ended = True

    def __repr__(self) -> str:
        who = self._user.email if self._user is not None else None
        return f"Session(user={who!r}, active={self.is_active})"
