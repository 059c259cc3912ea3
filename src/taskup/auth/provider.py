# src/taskup/auth/provider.py

from __future__ import annotations

import asyncio
import itertools
import logging
import sqlite3
import time
import uuid
from collections.abc import Callable
from pathlib import Path

import bcrypt

from ..core.errors import AuthError, StoreError, ValidationError
from ..core.ports import Unsubscribe
from ..core.session import User

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
# bcrypt only looks at the first 72 bytes; longer passwords are rejected instead of truncated.
MAX_PASSWORD_BYTES = 72
DEFAULT_BCRYPT_ROUNDS = 12

AuthListener = Callable[[User | None], None]


def _check_password_shape(password: str) -> bytes:
    raw = (password or "").encode("utf-8")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(raw) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
    return raw


def _normalize_email(email: str) -> str:
    value = (email or "").strip().lower()
    if not value or "@" not in value or value.startswith("@") or value.endswith("@"):
        raise ValidationError("a valid email is required")
    return value


class LocalAuthProvider:
    """
    Email/password accounts in a local SQLite file (bcrypt password hashes).

    Holds one signed-in user at a time (like a device-level auth client) and
    notifies listeners on every sign-in / sign-out.
    """

    def __init__(
        self,
        db_path: str | Path = "users.sqlite3",
        *,
        bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS,
    ) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._current: User | None = None
        self._listeners: dict[int, AuthListener] = {}
        self._tokens = itertools.count(1)
        self._bcrypt_rounds = int(bcrypt_rounds)
        self._ensure_schema()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        try:
            conn = self._get_conn()
            try:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS users (
                        uid TEXT PRIMARY KEY,
                        email TEXT NOT NULL UNIQUE,
                        password_hash TEXT NOT NULL,
                        created_at REAL NOT NULL
                    )
                    """
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"cannot open users database {self._db_path}: {e}") from e

    @property
    def current_user(self) -> User | None:
        return self._current

    def on_auth_state_changed(self, callback: AuthListener) -> Unsubscribe:
        """Register a listener; it is called right away with the current user."""
        token = next(self._tokens)
        self._listeners[token] = callback
        callback(self._current)

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    def _set_current(self, user: User | None) -> None:
        if user == self._current:
            return
        self._current = user
        for token, listener in list(self._listeners.items()):
            if token not in self._listeners:
                continue
            try:
                listener(user)
            except Exception:
                logger.exception("Auth listener %s failed", token)

    async def register(self, email: str, password: str) -> User:
        """Create an account and sign in with it."""
        email_n = _normalize_email(email)
        raw = _check_password_shape(password)

        # bcrypt is slow on purpose; keep it off the loop that drives the task timers.
        hashed = await asyncio.to_thread(bcrypt.hashpw, raw, bcrypt.gensalt(rounds=self._bcrypt_rounds))
        password_hash = hashed.decode("ascii")
        user = User(uid=uuid.uuid4().hex, email=email_n)
        try:
            conn = self._get_conn()
            try:
                conn.execute(
                    "INSERT INTO users(uid, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
                    (user.uid, email_n, password_hash, time.time()),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.IntegrityError as e:
            raise AuthError("an account with this email already exists") from e
        except sqlite3.Error as e:
            raise StoreError(f"register failed: {e}") from e

        logger.info("Account created uid=%s", user.uid)
        self._set_current(user)
        return user

    async def login(self, email: str, password: str) -> User:
        email_n = _normalize_email(email)
        if not password:
            raise ValidationError("password is required")

        try:
            conn = self._get_conn()
            try:
                row = conn.execute(
                    "SELECT uid, email, password_hash FROM users WHERE email = ?",
                    (email_n,),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"login failed: {e}") from e

        if row is None:
            raise AuthError("invalid email or password")
        raw = password.encode("utf-8")
        if len(raw) > MAX_PASSWORD_BYTES:
            raise AuthError("invalid email or password")
        ok = await asyncio.to_thread(bcrypt.checkpw, raw, str(row["password_hash"]).encode("ascii"))
        if not ok:
            raise AuthError("invalid email or password")

        user = User(uid=str(row["uid"]), email=str(row["email"]))
        logger.info("Signed in uid=%s", user.uid)
        self._set_current(user)
        return user

    async def logout(self) -> None:
        if self._current is not None:
            logger.info("Signed out uid=%s", self._current.uid)
        self._set_current(None)

    def close(self) -> None:
        self._listeners.clear()
