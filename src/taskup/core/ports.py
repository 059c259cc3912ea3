# src/taskup/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps auth/storage/blob providers swappable and makes testing easier.
"""

from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

Record = dict[str, Any]
# Raw persisted task document: store-native values (epoch-second floats, 0/1 flags).

Unsubscribe = Callable[[], None]
# Handle returned by every subscribe/listen call; calling it twice is a no-op.


class Clock(Protocol):
    """Source of 'now' (timezone-aware UTC). Injected so tests can move time."""

    def now(self) -> datetime: ...


class DocumentStore(Protocol):
    """
    Store-side port: persisted task documents + live change notifications.

    update/delete only touch documents of the given owner; anything else is
    reported as NotFoundError, the same as a missing document.

    The store assigns ids and server timestamps (created_at/updated_at).
    Writes are coroutines; their effect is observed through the next snapshot
    delivered to listeners, never through return values.
    """

    def listen(
            self,
            owner_id: str,
            on_change: Callable[[list[Record]], None],
            on_error: Callable[[Exception], None] | None = None,
    ) -> Unsubscribe: ...

    def add(self, record: Record) -> Awaitable[str]: ...
    def update(self, doc_id: str, fields: Record, *, owner_id: str) -> Awaitable[None]: ...
    def delete(self, doc_id: str, *, owner_id: str) -> Awaitable[None]: ...


class AuthProvider(Protocol):
    """Who is logged in, plus session-change notifications."""

    @property
    def current_user(self) -> Any | None: ...

    def on_auth_state_changed(self, callback: Callable[[Any | None], None]) -> Unsubscribe: ...


class BlobStorage(Protocol):
    """Upload a local image and get back a durable URL."""

    def upload(self, local_path: str | Path) -> Awaitable[str]: ...
