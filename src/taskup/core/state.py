# src/taskup/core/state.py

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from ..auth.provider import LocalAuthProvider
from ..tasks.task_session import SessionController, TaskSession
from ..tasks.task_store import TaskDocumentStore
from .errors import AuthError
from .ports import BlobStorage, Clock

if TYPE_CHECKING:
    from ..cli.engine import EngineRunner

T = TypeVar("T")


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    clock: Clock
    auth: LocalAuthProvider
    store: TaskDocumentStore
    blob: BlobStorage
    controller: SessionController

    engine: EngineRunner | None = None

    def run(self, coro: Awaitable[T]) -> T:
        """Run a coroutine on the engine loop and wait for its result."""
        if self.engine is None:
            raise RuntimeError("engine is not running")
        return self.engine.run(coro)

    def call(self, fn: Callable[..., T], *args: Any) -> T:
        """Run a plain function on the engine loop thread and wait for its result."""
        if self.engine is None:
            raise RuntimeError("engine is not running")
        return self.engine.call(fn, *args)

    def require_session(self) -> TaskSession:
        task_session = self.controller.current
        if task_session is None:
            raise AuthError("not signed in (use /login or /register)")
        return task_session
