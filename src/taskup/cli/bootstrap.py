# src/taskup/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (auth/store/blob/session controller).
"""

from __future__ import annotations

import logging

from ..auth.provider import LocalAuthProvider
from ..config import get_settings
from ..core.ports import Clock
from ..core.session import Session, SystemClock
from ..core.state import AppState
from ..storage.blob import create_blob_storage
from ..tasks.task_adapter import TaskStoreAdapter
from ..tasks.task_session import SessionController
from ..tasks.task_store import TaskDocumentStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.users_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.blob_dir.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, clock: Clock | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()
    clock = clock or SystemClock()

    _ensure_local_dirs(settings)

    store = TaskDocumentStore(settings.tasks_db_path)
    auth = LocalAuthProvider(
        settings.users_db_path,
        bcrypt_rounds=int(getattr(settings, "bcrypt_rounds", 12)),
    )

    def adapter_factory(session: Session) -> TaskStoreAdapter:
        return TaskStoreAdapter(store, session, clock=clock)

    controller = SessionController(
        auth,
        adapter_factory,
        tick_seconds=float(getattr(settings, "tick_seconds", 1.0)),
    )

    logger.debug("State wired (data_dir=%s)", settings.data_dir)
    return AppState(
        settings=settings,
        clock=clock,
        auth=auth,
        store=store,
        blob=create_blob_storage(settings),
        controller=controller,
    )
