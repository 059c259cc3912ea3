# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskup.auth.provider import LocalAuthProvider
from taskup.core.session import Session, User
from taskup.tasks.task_adapter import TaskStoreAdapter
from taskup.tasks.task_store import TaskDocumentStore

from .fakes import T0, ManualClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="TaskUp-test",
        log_level="DEBUG",
        console_enabled=False,
        # Paths (tmp per test run)
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        users_db_path=tmp_path / "users.sqlite3",
        blob_dir=tmp_path / "blobs",
        # Cheapest bcrypt cost keeps auth tests fast
        bcrypt_rounds=4,
        # Blob upload stays local in tests
        blob_upload_url=None,
        blob_timeout_seconds=5.0,
        # Fast engine
        tick_seconds=0.02,
        change_poll_seconds=0.05,
        default_time_limit_min=30,
        min_time_limit_min=5,
    )


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture()
def store(settings: SimpleNamespace):
    s = TaskDocumentStore(settings.tasks_db_path)
    yield s
    s.close()


@pytest.fixture()
def auth(settings: SimpleNamespace):
    provider = LocalAuthProvider(settings.users_db_path, bcrypt_rounds=settings.bcrypt_rounds)
    yield provider
    provider.close()


@pytest.fixture()
def user() -> User:
    return User(uid="u-alice", email="alice@example.com")


@pytest.fixture()
def session(user: User) -> Session:
    return Session(user)


@pytest.fixture()
def adapter(store: TaskDocumentStore, session: Session, clock: ManualClock) -> TaskStoreAdapter:
    return TaskStoreAdapter(store, session, clock=clock)
