# src/taskup/tasks/task_session.py

from __future__ import annotations

"""
Per-user task engine wiring.

TaskSession owns everything that must live and die with one signed-in user:
the snapshot subscription, the deadline monitor loop and the elapsed-time
loop. SessionController listens to the auth signal and swaps TaskSessions on
login/logout.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from enum import StrEnum

from ..core.ports import AuthProvider, Unsubscribe
from ..core.session import Session, User
from .aggregate import TaskView, build_view
from .deadline_monitor import DeadlineMonitor, run_deadline_monitor
from .elapsed_tracker import ElapsedTracker, run_elapsed_tracker
from .snapshot import SnapshotCache
from .task_adapter import TaskStoreAdapter
from .task_models import Task

logger = logging.getLogger(__name__)


class LoadState(StrEnum):
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"
    STOPPED = "stopped"


class TaskSession:
    def __init__(self, adapter: TaskStoreAdapter, *, tick_seconds: float = 1.0) -> None:
        self.adapter = adapter
        self.cache = SnapshotCache()
        self.tracker = ElapsedTracker()
        self.monitor = DeadlineMonitor(self.cache, adapter, adapter.clock)
        self.load_state = LoadState.LOADING
        self.error: Exception | None = None

        self._tick_s = float(tick_seconds)
        self._timers: list[asyncio.Task[None]] = []
        self._started = False
        self._stopped = False
        self._remove_listener = self.cache.add_listener(self._on_snapshot)

    @property
    def user(self) -> User | None:
        return self.adapter.session.user

    @property
    def running(self) -> bool:
        return bool(self._timers) and not self._stopped

    @property
    def stopped(self) -> bool:
        return self._stopped

    def start(self) -> None:
        """
        Subscribe to the owner's tasks. Timers start with the first snapshot.

        Must be called from the event loop thread, with the loop running.
        """
        asyncio.get_running_loop()  # fail fast outside the loop
        if self._started:
            raise RuntimeError("TaskSession already started")
        self._started = True
        self.cache.attach(self.adapter.subscribe, self._on_error)
        if not self.cache.loaded:
            logger.debug("TaskSession started; waiting for first snapshot (user=%s)", self.user)

    def _on_snapshot(self, tasks: tuple[Task, ...]) -> None:
        if self._stopped:
            return
        self.tracker.sync(tasks)
        if self.load_state is not LoadState.READY:
            logger.info("Tasks loaded: %d (user=%s)", len(tasks), self.user)
        self.load_state = LoadState.READY
        self.error = None
        self._start_timers()

    def _on_error(self, exc: Exception) -> None:
        if self._stopped:
            return
        self.error = exc
        # A later error keeps the last good snapshot on screen.
        if not self.cache.loaded:
            self.load_state = LoadState.FAILED
        logger.error("Task subscription failed (user=%s): %s", self.user, exc)

    def _start_timers(self) -> None:
        if self._timers:
            return
        loop = asyncio.get_running_loop()
        self._timers = [
            loop.create_task(
                run_deadline_monitor(self.monitor, interval_seconds=self._tick_s),
                name="taskup-deadline-monitor",
            ),
            loop.create_task(
                run_elapsed_tracker(self.tracker, self.cache, interval_seconds=self._tick_s),
                name="taskup-elapsed-tracker",
            ),
        ]
        logger.debug("Timers started (tick=%.2fs)", self._tick_s)

    def stop(self) -> None:
        """Tear down subscription and both timers together. Safe to call more than once."""
        if self._stopped:
            return
        self._stopped = True
        self.cache.detach()
        self._remove_listener()
        self.monitor.close()
        for timer in self._timers:
            timer.cancel()
        self.load_state = LoadState.STOPPED
        logger.info("TaskSession stopped (user=%s)", self.user)

    async def wait_closed(self) -> None:
        if self._timers:
            await asyncio.gather(*self._timers, return_exceptions=True)

    def now(self) -> datetime:
        return self.adapter.clock.now()

    def elapsed(self, task: Task) -> int:
        return self.tracker.seconds(task.id, task.time_spent)

    def view(self, now: datetime | None = None) -> TaskView:
        return build_view(self.cache.tasks, now or self.now(), elapsed=self.elapsed)


AdapterFactory = Callable[[Session], TaskStoreAdapter]


class SessionController:
    """
    Subscribes once to the auth signal and keeps at most one TaskSession alive.

    - user signs in    -> new Session + TaskSession
    - user signs out   -> TaskSession stopped, Session ended
    - different user   -> old one torn down before the new one starts
    """

    def __init__(
        self,
        auth: AuthProvider,
        adapter_factory: AdapterFactory,
        *,
        tick_seconds: float = 1.0,
    ) -> None:
        self._auth = auth
        self._adapter_factory = adapter_factory
        self._tick_s = tick_seconds
        self._current: TaskSession | None = None
        self._unsubscribe_auth: Unsubscribe | None = None

    @property
    def current(self) -> TaskSession | None:
        return self._current

    def start(self) -> None:
        if self._unsubscribe_auth is not None:
            return
        self._unsubscribe_auth = self._auth.on_auth_state_changed(self._on_auth_state_changed)

    def _on_auth_state_changed(self, user: User | None) -> None:
        current = self._current
        if current is not None:
            current_user = current.user
            if user is not None and current_user is not None and current_user.uid == user.uid:
                return
            self._teardown()

        if user is None:
            return

        session = Session(user)
        task_session = TaskSession(self._adapter_factory(session), tick_seconds=self._tick_s)
        self._current = task_session
        task_session.start()
        logger.info("Session started for %s", user.email)

    def _teardown(self) -> None:
        task_session, self._current = self._current, None
        if task_session is None:
            return
        task_session.stop()
        task_session.adapter.session.end()

    def close(self) -> None:
        unsubscribe, self._unsubscribe_auth = self._unsubscribe_auth, None
        if unsubscribe is not None:
            unsubscribe()
        self._teardown()
