# src/taskup/tasks/deadline_monitor.py

from __future__ import annotations

"""
Deadline monitor.

A small polling loop that, once per tick:
- reads the latest task snapshot (it never subscribes itself),
- picks tasks that are incomplete and past their end_date (inclusive),
- asks the task adapter to mark each of them completed.

Each completion request runs as its own asyncio task. A failed request is
logged and forgotten: the task is still overdue and incomplete in the next
snapshot, so the next tick selects it again.
"""

import asyncio
import contextlib
import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from ..core.ports import Clock
from .snapshot import SnapshotCache
from .task_models import Task, TaskPatch

logger = logging.getLogger(__name__)

_COMPLETE = TaskPatch(is_completed=True)


class TaskUpdater(Protocol):
    async def update(self, task_id: str, patch: TaskPatch) -> None: ...


def select_expired(tasks: Iterable[Task], now: datetime) -> list[Task]:
    return [t for t in tasks if t.is_expired(now)]


class DeadlineMonitor:
    def __init__(self, cache: SnapshotCache, updater: TaskUpdater, clock: Clock) -> None:
        self._cache = cache
        self._updater = updater
        self._clock = clock
        self._in_flight: dict[str, asyncio.Task[None]] = {}
        self._closed = False

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    @property
    def closed(self) -> bool:
        return self._closed

    def sweep(self) -> list[asyncio.Task[None]]:
        """
        One tick: request completion for every expired task in the snapshot.

        Returns the spawned update tasks. A task whose previous request is
        still running is skipped instead of being requested twice.
        Must be called from a running event loop.
        """
        if self._closed:
            return []

        tasks = self._cache.tasks
        now = self._clock.now()
        spawned: list[asyncio.Task[None]] = []

        for task in select_expired(tasks, now):
            if task.id in self._in_flight:
                continue
            logger.info("Task %s expired at %s; marking completed", task.id, task.end_date)
            job = asyncio.get_running_loop().create_task(self._complete(task.id))
            self._in_flight[task.id] = job
            spawned.append(job)

        return spawned

    async def _complete(self, task_id: str) -> None:
        try:
            await self._updater.update(task_id, _COMPLETE)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Expiry update failed task_id=%s; will retry next tick", task_id)
        finally:
            self._in_flight.pop(task_id, None)

    async def drain(self) -> None:
        """Wait for all in-flight completion requests."""
        pending = list(self._in_flight.values())
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def close(self) -> None:
        """Stop sweeping and cancel requests that have not finished yet."""
        self._closed = True
        for job in list(self._in_flight.values()):
            job.cancel()
        self._in_flight.clear()


async def run_deadline_monitor(
        monitor: DeadlineMonitor,
        *,
        interval_seconds: float = 1.0,
) -> None:
    """
    Run monitor.sweep() every interval_seconds until cancelled or closed.

    To stop the monitor, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))

    try:
        while not monitor.closed:
            try:
                monitor.sweep()
            except Exception:
                logger.exception("Deadline sweep failed")
            await asyncio.sleep(sleep_s)
    finally:
        with contextlib.suppress(Exception):
            monitor.close()
