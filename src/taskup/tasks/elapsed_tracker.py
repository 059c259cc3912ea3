# src/taskup/tasks/elapsed_tracker.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from .snapshot import SnapshotCache
from .task_models import Task

logger = logging.getLogger(__name__)


class ElapsedTracker:
    """
    Per-task stopwatch for display.

    Counters start from the persisted time_spent the first time a task is
    seen and go up by one per tick while the task is not completed. Nothing is
    written to the store from here; callers persist `seconds(task_id)` when it
    matters (e.g. on explicit completion).
    """

    def __init__(self) -> None:
        self._seconds: dict[str, int] = {}

    def sync(self, tasks: Iterable[Task]) -> None:
        """Align counters with a new snapshot: seed new tasks, drop deleted ones."""
        seen: set[str] = set()
        for task in tasks:
            seen.add(task.id)
            current = self._seconds.get(task.id)
            if current is None or task.time_spent > current:
                self._seconds[task.id] = task.time_spent
        for task_id in list(self._seconds):
            if task_id not in seen:
                del self._seconds[task_id]

    def tick(self, tasks: Iterable[Task]) -> None:
        for task in tasks:
            if task.is_completed:
                continue
            self._seconds[task.id] = self._seconds.get(task.id, task.time_spent) + 1

    def seconds(self, task_id: str, default: int = 0) -> int:
        return self._seconds.get(task_id, default)

    def snapshot(self) -> dict[str, int]:
        return dict(self._seconds)

    def clear(self) -> None:
        self._seconds.clear()


async def run_elapsed_tracker(
        tracker: ElapsedTracker,
        cache: SnapshotCache,
        *,
        interval_seconds: float = 1.0,
) -> None:
    """
    Tick the tracker against the latest snapshot every interval_seconds.

    To stop the tracker, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))
    while True:
        await asyncio.sleep(sleep_s)
        try:
            tracker.tick(cache.tasks)
        except Exception:
            logger.exception("Elapsed tick failed")
