# src/taskup/tasks/snapshot.py

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterable

from ..core.ports import Unsubscribe
from .task_models import Task

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[tuple[Task, ...]], None]
SubscribeFn = Callable[
    [Callable[[list[Task]], None], Callable[[Exception], None] | None],
    Unsubscribe,
]


class SnapshotCache:
    """
    Single-writer holder of the latest task snapshot.

    The live subscription is the only writer (via attach()); everything else
    reads `tasks`. A new snapshot replaces the previous one in a single
    assignment, so a reader that grabbed `tasks` keeps a consistent set even
    if a newer snapshot arrives while it is iterating.
    """

    def __init__(self) -> None:
        self._tasks: tuple[Task, ...] = ()
        self._version = 0
        self._detach: Unsubscribe | None = None
        self._listeners: dict[int, SnapshotListener] = {}
        self._tokens = itertools.count(1)

    @property
    def tasks(self) -> tuple[Task, ...]:
        return self._tasks

    @property
    def version(self) -> int:
        """0 until the first snapshot is installed, then +1 per snapshot."""
        return self._version

    @property
    def loaded(self) -> bool:
        return self._version > 0

    @property
    def attached(self) -> bool:
        return self._detach is not None

    def get(self, task_id: str) -> Task | None:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def install(self, tasks: Iterable[Task]) -> None:
        self._tasks = tuple(tasks)
        self._version += 1
        for token, listener in list(self._listeners.items()):
            if token not in self._listeners:
                continue
            try:
                listener(self._tasks)
            except Exception:
                logger.exception("Snapshot listener %s failed", token)

    def add_listener(self, listener: SnapshotListener) -> Unsubscribe:
        token = next(self._tokens)
        self._listeners[token] = listener

        def remove() -> None:
            self._listeners.pop(token, None)

        return remove

    def attach(
        self,
        subscribe: SubscribeFn,
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        """Feed this cache from a subscribe(on_snapshot, on_error) registration function."""
        if self._detach is not None:
            raise RuntimeError("SnapshotCache is already attached")
        self._detach = subscribe(self.install, on_error)

    def detach(self) -> None:
        detach, self._detach = self._detach, None
        if detach is not None:
            detach()

    def clear(self) -> None:
        self.detach()
        self._listeners.clear()
        self._tasks = ()
