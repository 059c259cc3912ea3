# src/taskup/tasks/aggregate.py

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Final

from .task_models import Task


class RemainingState(Enum):
    EXPIRED = "expired"

    def __str__(self) -> str:
        return "Time's up!"


EXPIRED: Final = RemainingState.EXPIRED


def format_remaining(delta: timedelta) -> str:
    """Positive delta -> "M:SS" (minutes are not wrapped into hours)."""
    # Floors: the last sub-second before the deadline reads "0:00", not expired.
    total = int(delta.total_seconds())
    minutes, seconds = divmod(total, 60)
    return f"{minutes}:{seconds:02d}"


def format_elapsed(seconds: int) -> str:
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def remaining(task: Task, now: datetime) -> str | RemainingState | None:
    if task.end_date is None:
        return None
    delta = task.end_date - now
    if delta <= timedelta(0):
        return EXPIRED
    return format_remaining(delta)


def sort_tasks(tasks: Iterable[Task]) -> list[Task]:
    """Newest first. sorted() is stable, so equal created_at keep their input order."""
    return sorted(tasks, key=lambda t: t.created_at, reverse=True)


@dataclass(slots=True, frozen=True)
class TaskRow:
    task: Task
    remaining: str | RemainingState | None
    elapsed: int

    @property
    def elapsed_text(self) -> str:
        return format_elapsed(self.elapsed)


@dataclass(slots=True, frozen=True)
class TaskView:
    rows: tuple[TaskRow, ...]
    active_count: int
    completed_count: int
    now: datetime

    @property
    def total(self) -> int:
        return len(self.rows)

    @property
    def tasks(self) -> list[Task]:
        return [row.task for row in self.rows]


def build_view(
    tasks: Iterable[Task],
    now: datetime,
    elapsed: Callable[[Task], int] | None = None,
) -> TaskView:
    """Derive counts, order and per-task timers from one snapshot. No side effects."""
    ordered = sort_tasks(tasks)
    active = sum(1 for t in ordered if not t.is_completed)
    rows = tuple(
        TaskRow(
            task=t,
            remaining=remaining(t, now),
            elapsed=elapsed(t) if elapsed is not None else t.time_spent,
        )
        for t in ordered
    )
    return TaskView(
        rows=rows,
        active_count=active,
        completed_count=len(ordered) - active,
        now=now,
    )
