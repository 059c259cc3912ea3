# src/taskup/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any, Final


class _Unset(Enum):
    """Marker for "field not part of this patch" (distinct from an explicit None)."""

    UNSET = "UNSET"

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Final = _Unset.UNSET


@dataclass(slots=True, frozen=True)
class Task:
    """
    A task as the rest of the app sees it.

    All datetimes are timezone-aware UTC; conversion from the store's native
    representation happens only in TaskStoreAdapter.
    """

    id: str
    title: str
    image_url: str | None
    start_date: datetime
    end_date: datetime | None
    is_completed: bool
    time_spent: int
    created_at: datetime
    updated_at: datetime
    owner_id: str

    def is_expired(self, now: datetime) -> bool:
        """Incomplete, has a deadline, and the deadline is reached (inclusive)."""
        return not self.is_completed and self.end_date is not None and now >= self.end_date


@dataclass(slots=True, frozen=True)
class NewTask:
    """User input for create(): no id, owner, timestamps or completion state."""

    title: str
    start_date: datetime | None
    end_date: datetime | None = None
    image_url: str | None = None


@dataclass(slots=True, frozen=True)
class TaskPatch:
    """
    Partial update.

    Fields left as UNSET are not touched. For end_date, an explicit None clears
    the stored deadline, while UNSET leaves it as it is.
    """

    title: str | _Unset = UNSET
    image_url: str | None | _Unset = UNSET
    start_date: datetime | _Unset = UNSET
    end_date: datetime | None | _Unset = UNSET
    is_completed: bool | _Unset = UNSET
    time_spent: int | _Unset = UNSET

    def changes(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not UNSET:
                out[f.name] = value
        return out

    def is_empty(self) -> bool:
        return not self.changes()
