# src/taskup/tasks/task_api.py

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path

from ..core.errors import ValidationError
from ..core.ports import BlobStorage
from .elapsed_tracker import ElapsedTracker
from .task_adapter import TaskStoreAdapter
from .task_models import NewTask, Task, TaskPatch

logger = logging.getLogger(__name__)

DEFAULT_TIME_LIMIT_MINUTES = 30
MIN_TIME_LIMIT_MINUTES = 5


def deadline_for(start_date: datetime, time_limit_minutes: int) -> datetime:
    return start_date + timedelta(minutes=int(time_limit_minutes))


async def create_task(
    adapter: TaskStoreAdapter,
    *,
    title: str,
    start_date: datetime | None = None,
    time_limit_minutes: int | None = None,
    with_deadline: bool = True,
    image_path: str | Path | None = None,
    blob: BlobStorage | None = None,
    default_limit: int = DEFAULT_TIME_LIMIT_MINUTES,
    min_limit: int = MIN_TIME_LIMIT_MINUTES,
) -> str:
    """
    Convenience helper behind the "new task" form.

    - start_date defaults to now
    - end_date = start_date + time limit (clamped to min_limit), unless with_deadline=False
    - an image path is uploaded first; only the resulting URL is stored
    """
    if not (title or "").strip():
        raise ValidationError("title is required")

    start = start_date or adapter.clock.now()
    end_date: datetime | None = None
    if with_deadline:
        limit = default_limit if time_limit_minutes is None else int(time_limit_minutes)
        end_date = deadline_for(start, max(int(min_limit), limit))

    image_url: str | None = None
    if image_path is not None and str(image_path).strip():
        if blob is None:
            raise ValidationError("image given but no blob storage configured")
        # Fail on auth before uploading anything.
        adapter.session.require_owner()
        image_url = await blob.upload(image_path)

    return await adapter.create(
        NewTask(title=title, start_date=start, end_date=end_date, image_url=image_url)
    )


async def complete_task(
    adapter: TaskStoreAdapter,
    task: Task,
    *,
    tracker: ElapsedTracker | None = None,
) -> None:
    """Mark completed and persist the stopwatch value shown so far."""
    patch = TaskPatch(is_completed=True)
    if tracker is not None:
        patch = TaskPatch(is_completed=True, time_spent=tracker.seconds(task.id, task.time_spent))
    await adapter.update(task.id, patch)


async def toggle_task(
    adapter: TaskStoreAdapter,
    task: Task,
    *,
    tracker: ElapsedTracker | None = None,
) -> bool:
    """Flip completion; returns the new state."""
    if task.is_completed:
        await adapter.update(task.id, TaskPatch(is_completed=False))
        return False
    await complete_task(adapter, task, tracker=tracker)
    return True


async def set_deadline(adapter: TaskStoreAdapter, task_id: str, end_date: datetime | None) -> None:
    """end_date=None removes the deadline; the task then never auto-expires."""
    await adapter.update(task_id, TaskPatch(end_date=end_date))


async def delete_task(adapter: TaskStoreAdapter, task_id: str) -> None:
    await adapter.remove(task_id)
