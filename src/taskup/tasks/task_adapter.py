# src/taskup/tasks/task_adapter.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from ..core.errors import StoreError, ValidationError
from ..core.ports import Clock, DocumentStore, Record, Unsubscribe
from ..core.session import Session, SystemClock
from .task_models import NewTask, Task, TaskPatch

logger = logging.getLogger(__name__)

_TIME_FIELDS = ("start_date", "end_date")


def _noop() -> None:
    return


def to_native(value: datetime | None) -> float | None:
    """In-memory datetime -> store epoch seconds. Naive datetimes are taken as local time."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).timestamp()


def from_native(value: Any) -> datetime | None:
    """Store epoch seconds -> aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


class TaskStoreAdapter:
    """
    Typed task API over a DocumentStore, scoped to one Session.

    - normalizes raw documents into Task entities
    - validates input before any store call
    - is the only place that knows the store's timestamp format
    """

    def __init__(
        self,
        store: DocumentStore,
        session: Session,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._session = session
        self.clock: Clock = clock or SystemClock()

    @property
    def session(self) -> Session:
        return self._session

    def _record_to_task(self, record: Record) -> Task:
        now = self.clock.now()
        return Task(
            id=str(record["id"]),
            title=str(record.get("title") or ""),
            image_url=record.get("image_url") or None,
            start_date=from_native(record.get("start_date")) or now,
            end_date=from_native(record.get("end_date")),
            is_completed=bool(record.get("is_completed")),
            time_spent=max(0, int(record.get("time_spent") or 0)),
            created_at=from_native(record.get("created_at")) or now,
            updated_at=from_native(record.get("updated_at")) or now,
            owner_id=str(record.get("owner_id") or ""),
        )

    def _records_to_tasks(self, records: list[Record]) -> list[Task]:
        tasks: list[Task] = []
        for record in records:
            try:
                tasks.append(self._record_to_task(record))
            except (KeyError, TypeError, ValueError, OverflowError):
                logger.warning("Skipping malformed task document: %r", record.get("id"))
        return tasks

    # ---- public API ----

    def subscribe(
        self,
        on_snapshot: Callable[[list[Task]], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> Unsubscribe:
        """
        Live listener for the current owner's tasks.

        on_snapshot gets the current set right away and then every new set.
        Without a signed-in user this returns a no-op handle and never calls
        back. Store errors (setup or later) go to on_error; setup errors also
        yield a no-op handle.
        """
        owner_id = self._session.owner_id
        if owner_id is None:
            logger.debug("subscribe() without a user; returning no-op handle")
            return _noop

        active = True

        def deliver(records: list[Record]) -> None:
            if not active:
                return
            on_snapshot(self._records_to_tasks(records))

        def report(exc: Exception) -> None:
            if not active:
                return
            logger.error("Task subscription error owner=%s: %s", owner_id, exc)
            if on_error is not None:
                on_error(exc)

        try:
            store_unsubscribe = self._store.listen(owner_id, deliver, report)
        except StoreError as e:
            logger.error("Task subscription setup failed owner=%s: %s", owner_id, e)
            if on_error is not None:
                on_error(e)
            return _noop

        def unsubscribe() -> None:
            nonlocal active
            if not active:
                return
            active = False
            store_unsubscribe()

        return unsubscribe

    async def create(self, new_task: NewTask) -> str:
        title = (new_task.title or "").strip()
        if not title:
            raise ValidationError("title is required")
        if new_task.start_date is None:
            raise ValidationError("start_date is required")
        owner_id = self._session.require_owner()

        record: Record = {
            "owner_id": owner_id,
            "title": title,
            "image_url": new_task.image_url or None,
            "start_date": to_native(new_task.start_date),
            "end_date": to_native(new_task.end_date),
            "is_completed": False,
            "time_spent": 0,
        }
        task_id = await self._store.add(record)
        logger.info("Task created id=%s owner=%s end_date=%s", task_id, owner_id, new_task.end_date)
        return task_id

    async def update(self, task_id: str, patch: TaskPatch) -> None:
        changes = patch.changes()
        if "title" in changes:
            title = (changes["title"] or "").strip()
            if not title:
                raise ValidationError("title cannot be empty")
            changes["title"] = title
        if "start_date" in changes and changes["start_date"] is None:
            raise ValidationError("start_date cannot be cleared")
        if "time_spent" in changes:
            if int(changes["time_spent"]) < 0:
                raise ValidationError("time_spent cannot be negative")
            changes["time_spent"] = int(changes["time_spent"])
        if "image_url" in changes:
            changes["image_url"] = changes["image_url"] or None
        owner_id = self._session.require_owner()

        for name in _TIME_FIELDS:
            if name in changes:
                changes[name] = to_native(changes[name])

        # Empty patches still refresh updated_at, same as the store does for any write.
        await self._store.update(task_id, changes, owner_id=owner_id)
        logger.debug("Task updated id=%s fields=%s", task_id, sorted(changes))

    async def remove(self, task_id: str) -> None:
        owner_id = self._session.require_owner()
        await self._store.delete(task_id, owner_id=owner_id)
        logger.info("Task removed id=%s", task_id)
