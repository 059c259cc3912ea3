# tests/test_task_api.py

from __future__ import annotations

from datetime import timedelta

import pytest

from taskup.core.errors import AuthError, ValidationError
from taskup.core.session import Session
from taskup.storage.blob import LocalBlobStorage
from taskup.tasks import task_api
from taskup.tasks.elapsed_tracker import ElapsedTracker
from taskup.tasks.task_adapter import TaskStoreAdapter
from taskup.tasks.task_models import Task

from .fakes import T0, RecordingBlobStorage


class Latest:
    def __init__(self, adapter: TaskStoreAdapter) -> None:
        self.tasks: list[Task] = []
        adapter.subscribe(self._set)

    def _set(self, tasks: list[Task]) -> None:
        self.tasks = tasks

    def one(self) -> Task:
        (task,) = self.tasks
        return task


@pytest.mark.asyncio
async def test_create_uses_default_time_limit(adapter: TaskStoreAdapter) -> None:
    latest = Latest(adapter)

    await task_api.create_task(adapter, title="Write report")

    task = latest.one()
    assert task.start_date == T0
    assert task.end_date == T0 + timedelta(minutes=30)


@pytest.mark.asyncio
async def test_time_limit_is_raised_to_minimum(adapter: TaskStoreAdapter) -> None:
    latest = Latest(adapter)

    await task_api.create_task(adapter, title="quick", time_limit_minutes=2)

    assert latest.one().end_date == T0 + timedelta(minutes=task_api.MIN_TIME_LIMIT_MINUTES)


@pytest.mark.asyncio
async def test_create_without_deadline(adapter: TaskStoreAdapter) -> None:
    latest = Latest(adapter)

    await task_api.create_task(adapter, title="someday", with_deadline=False)

    assert latest.one().end_date is None


@pytest.mark.asyncio
async def test_create_rejects_blank_title(adapter: TaskStoreAdapter, store) -> None:
    with pytest.raises(ValidationError):
        await task_api.create_task(adapter, title="   ")
    assert store.count_documents() == 0


@pytest.mark.asyncio
async def test_image_is_uploaded_and_url_stored(adapter: TaskStoreAdapter, tmp_path) -> None:
    latest = Latest(adapter)
    image = tmp_path / "cat.png"
    image.write_bytes(b"\x89PNG fake")
    blob = LocalBlobStorage(tmp_path / "blobs")

    await task_api.create_task(adapter, title="with picture", image_path=image, blob=blob)

    url = latest.one().image_url
    assert url is not None
    assert url.startswith("file://")
    assert url.endswith("/tasks/cat.png")
    assert (tmp_path / "blobs" / "tasks" / "cat.png").read_bytes() == b"\x89PNG fake"


@pytest.mark.asyncio
async def test_image_without_blob_storage_is_rejected(adapter: TaskStoreAdapter, store) -> None:
    with pytest.raises(ValidationError):
        await task_api.create_task(adapter, title="t", image_path="cat.png")
    assert store.count_documents() == 0


@pytest.mark.asyncio
async def test_no_upload_without_user(store, clock) -> None:
    adapter = TaskStoreAdapter(store, Session(None), clock=clock)
    blob = RecordingBlobStorage()

    with pytest.raises(AuthError):
        await task_api.create_task(adapter, title="t", image_path="cat.png", blob=blob)

    assert blob.uploads == []
    assert store.count_documents() == 0


@pytest.mark.asyncio
async def test_complete_persists_stopwatch_value(adapter: TaskStoreAdapter) -> None:
    latest = Latest(adapter)
    await task_api.create_task(adapter, title="t")
    task = latest.one()

    tracker = ElapsedTracker()
    tracker.sync([task])
    for _ in range(42):
        tracker.tick([task])

    await task_api.complete_task(adapter, task, tracker=tracker)

    done = latest.one()
    assert done.is_completed is True
    assert done.time_spent == 42


@pytest.mark.asyncio
async def test_toggle_reopens_and_completes(adapter: TaskStoreAdapter) -> None:
    latest = Latest(adapter)
    await task_api.create_task(adapter, title="t")

    assert await task_api.toggle_task(adapter, latest.one()) is True
    assert latest.one().is_completed is True

    assert await task_api.toggle_task(adapter, latest.one()) is False
    assert latest.one().is_completed is False


@pytest.mark.asyncio
async def test_set_deadline_and_clear(adapter: TaskStoreAdapter) -> None:
    latest = Latest(adapter)
    task_id = await task_api.create_task(adapter, title="t", with_deadline=False)

    new_end = T0 + timedelta(minutes=10)
    await task_api.set_deadline(adapter, task_id, new_end)
    assert latest.one().end_date == new_end

    await task_api.set_deadline(adapter, task_id, None)
    assert latest.one().end_date is None


@pytest.mark.asyncio
async def test_delete_task(adapter: TaskStoreAdapter) -> None:
    latest = Latest(adapter)
    task_id = await task_api.create_task(adapter, title="t")

    await task_api.delete_task(adapter, task_id)

    assert latest.tasks == []
