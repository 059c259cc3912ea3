# tests/test_task_store.py

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from taskup.core.errors import NotFoundError, StoreError
from taskup.tasks.task_store import TaskDocumentStore


def _record(owner_id: str = "u1", title: str = "Write report", **extra):
    rec = {
        "owner_id": owner_id,
        "title": title,
        "image_url": None,
        "start_date": 1_000.0,
        "end_date": 1_300.0,
        "is_completed": False,
        "time_spent": 0,
    }
    rec.update(extra)
    return rec


class Recorder:
    def __init__(self) -> None:
        self.snapshots: list[list[dict]] = []
        self.errors: list[Exception] = []

    def on_change(self, records) -> None:
        self.snapshots.append(records)

    def on_error(self, exc: Exception) -> None:
        self.errors.append(exc)

    @property
    def last_titles(self) -> list[str]:
        return sorted(r["title"] for r in self.snapshots[-1])


def test_listen_delivers_initial_snapshot_before_returning(store: TaskDocumentStore) -> None:
    rec = Recorder()
    unsubscribe = store.listen("u1", rec.on_change, rec.on_error)

    assert rec.snapshots == [[]]
    assert store.listener_count() == 1

    unsubscribe()
    unsubscribe()  # second call is a no-op
    assert store.listener_count() == 0


@pytest.mark.asyncio
async def test_add_assigns_id_and_timestamps_and_notifies_owner(store: TaskDocumentStore) -> None:
    rec = Recorder()
    store.listen("u1", rec.on_change)

    doc_id = await store.add(_record())

    assert doc_id
    assert len(rec.snapshots) == 2
    (doc,) = rec.snapshots[-1]
    assert doc["id"] == doc_id
    assert doc["owner_id"] == "u1"
    assert doc["is_completed"] == 0
    assert doc["created_at"] > 0
    assert doc["updated_at"] == doc["created_at"]


@pytest.mark.asyncio
async def test_listeners_only_see_their_owner(store: TaskDocumentStore) -> None:
    alice, bob = Recorder(), Recorder()
    store.listen("alice", alice.on_change)
    store.listen("bob", bob.on_change)

    await store.add(_record(owner_id="alice", title="A"))

    assert alice.last_titles == ["A"]
    assert bob.snapshots == [[]]


@pytest.mark.asyncio
async def test_add_requires_owner(store: TaskDocumentStore) -> None:
    with pytest.raises(StoreError):
        await store.add(_record(owner_id=""))
    assert store.count_documents() == 0


@pytest.mark.asyncio
async def test_update_changes_fields_and_refreshes_updated_at(store: TaskDocumentStore) -> None:
    doc_id = await store.add(_record())
    before = store.get(doc_id)

    await store.update(doc_id, {"is_completed": True, "end_date": None}, owner_id="u1")

    after = store.get(doc_id)
    assert after["is_completed"] == 1
    assert after["end_date"] is None
    assert after["title"] == before["title"]
    assert after["updated_at"] >= before["updated_at"]


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(store: TaskDocumentStore) -> None:
    doc_id = await store.add(_record())
    with pytest.raises(StoreError):
        await store.update(doc_id, {"owner_id": "u2"}, owner_id="u1")
    assert store.get(doc_id)["owner_id"] == "u1"


@pytest.mark.asyncio
async def test_update_and_delete_are_scoped_to_owner(store: TaskDocumentStore) -> None:
    doc_id = await store.add(_record(owner_id="alice"))

    with pytest.raises(NotFoundError):
        await store.update(doc_id, {"title": "hijacked"}, owner_id="mallory")
    with pytest.raises(NotFoundError):
        await store.delete(doc_id, owner_id="mallory")

    assert store.get(doc_id)["title"] == "Write report"


@pytest.mark.asyncio
async def test_update_missing_document_raises_not_found(store: TaskDocumentStore) -> None:
    with pytest.raises(NotFoundError) as ei:
        await store.update("nope", {"title": "x"}, owner_id="u1")
    assert ei.value.doc_id == "nope"


@pytest.mark.asyncio
async def test_delete_removes_document_from_next_snapshot(store: TaskDocumentStore) -> None:
    rec = Recorder()
    store.listen("u1", rec.on_change)
    keep = await store.add(_record(title="keep"))
    drop = await store.add(_record(title="drop"))

    await store.delete(drop, owner_id="u1")

    assert [r["id"] for r in rec.snapshots[-1]] == [keep]
    assert store.get(drop) is None


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_others(store: TaskDocumentStore) -> None:
    good = Recorder()
    calls = {"n": 0}

    def bad(records) -> None:
        calls["n"] += 1
        if calls["n"] > 1:
            raise RuntimeError("boom")

    store.listen("u1", bad)
    store.listen("u1", good.on_change)

    await store.add(_record())

    assert calls["n"] == 2
    assert good.last_titles == ["Write report"]


@pytest.mark.asyncio
async def test_poll_external_changes_picks_up_other_connections(settings) -> None:
    ours = TaskDocumentStore(settings.tasks_db_path)
    theirs = TaskDocumentStore(settings.tasks_db_path)
    try:
        rec = Recorder()
        ours.listen("u1", rec.on_change)

        assert ours.poll_external_changes() is False  # baseline
        assert ours.poll_external_changes() is False  # nothing happened

        await theirs.add(_record(title="from elsewhere"))

        assert ours.poll_external_changes() is True
        assert rec.last_titles == ["from elsewhere"]
    finally:
        ours.close()
        theirs.close()


def test_schema_migration_adds_missing_columns(tmp_path: Path) -> None:
    db = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(str(db))
    conn.execute(
        """
        CREATE TABLE tasks (
            id TEXT PRIMARY KEY,
            owner_id TEXT NOT NULL,
            title TEXT NOT NULL,
            start_date REAL NOT NULL,
            created_at REAL NOT NULL
        )
        """
    )
    conn.execute(
        "INSERT INTO tasks(id, owner_id, title, start_date, created_at) VALUES ('t1', 'u1', 'old', 1.0, 1.0)"
    )
    conn.commit()
    conn.close()

    s = TaskDocumentStore(db)
    try:
        doc = s.get("t1")
        assert doc is not None
        assert doc["end_date"] is None
        assert doc["is_completed"] == 0
        assert doc["time_spent"] == 0
        assert doc["image_url"] is None
    finally:
        s.close()
