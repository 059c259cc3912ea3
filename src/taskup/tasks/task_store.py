# src/taskup/tasks/task_store.py

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
import sqlite3
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..core.errors import NotFoundError, StoreError
from ..core.ports import Record, Unsubscribe

logger = logging.getLogger(__name__)

# Columns a caller may write. id/owner_id/created_at are fixed after insert.
_WRITABLE = (
    "title",
    "image_url",
    "start_date",
    "end_date",
    "is_completed",
    "time_spent",
)


@dataclass(slots=True)
class _Listener:
    owner_id: str
    on_change: Callable[[list[Record]], None]
    on_error: Callable[[Exception], None] | None


class TaskDocumentStore:
    """
    SQLite task document store with live, per-owner change notifications.

    Documents are plain dicts in store-native form:
    - timestamps are epoch seconds (REAL)
    - is_completed is 0/1
    - id is an opaque string assigned here

    Every successful write re-queries the affected owner's documents and hands
    the full set to that owner's listeners. Writes from other processes on the
    same database file are picked up by poll_external_changes().

    Thread-safety:
    - each method opens its own SQLite connection
    - listeners are called on the thread that performed the write
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._listeners: dict[int, _Listener] = {}
        self._tokens = itertools.count(1)
        self._watch_conn: sqlite3.Connection | None = None
        self._data_version: int | None = None
        self._ensure_schema()
        try:
            total = self.count_documents()
        except StoreError:
            total = -1
        logger.info("TaskDocumentStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        self._listeners.clear()
        if self._watch_conn is not None:
            with contextlib.suppress(sqlite3.Error):
                self._watch_conn.close()
            self._watch_conn = None

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise StoreError(f"cannot open task database {self._db_path}: {e}") from e
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    image_url TEXT,
                    start_date REAL NOT NULL,
                    end_date REAL,
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    time_spent INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskDocumentStore migration: added column %s", name)

            add_col("image_url", "TEXT")
            add_col("end_date", "REAL")
            add_col("is_completed", "INTEGER NOT NULL DEFAULT 0")
            add_col("time_spent", "INTEGER NOT NULL DEFAULT 0")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks(owner_id)")
            conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"schema setup failed: {e}") from e
        finally:
            conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> Record:
        return {key: row[key] for key in row.keys()}

    def _query_owner(self, owner_id: str) -> list[Record]:
        # No ORDER BY on purpose: display order is the view's job.
        try:
            conn = self._get_conn()
            try:
                cur = conn.execute("SELECT * FROM tasks WHERE owner_id = ?", (owner_id,))
                return [self._row_to_record(r) for r in cur.fetchall()]
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"query failed for owner {owner_id}: {e}") from e

    def _owner_of(self, conn: sqlite3.Connection, doc_id: str) -> str | None:
        row = conn.execute("SELECT owner_id FROM tasks WHERE id = ?", (doc_id,)).fetchone()
        return str(row["owner_id"]) if row else None

    def _notify(self, owner_ids: set[str]) -> None:
        for owner_id in owner_ids:
            listeners = [
                (token, lst) for token, lst in self._listeners.items() if lst.owner_id == owner_id
            ]
            if not listeners:
                continue
            try:
                records = self._query_owner(owner_id)
            except StoreError as e:
                logger.exception("Snapshot query failed owner=%s", owner_id)
                for _, lst in listeners:
                    if lst.on_error is not None:
                        lst.on_error(e)
                continue

            for token, lst in listeners:
                # A previous callback in this loop may have unsubscribed it.
                if token not in self._listeners:
                    continue
                try:
                    lst.on_change([dict(r) for r in records])
                except Exception:
                    logger.exception("Snapshot listener failed owner=%s token=%s", owner_id, token)

    # ---- public API ----

    def count_documents(self) -> int:
        try:
            conn = self._get_conn()
            try:
                (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
                return int(n)
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"count failed: {e}") from e

    def get(self, doc_id: str) -> Record | None:
        try:
            conn = self._get_conn()
            try:
                row = conn.execute("SELECT * FROM tasks WHERE id = ?", (doc_id,)).fetchone()
                return self._row_to_record(row) if row else None
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"get failed id={doc_id}: {e}") from e

    def listen(
        self,
        owner_id: str,
        on_change: Callable[[list[Record]], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> Unsubscribe:
        """
        Register a live listener for one owner's documents.

        The current set is delivered before this returns; later changes are
        delivered after each write. Raises StoreError if the initial query fails
        (nothing is registered in that case).
        """
        records = self._query_owner(owner_id)
        token = next(self._tokens)
        self._listeners[token] = _Listener(owner_id=owner_id, on_change=on_change, on_error=on_error)
        logger.debug("Listener %s registered owner=%s", token, owner_id)

        on_change(records)

        def unsubscribe() -> None:
            if self._listeners.pop(token, None) is not None:
                logger.debug("Listener %s removed owner=%s", token, owner_id)

        return unsubscribe

    def listener_count(self) -> int:
        return len(self._listeners)

    async def add(self, record: Record) -> str:
        owner_id = record.get("owner_id")
        if not owner_id:
            raise StoreError("owner_id is required")

        doc_id = uuid.uuid4().hex
        now = time.time()
        values: dict[str, Any] = {k: record.get(k) for k in _WRITABLE}
        values["is_completed"] = int(bool(values.get("is_completed")))
        values["time_spent"] = int(values.get("time_spent") or 0)

        try:
            conn = self._get_conn()
            try:
                conn.execute(
                    """
                    INSERT INTO tasks(
                        id, owner_id, title, image_url,
                        start_date, end_date, is_completed, time_spent,
                        created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        doc_id,
                        owner_id,
                        values["title"],
                        values["image_url"],
                        values["start_date"],
                        values["end_date"],
                        values["is_completed"],
                        values["time_spent"],
                        now,
                        now,
                    ),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"insert failed: {e}") from e

        logger.debug("Document added id=%s owner=%s", doc_id, owner_id)
        self._notify({str(owner_id)})
        return doc_id

    async def update(self, doc_id: str, fields: Record, *, owner_id: str) -> None:
        unknown = set(fields) - set(_WRITABLE)
        if unknown:
            raise StoreError(f"fields not writable: {sorted(unknown)}")

        sets: list[str] = []
        params: list[Any] = []
        for name in _WRITABLE:
            if name not in fields:
                continue
            value = fields[name]
            if name == "is_completed":
                value = int(bool(value))
            if name == "time_spent":
                # Never rewinds; a stale writer cannot lower the counter.
                sets.append("time_spent = MAX(time_spent, ?)")
                params.append(int(value or 0))
                continue
            sets.append(f"{name} = ?")
            params.append(value)

        sets.append("updated_at = ?")
        params.append(time.time())
        params.append(doc_id)

        try:
            conn = self._get_conn()
            try:
                if self._owner_of(conn, doc_id) != owner_id:
                    raise NotFoundError(doc_id)
                conn.execute(f"UPDATE tasks SET {', '.join(sets)} WHERE id = ?", params)
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"update failed id={doc_id}: {e}") from e

        logger.debug("Document updated id=%s fields=%s", doc_id, sorted(fields))
        self._notify({owner_id})

    async def delete(self, doc_id: str, *, owner_id: str) -> None:
        try:
            conn = self._get_conn()
            try:
                if self._owner_of(conn, doc_id) != owner_id:
                    raise NotFoundError(doc_id)
                conn.execute("DELETE FROM tasks WHERE id = ?", (doc_id,))
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"delete failed id={doc_id}: {e}") from e

        logger.debug("Document deleted id=%s", doc_id)
        self._notify({owner_id})

    # ---- out-of-band changes ----

    def poll_external_changes(self) -> bool:
        """
        Re-deliver snapshots if the database file changed since the last poll.

        Uses PRAGMA data_version on a long-lived connection: it changes whenever
        another connection commits. Our own writes count too, so listeners may
        occasionally get an identical snapshot twice, which is harmless because
        a snapshot always replaces the previous one.
        """
        try:
            if self._watch_conn is None:
                self._watch_conn = sqlite3.connect(str(self._db_path), timeout=30.0)
            (version,) = self._watch_conn.execute("PRAGMA data_version").fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"change poll failed: {e}") from e

        previous = self._data_version
        self._data_version = int(version)
        if previous is None or previous == self._data_version:
            return False

        owners = {lst.owner_id for lst in self._listeners.values()}
        logger.debug("External change detected; refreshing %d owner(s)", len(owners))
        self._notify(owners)
        return True


async def run_change_poller(store: TaskDocumentStore, *, interval_seconds: float = 2.0) -> None:
    """
    Poll the database for writes made by other processes.

    To stop the poller, cancel the coroutine/task.
    """
    sleep_s = max(0.1, float(interval_seconds))
    while True:
        try:
            store.poll_external_changes()
        except Exception:
            logger.exception("poll_external_changes failed")
        await asyncio.sleep(sleep_s)
