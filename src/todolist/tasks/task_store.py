# src/todolist/tasks/task_store.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import sqlite3
import threading
from collections.abc import Iterator
from pathlib import Path

from .errors import StorageFailure, TaskNotFound
from .task_feed import AsyncTaskSubscription, SnapshotFeed, TaskSubscription
from .task_models import Task, TaskSnapshot

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# SQLite INTEGER is a signed 64-bit value.
_MAX_ID = 2**63 - 1


class TaskStore:
    """
    SQLite task store.

    Schema is fixed at version 1 (kept in PRAGMA user_version):
    - tasks(id INTEGER PRIMARY KEY AUTOINCREMENT, task TEXT, is_completed INTEGER)
    - AUTOINCREMENT means an id is never handed out twice for the same file
    - a database with a newer user_version is refused (no migrations)

    Thread-safety:
    - each method opens its own SQLite connection
    - mutations and their snapshot publication run under one lock, so
      observers see snapshots in the order the writes completed
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._write_lock = threading.Lock()
        self._feed = SnapshotFeed()
        self._closed = False

        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("TaskStore cannot create directory for db=%s: %s", self._db_path, e)
            raise StorageFailure(f"cannot create directory for {self._db_path}: {e}") from e

        self._ensure_schema()
        try:
            total = self.count_tasks()
        except StorageFailure as e:
            logger.warning("TaskStore opened but cannot count tasks db=%s: %s", self._db_path, e)
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Tear the store down: end every subscription and refuse further calls."""
        with self._write_lock:
            if self._closed:
                return
            self._closed = True
        self._feed.close()
        logger.info("TaskStore closed db=%s", self._db_path)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    @contextlib.contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Short-lived connection; sqlite errors surface as StorageFailure."""
        if self._closed:
            raise StorageFailure(f"task store is closed (db={self._db_path})")
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            logger.error("TaskStore cannot open db=%s: %s", self._db_path, e)
            raise StorageFailure(f"cannot open {self._db_path}: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            logger.exception("TaskStore storage error db=%s", self._db_path)
            with contextlib.suppress(sqlite3.Error):
                conn.rollback()
            raise StorageFailure(f"storage error on {self._db_path}: {e}") from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            (version,) = conn.execute("PRAGMA user_version").fetchone()
            version = int(version)
            if version > SCHEMA_VERSION:
                raise StorageFailure(
                    f"{self._db_path} has schema version {version}; "
                    f"only version {SCHEMA_VERSION} is supported"
                )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task TEXT NOT NULL,
                    is_completed INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            if version == 0:
                conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
                logger.info("TaskStore schema created version=%d db=%s", SCHEMA_VERSION, self._db_path)
            conn.commit()

    @staticmethod
    def _clean_description(description: str | None) -> str:
        text = (description or "").strip()
        if not text:
            raise ValueError("description is required")
        try:
            text.encode("utf-8")
        except UnicodeEncodeError as e:
            raise ValueError(f"description is not valid text: {e.reason}") from None
        return text

    @staticmethod
    def _check_id(task_id: int) -> int:
        task_id = int(task_id)
        if not -_MAX_ID - 1 <= task_id <= _MAX_ID:
            raise ValueError(f"task id {task_id} is out of range")
        return task_id

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            description=str(row["task"] or ""),
            is_completed=bool(row["is_completed"]),
        )

    def _read_snapshot(self, conn: sqlite3.Connection) -> TaskSnapshot:
        cur = conn.execute("SELECT id, task, is_completed FROM tasks ORDER BY id ASC")
        return tuple(self._row_to_task(r) for r in cur.fetchall())

    def _attach(self, subscriber: TaskSubscription | AsyncTaskSubscription) -> None:
        # Hold the write lock so no mutation slips in between the seed and registration.
        with self._write_lock:
            with self._connection() as conn:
                snapshot = self._read_snapshot(conn)
            self._feed.attach(subscriber, snapshot)

    # ---- public API ----

    def count_tasks(self) -> int:
        with self._connection() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def list_tasks(self) -> TaskSnapshot:
        with self._connection() as conn:
            return self._read_snapshot(conn)

    def get_task(self, task_id: int) -> Task:
        task_id = self._check_id(task_id)
        with self._connection() as conn:
            row = conn.execute(
                "SELECT id, task, is_completed FROM tasks WHERE id = ?",
                (int(task_id),),
            ).fetchone()
        if row is None:
            raise TaskNotFound(int(task_id))
        return self._row_to_task(row)

    def upsert(self, task: Task) -> Task:
        """
        Insert a new task or replace the stored task with the same id.

        A task with id 0 gets the next id assigned by the store. Returns the
        task as stored.
        """
        description = self._clean_description(task.description)
        completed = bool(task.is_completed)
        self._check_id(task.id)

        with self._write_lock:
            with self._connection() as conn:
                if task.is_saved:
                    conn.execute(
                        "INSERT OR REPLACE INTO tasks(id, task, is_completed) VALUES (?, ?, ?)",
                        (int(task.id), description, int(completed)),
                    )
                    task_id = int(task.id)
                else:
                    cur = conn.execute(
                        "INSERT INTO tasks(task, is_completed) VALUES (?, ?)",
                        (description, int(completed)),
                    )
                    rowid = cur.lastrowid
                    if rowid is None:
                        raise StorageFailure("SQLite did not return lastrowid for tasks insert")
                    task_id = int(rowid)
                conn.commit()
                snapshot = self._read_snapshot(conn)

            logger.debug("Task upserted id=%s completed=%s", task_id, completed)
            self._feed.publish(snapshot)

        return Task(id=task_id, description=description, is_completed=completed)

    def delete(self, task: Task) -> None:
        """Remove the task with task.id. Missing tasks are ignored."""
        self.delete_by_id(task.id)

    def delete_by_id(self, task_id: int) -> bool:
        """Returns True if a row was removed."""
        # Ids outside the stored range can never exist, so there is nothing to delete.
        if not 0 < int(task_id) <= _MAX_ID:
            return False

        with self._write_lock:
            with self._connection() as conn:
                cur = conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
                conn.commit()
                removed = cur.rowcount == 1
                snapshot = self._read_snapshot(conn) if removed else None

            if snapshot is None:
                logger.debug("Task delete ignored, id=%s not present", task_id)
                return False

            logger.debug("Task deleted id=%s", task_id)
            self._feed.publish(snapshot)
            return True

    def observe_all(self) -> TaskSubscription:
        """
        Subscribe to live snapshots of all tasks.

        The first snapshot is the current state; after that one snapshot
        arrives per completed mutation. The stream ends when the store is
        closed. Each call returns an independent subscription.

        Lazy: the subscription is registered and seeded on its first get(),
        so the first snapshot reflects every write completed before that.
        """
        if self._closed:
            raise StorageFailure(f"task store is closed (db={self._db_path})")
        return TaskSubscription(self._feed, connect=self._attach)

    def subscriber_count(self) -> int:
        return self._feed.subscriber_count()

    # ---- asyncio API (blocking work runs on a worker thread) ----

    async def aupsert(self, task: Task) -> Task:
        return await asyncio.to_thread(self.upsert, task)

    async def adelete(self, task: Task) -> None:
        await asyncio.to_thread(self.delete, task)

    async def alist_tasks(self) -> TaskSnapshot:
        return await asyncio.to_thread(self.list_tasks)

    async def aobserve_all(self) -> AsyncTaskSubscription:
        if self._closed:
            raise StorageFailure(f"task store is closed (db={self._db_path})")
        return AsyncTaskSubscription(self._feed, asyncio.get_running_loop(), connect=self._attach)


# ---- one store per location ----

_registry_lock = threading.Lock()
_open_stores: dict[Path, TaskStore] = {}


def open_task_store(db_path: str | Path) -> TaskStore:
    """
    Return the process-wide TaskStore for db_path, creating it on first use.

    Two stores writing the same file would publish to different observers,
    so callers share one instance per resolved path.
    """
    key = Path(db_path).expanduser().resolve()
    with _registry_lock:
        store = _open_stores.get(key)
        if store is None or store.closed:
            store = TaskStore(key)
            _open_stores[key] = store
        return store


def close_all_task_stores() -> None:
    with _registry_lock:
        stores = list(_open_stores.values())
        _open_stores.clear()
    for store in stores:
        store.close()
