# tests/test_task_store.py

from __future__ import annotations

import logging
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from todolist.tasks.errors import StorageFailure, TaskNotFound
from todolist.tasks.task_models import Task
from todolist.tasks.task_store import TaskStore


def test_insert_assigns_id_and_notifies(store: TaskStore) -> None:
    with store.observe_all() as sub:
        assert sub.get(timeout=1) == ()

        store.upsert(Task(id=0, description="Buy milk", is_completed=False))
        snapshot = sub.get(timeout=1)

    assert len(snapshot) == 1
    (task,) = snapshot
    assert task.id > 0
    assert task.description == "Buy milk"
    assert task.is_completed is False


def test_upsert_returns_stored_task(store: TaskStore) -> None:
    task = store.upsert(Task.new("  Call mom  "))
    assert task.id > 0
    # Description is stored trimmed.
    assert task.description == "Call mom"
    assert store.get_task(task.id) == task


def test_last_write_wins_per_id(store: TaskStore) -> None:
    a = store.upsert(Task.new("a"))
    b = store.upsert(Task.new("b"))

    store.upsert(Task(id=a.id, description="a2"))
    store.upsert(Task(id=a.id, description="a3", is_completed=True))
    store.upsert(Task(id=b.id, description="b2"))

    assert store.list_tasks() == (
        Task(id=a.id, description="a3", is_completed=True),
        Task(id=b.id, description="b2", is_completed=False),
    )


def test_replace_keeps_position_and_size(store: TaskStore) -> None:
    a = store.upsert(Task.new("first"))
    b = store.upsert(Task.new("second"))
    c = store.upsert(Task.new("third"))

    store.upsert(b.completed())

    snapshot = store.list_tasks()
    assert [t.id for t in snapshot] == [a.id, b.id, c.id]
    assert store.count_tasks() == 3
    assert snapshot[1].is_completed is True


def test_upsert_with_unknown_explicit_id_inserts(store: TaskStore) -> None:
    store.upsert(Task(id=42, description="imported"))
    assert store.get_task(42).description == "imported"

    fresh = store.upsert(Task.new("next"))
    assert fresh.id > 42


def test_ids_are_never_reused(store: TaskStore) -> None:
    a = store.upsert(Task.new("a"))
    store.delete(a)
    b = store.upsert(Task.new("b"))
    assert b.id > a.id


def test_delete_then_snapshot_contains_only_remaining(store: TaskStore) -> None:
    a = store.upsert(Task.new("A"))
    b = store.upsert(Task.new("B"))

    with store.observe_all() as sub:
        assert len(sub.get(timeout=1)) == 2
        store.delete(a)
        assert sub.get(timeout=1) == (b,)


def test_delete_missing_is_noop_without_notification(store: TaskStore) -> None:
    kept = store.upsert(Task.new("keep me"))

    with store.observe_all() as sub:
        before = sub.get(timeout=1)
        store.delete(Task(id=999, description="ghost"))
        store.delete(Task.new("never saved"))
        with pytest.raises(TimeoutError):
            sub.get(timeout=0.1)

    assert before == (kept,)
    assert store.list_tasks() == before


def test_delete_twice_same_as_once(store: TaskStore) -> None:
    a = store.upsert(Task.new("a"))
    b = store.upsert(Task.new("b"))

    store.delete(a)
    once = store.list_tasks()
    store.delete(a)

    assert store.list_tasks() == once == (b,)
    assert store.delete_by_id(a.id) is False


def test_concurrent_inserts_get_unique_ids(store: TaskStore) -> None:
    n = 40
    with ThreadPoolExecutor(max_workers=8) as pool:
        stored = list(pool.map(lambda i: store.upsert(Task.new(f"task {i}")), range(n)))

    snapshot = store.list_tasks()
    assert len(snapshot) == n
    assert len({t.id for t in snapshot}) == n
    assert {t.id for t in stored} == {t.id for t in snapshot}


def test_concurrent_writes_reach_observer_in_order(store: TaskStore) -> None:
    with store.observe_all() as sub:
        sub.get(timeout=1)
        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(lambda i: store.upsert(Task.new(f"t{i}")), range(12)))

        sizes = [len(sub.get(timeout=1)) for _ in range(12)]

    # Every snapshot reflects all writes completed before it.
    assert sizes == list(range(1, 13))


def test_empty_description_rejected(store: TaskStore) -> None:
    with pytest.raises(ValueError):
        store.upsert(Task.new("   "))
    assert store.count_tasks() == 0


def test_get_task_missing_raises(store: TaskStore) -> None:
    with pytest.raises(TaskNotFound) as exc_info:
        store.get_task(7)
    assert exc_info.value.task_id == 7
    assert isinstance(exc_info.value, KeyError)


def test_data_survives_reopen(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    first = TaskStore(db)
    a = first.upsert(Task.new("persist me"))
    first.upsert(a.completed())
    first.close()

    second = TaskStore(db)
    try:
        assert second.list_tasks() == (Task(id=a.id, description="persist me", is_completed=True),)
    finally:
        second.close()


def test_schema_version_is_recorded(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    TaskStore(db).close()

    conn = sqlite3.connect(str(db))
    try:
        (version,) = conn.execute("PRAGMA user_version").fetchone()
        cols = {row[1] for row in conn.execute("PRAGMA table_info(tasks)")}
    finally:
        conn.close()

    assert version == 1
    assert cols == {"id", "task", "is_completed"}


def test_newer_schema_version_is_refused(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    conn = sqlite3.connect(str(db))
    conn.execute("PRAGMA user_version = 5")
    conn.commit()
    conn.close()

    with pytest.raises(StorageFailure):
        TaskStore(db)


def test_corrupted_file_raises_storage_failure(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    db.write_bytes(b"this is not a sqlite database" * 64)

    with pytest.raises(StorageFailure) as exc_info:
        TaskStore(db)
    assert isinstance(exc_info.value.__cause__, sqlite3.DatabaseError)


def test_inaccessible_location_raises_storage_failure(tmp_path: Path) -> None:
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x", "utf-8")

    with pytest.raises(StorageFailure):
        TaskStore(blocker / "tasks.sqlite3")


def test_closed_store_refuses_calls_and_ends_streams(tmp_path: Path) -> None:
    s = TaskStore(tmp_path / "tasks.sqlite3")
    s.upsert(Task.new("a"))
    sub = s.observe_all()
    assert len(sub.get(timeout=1)) == 1

    s.close()

    assert list(sub) == []
    with pytest.raises(StorageFailure):
        s.upsert(Task.new("b"))
    with pytest.raises(StorageFailure):
        s.list_tasks()
    with pytest.raises(StorageFailure):
        s.observe_all()
    # Idempotent.
    s.close()


def test_first_snapshot_reflects_writes_before_first_read(store: TaskStore) -> None:
    sub = store.observe_all()
    try:
        task = store.upsert(Task.new("added before reading"))
        assert sub.get(timeout=1) == (task,)
    finally:
        sub.close()


def test_unread_subscription_is_not_registered(store: TaskStore) -> None:
    sub = store.observe_all()
    store.upsert(Task.new("a"))
    store.upsert(Task.new("b"))
    assert store.subscriber_count() == 0

    sub.get(timeout=1)
    assert store.subscriber_count() == 1

    sub.close()
    assert store.subscriber_count() == 0


def test_subscription_closed_before_reading_never_registers(store: TaskStore) -> None:
    sub = store.observe_all()
    sub.close()

    assert list(sub) == []
    assert store.subscriber_count() == 0


@pytest.mark.parametrize("task_id", [2**63, 10**20, -(2**63) - 1])
def test_out_of_range_ids_are_rejected(store: TaskStore, task_id: int) -> None:
    with pytest.raises(ValueError, match="out of range"):
        store.upsert(Task(id=task_id, description="x"))
    with pytest.raises(ValueError, match="out of range"):
        store.get_task(task_id)

    # Such a task cannot exist, so deleting it is a no-op.
    store.delete(Task(id=task_id, description="x"))
    assert store.delete_by_id(task_id) is False
    assert store.count_tasks() == 0


def test_largest_id_is_accepted(store: TaskStore) -> None:
    task = store.upsert(Task(id=2**63 - 1, description="edge"))
    assert store.get_task(2**63 - 1) == task


def test_description_with_lone_surrogate_rejected(store: TaskStore) -> None:
    with pytest.raises(ValueError, match="not valid text"):
        store.upsert(Task.new("bad \ud800"))
    assert store.count_tasks() == 0


def test_count_failure_at_open_is_logged(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    def _fail(self: TaskStore) -> int:
        raise StorageFailure("disk went away")

    monkeypatch.setattr(TaskStore, "count_tasks", _fail)

    with caplog.at_level(logging.WARNING, logger="todolist.tasks.task_store"):
        s = TaskStore(tmp_path / "tasks.sqlite3")
    s.close()

    assert any(
        r.levelno == logging.WARNING and "cannot count tasks" in r.getMessage()
        for r in caplog.records
    )
