# tests/conftest.py

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from types import SimpleNamespace

import pytest

from todolist.core.state import AppState
from todolist.tasks.task_store import TaskStore, close_all_task_stores


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="todolist-test",
        log_level="DEBUG",
        watch_enabled=False,
        data_dir=tmp_path / "data",
        tasks_db_path=tmp_path / "data" / "tasks.sqlite3",
    )


@pytest.fixture()
def store(tmp_path: Path) -> Iterator[TaskStore]:
    s = TaskStore(tmp_path / "tasks.sqlite3")
    yield s
    s.close()


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore) -> AppState:
    """AppState wired with a real SQLite store; its correctness is part of what we test."""
    return AppState(settings=settings, task_store=store)


@pytest.fixture(autouse=True)
def _close_shared_stores() -> Iterator[None]:
    yield
    close_all_task_stores()
