# src/todolist/tasks/errors.py

from __future__ import annotations


class TaskStoreError(Exception):
    """Base class for task store errors."""


class StorageFailure(TaskStoreError):
    """
    The backing medium could not complete a read or write.

    Covers I/O and permission errors, corrupted or unsupported database files,
    and calls made after the store was closed. The store never retries; retry
    policy belongs to the caller.
    """


class TaskNotFound(TaskStoreError, KeyError):
    """Raised by lookups by id. Deleting a missing task is not an error."""

    def __init__(self, task_id: int) -> None:
        super().__init__(task_id)
        self.task_id = task_id

    def __str__(self) -> str:
        return f"task {self.task_id} not found"
