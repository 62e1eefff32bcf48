"""Local to-do list store with live snapshot observation."""

from .tasks import StorageFailure, Task, TaskNotFound, TaskStore, open_task_store

__version__ = "0.1.0"

__all__ = ["StorageFailure", "Task", "TaskNotFound", "TaskStore", "open_task_store", "__version__"]
