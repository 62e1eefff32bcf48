"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskSnapshot)
- errors.py: StorageFailure / TaskNotFound
- task_feed.py: publish/subscribe channel carrying full snapshots
- task_store.py: SQLite-backed storage with live observation
- task_api.py: small high-level helpers used by the rest of the app
"""

from .errors import StorageFailure, TaskNotFound, TaskStoreError
from .task_feed import AsyncTaskSubscription, SubscriptionClosed, TaskSubscription
from .task_models import Task, TaskSnapshot
from .task_store import TaskStore, close_all_task_stores, open_task_store

__all__ = [
    "AsyncTaskSubscription",
    "StorageFailure",
    "SubscriptionClosed",
    "Task",
    "TaskNotFound",
    "TaskSnapshot",
    "TaskStore",
    "TaskStoreError",
    "TaskSubscription",
    "close_all_task_stores",
    "open_task_store",
]
