# src/todolist/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by consumers of the task store.

Consumers depend on this Protocol instead of the SQLite implementation,
which keeps the storage swappable and makes testing easier.
"""

from typing import Protocol

from ..tasks.task_feed import AsyncTaskSubscription, TaskSubscription
from ..tasks.task_models import Task, TaskSnapshot


class TaskRepo(Protocol):
    # Core contract
    def upsert(self, task: Task) -> Task: ...
    def delete(self, task: Task) -> None: ...
    def observe_all(self) -> TaskSubscription: ...

    # Lookups
    def list_tasks(self) -> TaskSnapshot: ...
    def get_task(self, task_id: int) -> Task: ...
    def count_tasks(self) -> int: ...
    def delete_by_id(self, task_id: int) -> bool: ...

    # asyncio variants
    async def aupsert(self, task: Task) -> Task: ...
    async def adelete(self, task: Task) -> None: ...
    async def alist_tasks(self) -> TaskSnapshot: ...
    async def aobserve_all(self) -> AsyncTaskSubscription: ...

    def close(self) -> None: ...
