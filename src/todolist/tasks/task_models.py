# src/todolist/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, replace

# Sentinel id for a task the store has not saved yet.
UNSAVED_ID = 0


@dataclass(frozen=True, slots=True)
class Task:
    """
    A single to-do item.

    Records are immutable; the only way to change one is a full-record
    replace through TaskStore.upsert().
    """

    id: int
    description: str
    is_completed: bool = False

    @classmethod
    def new(cls, description: str, *, is_completed: bool = False) -> Task:
        return cls(id=UNSAVED_ID, description=description, is_completed=is_completed)

    @property
    def is_saved(self) -> bool:
        return self.id > UNSAVED_ID

    def completed(self, flag: bool = True) -> Task:
        return replace(self, is_completed=bool(flag))

    def renamed(self, description: str) -> Task:
        return replace(self, description=description)


# Complete point-in-time listing, ordered by id.
TaskSnapshot = tuple[Task, ...]
