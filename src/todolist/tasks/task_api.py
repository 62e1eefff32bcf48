# src/todolist/tasks/task_api.py

from __future__ import annotations

import logging

from ..core.state import AppState
from .task_models import Task, TaskSnapshot

logger = logging.getLogger(__name__)


def create_task(state: AppState, description: str) -> Task:
    """Create-screen helper: store a new, not yet completed task."""
    task = state.task_store.upsert(Task.new(description))
    logger.info("Task created id=%s", task.id)
    return task


def edit_task(state: AppState, task_id: int, description: str) -> Task:
    """Edit-screen helper: replace the description, keep the completion flag."""
    current = state.task_store.get_task(task_id)
    return state.task_store.upsert(current.renamed(description))


def set_completed(state: AppState, task_id: int, completed: bool) -> Task:
    current = state.task_store.get_task(task_id)
    if current.is_completed == completed:
        return current
    return state.task_store.upsert(current.completed(completed))


def toggle_task(state: AppState, task_id: int) -> Task:
    current = state.task_store.get_task(task_id)
    return state.task_store.upsert(current.completed(not current.is_completed))


def remove_task(state: AppState, task_id: int) -> bool:
    """Returns False when there was nothing to remove."""
    removed = state.task_store.delete_by_id(task_id)
    if removed:
        logger.info("Task removed id=%s", task_id)
    return removed


def summarize(snapshot: TaskSnapshot) -> str:
    total = len(snapshot)
    done = sum(1 for t in snapshot if t.is_completed)
    noun = "task" if total == 1 else "tasks"
    return f"{total} {noun}, {done} done"


def format_task(task: Task) -> str:
    mark = "x" if task.is_completed else " "
    return f"[{mark}] #{task.id} {task.description}"
