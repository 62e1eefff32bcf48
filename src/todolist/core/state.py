# src/todolist/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from .ports import TaskRepo


@dataclass
class AppState:
    # Settings object (config.Settings or a test stand-in).
    settings: object

    task_store: TaskRepo

    # Held by the console while it runs a command and by SnapshotWatcher while it
    # reports a change, so the two never write to the terminal at once.
    lock: threading.Lock = field(default_factory=threading.Lock)
