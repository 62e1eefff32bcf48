# src/todolist/connectors/console_connector.py

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..tasks.task_api import summarize
from ..tasks.task_feed import TaskSubscription
from ..tasks.task_models import TaskSnapshot

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class SnapshotWatcher:
    """
    Background consumer of TaskStore.observe_all().

    Calls on_change(snapshot) for every snapshot after the initial one,
    holding state.lock so its output never interleaves with a console command.
    The thread ends when the store is closed or stop() is called.
    """

    def __init__(
        self,
        state: AppState,
        on_change: Callable[[TaskSnapshot], None] | None = None,
    ) -> None:
        self._state = state
        self._on_change = on_change or self._log_change
        self._subscription: TaskSubscription | None = None
        self._thread = threading.Thread(target=self._run, name="todolist-watcher", daemon=True)
        self.changes_seen = 0

    @staticmethod
    def _log_change(snapshot: TaskSnapshot) -> None:
        logger.info("Tasks changed: %s", summarize(snapshot))

    def start(self) -> SnapshotWatcher:
        self._subscription = self._state.task_store.observe_all()
        # Consume the current state here; the thread only reports changes.
        self._subscription.get()
        self._thread.start()
        return self

    def _run(self) -> None:
        sub = self._subscription
        if sub is None:
            return
        for snapshot in sub:
            self.changes_seen += 1
            try:
                with self._state.lock:
                    self._on_change(snapshot)
            except Exception:
                logger.exception("Snapshot watcher callback failed.")
        logger.debug("Snapshot watcher finished.")

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.close()

    def join(self, timeout: float | None = None) -> None:
        if self._thread.is_alive():
            self._thread.join(timeout=timeout)


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Type /help for commands, /list to see tasks, /exit to quit.\n")

    def emit(text: str) -> None:
        _print_ts(text)

    while True:
        try:
            user_input = input(">>> ").strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        # Plain text is shorthand for /add.
        line = user_input if user_input.startswith("/") else f"/add {user_input}"

        try:
            with state.lock:
                response = command_registry.handle(state, line, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is not None:
            _print_ts(response)
