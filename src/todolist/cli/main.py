# src/todolist/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState (the single TaskStore), then runs the
console REPL in the main thread and a snapshot watcher in the background.
"""

from __future__ import annotations

import logging
import signal
import sys

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import SnapshotWatcher, run_console_loop
from ..logging_setup import setup_logging
from ..tasks.errors import StorageFailure
from ..tasks.task_store import close_all_task_stores

logger = logging.getLogger(__name__)


def _shutdown(watcher: SnapshotWatcher | None) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        close_all_task_stores()
    except Exception:
        logger.exception("Failed to close task stores.")

    if watcher is not None:
        watcher.stop()
        watcher.join(timeout=5.0)


def main() -> None:
    settings = get_settings()

    console_level = getattr(logging, settings.log_level, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    try:
        state = create_initial_state(settings=settings)
    except StorageFailure as e:
        logger.critical("Cannot open task database: %s", e)
        sys.exit(1)

    watcher: SnapshotWatcher | None = None
    if settings.watch_enabled:
        watcher = SnapshotWatcher(state).start()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        raise KeyboardInterrupt

    try:
        signal.signal(signal.SIGTERM, _handle_signal)
    except (ValueError, OSError):
        # Not available on every platform / outside the main thread.
        pass

    try:
        run_console_loop(state)
    finally:
        _shutdown(watcher)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
