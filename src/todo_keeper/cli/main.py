# src/todo_keeper/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState (store, reminder scheduler, task service),
then runs the console in the main thread until /exit, EOF or a signal.
"""

from __future__ import annotations

import logging
import signal

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.service.shutdown()
    except Exception:
        logger.exception("Task service shutdown failed.")

    # SqliteTaskStore uses short-lived connections per call; close() is a no-op hook.
    try:
        state.store.close()
    except Exception:
        logger.debug("Store close failed.", exc_info=True)


def main() -> None:
    settings = get_settings()

    setup_logging(log_dir=settings.data_dir, console_level=settings.log_level)

    logger.info("Starting %s...", settings.app_name)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        raise KeyboardInterrupt

    try:
        signal.signal(signal.SIGTERM, _handle_signal)
    except (ValueError, OSError, AttributeError):
        # Not on the main thread, or the platform lacks SIGTERM.
        pass

    try:
        run_console_loop(state)
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
