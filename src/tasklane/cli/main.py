# src/tasklane/cli/main.py

"""
CLI entrypoint.

Two modes:
- `tasklane`                    -> interactive console, reminders in a background thread
- `tasklane add "Title" p=1 ...` -> run one command and exit (0 on success, non-zero on error)
"""

from __future__ import annotations

import logging
import shlex
import signal
import sys

from ..cli.bootstrap import open_state
from ..config import get_settings
from ..connectors.console_connector import ConsoleReminderSink, run_console_loop
from ..connectors.reminder_runner import start_reminders_in_background
from ..core.errors import PersistenceError, TaskError
from ..core.state import AppState
from ..logging_setup import setup_logging
from .commands import EXIT_INVALID, EXIT_OK, EXIT_PERSISTENCE, describe_error, exit_code_for
from .commands import registry as command_registry

logger = logging.getLogger(__name__)


def _shutdown(state: AppState) -> None:
    """Best-effort shutdown: wait for pending saves."""
    try:
        state.persistence.close()
    except Exception:
        logger.exception("Persistence shutdown failed.")
    if state.unsaved_changes:
        logger.warning("Exiting with changes that were not saved to disk.")


def run_once(state: AppState, argv: list[str]) -> int:
    """Run a single command given as argv (without the leading slash)."""
    line = "/" + shlex.join(argv)
    try:
        reply = command_registry.handle(state, line)
    except TaskError as exc:
        print(describe_error(exc), file=sys.stderr)
        return exit_code_for(exc)

    if reply is None or reply.startswith(("Unknown command", "Could not parse", "Empty command")):
        print(reply or "No command given.", file=sys.stderr)
        return EXIT_INVALID
    print(reply)
    return EXIT_PERSISTENCE if state.unsaved_changes else EXIT_OK


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    if argv is None:
        argv = sys.argv[1:]

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    if argv:
        # One-shot output should stay clean unless something is wrong.
        console_level = max(console_level, logging.WARNING)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    try:
        state, notices = open_state(settings=settings)
    except PersistenceError as exc:
        logger.error("Cannot load task data: %s", exc)
        print(f"Cannot load task data: {exc}", file=sys.stderr)
        return EXIT_PERSISTENCE

    for notice in notices:
        print(notice, file=sys.stderr)

    if argv:
        try:
            return run_once(state, argv)
        finally:
            _shutdown(state)

    logger.info("Starting %s...", getattr(settings, "app_name", "tasklane"))

    sink = ConsoleReminderSink()
    runner = start_reminders_in_background(state, sink)

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        raise KeyboardInterrupt

    try:
        signal.signal(signal.SIGTERM, _handle_signal)
    except (ValueError, OSError):
        # Not available on this platform or not in the main thread.
        pass

    try:
        run_console_loop(state, sink)
    finally:
        if runner is not None:
            runner.stop()
            runner.join(timeout=10.0)
        _shutdown(state)
        logger.info("Bye.")
    return EXIT_OK


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
