# src/tasklane/connectors/console_connector.py

from __future__ import annotations

import logging
from datetime import datetime

from ..cli.commands import describe_error
from ..cli.commands import registry as command_registry
from ..core.errors import TaskError
from ..core.state import AppState
from ..tasks.task_scheduler import ReminderEvent

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class ConsoleReminderSink:
    """Prints reminders between prompts. Runs on the reminder thread."""

    def __init__(self) -> None:
        self.ready = True

    async def notify(self, event: ReminderEvent) -> None:
        if not self.ready:
            raise RuntimeError("console is not accepting reminders")
        _print_ts(f"[REMINDER] {event.text}")


def run_command_line(state: AppState, line: str) -> str | None:
    """Run one console line; engine errors become user-facing messages."""
    try:
        with state.lock:
            return command_registry.handle(state, line)
    except TaskError as exc:
        logger.debug("Command failed: %s", exc)
        return describe_error(exc)
    except Exception:
        logger.exception("Command handler crashed.")
        return "Internal error while handling a command."


def run_console_loop(state: AppState, sink: ConsoleReminderSink | None = None) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Manage your tasks. Use /help for commands. Use /exit to quit.\n")

    while True:
        try:
            user_input = input("tasklane> ").strip()
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

        if not user_input.startswith("/"):
            _print_ts("Commands start with '/'. Try /help or /add <title>.")
            continue

        reply = run_command_line(state, user_input)
        if reply is not None:
            _print_ts(reply)

    if sink is not None:
        sink.ready = False
    logger.info("Console connector finished.")
