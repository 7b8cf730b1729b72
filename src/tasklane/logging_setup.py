# src/tasklane/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from pathlib import Path

# Loggers that would print between REPL prompts on every command or scan.
QUIET_LOGGERS: tuple[str, ...] = (
    "tasklane.tasks.task_store",
    "tasklane.tasks.categories",
    "tasklane.tasks.task_scheduler",
    "tasklane.storage.",
)

# Background workers started by tasklane itself (see reminder_runner / persistence).
QUIET_THREADS: frozenset[str] = frozenset({"tasklane-reminders"})
QUIET_THREAD_PREFIXES: tuple[str, ...] = ("tasklane-save",)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the interactive console readable:
    - anything logged from the reminder thread or the save worker only at WARNING+
      (it would interleave with what the user is typing)
    - per-operation store/scheduler/persistence chatter only at WARNING+
    - other tasklane logs pass (the handler level still applies)
    - Python warnings and third-party loggers only at ERROR+

    The file handler is not filtered.
    """

    def __init__(
        self,
        quiet_loggers: Iterable[str] = QUIET_LOGGERS,
        quiet_threads: Iterable[str] = QUIET_THREADS,
    ) -> None:
        super().__init__()
        self._quiet_loggers = tuple(quiet_loggers)
        self._quiet_threads = frozenset(quiet_threads)

    def _from_background(self, record: logging.LogRecord) -> bool:
        thread = record.threadName or ""
        return thread in self._quiet_threads or thread.startswith(QUIET_THREAD_PREFIXES)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if not name.startswith("tasklane."):
            return record.levelno >= logging.ERROR

        if self._from_background(record) or name.startswith(self._quiet_loggers):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/tasklane",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Configure logging with:
    - Console handler: readable + filtered for interactive use
    - File handler: full logs (including the background threads) for debugging

    Call this ONCE, very early (before first logger.info). Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "tasklane.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    logging.captureWarnings(True)
    return log_file
