# tests/test_logging_setup.py

from __future__ import annotations

import logging
from pathlib import Path

from tasklane.logging_setup import _ConsoleNoiseFilter, setup_logging


def _record(name: str, level: int, thread: str = "MainThread") -> logging.LogRecord:
    record = logging.LogRecord(name, level, __file__, 1, "msg", None, None)
    record.threadName = thread
    return record


def test_console_filter_levels() -> None:
    f = _ConsoleNoiseFilter()

    assert f.filter(_record("tasklane.cli.main", logging.INFO))
    assert not f.filter(_record("tasklane.tasks.task_store", logging.INFO))
    assert f.filter(_record("tasklane.tasks.task_store", logging.WARNING))
    assert not f.filter(_record("tasklane.storage.persistence", logging.INFO))
    assert not f.filter(_record("asyncio", logging.WARNING))
    assert f.filter(_record("asyncio", logging.ERROR))
    assert not f.filter(_record("py.warnings", logging.WARNING))


def test_console_filter_quiets_background_threads() -> None:
    f = _ConsoleNoiseFilter()

    assert not f.filter(_record("tasklane.connectors.reminder_runner", logging.INFO, "tasklane-reminders"))
    assert f.filter(_record("tasklane.connectors.reminder_runner", logging.WARNING, "tasklane-reminders"))
    assert not f.filter(_record("tasklane.tasks.task_api", logging.INFO, "tasklane-save_0"))
    assert f.filter(_record("tasklane.connectors.reminder_runner", logging.INFO))


def test_setup_logging_writes_file(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        log_file = setup_logging(log_dir=tmp_path / "logs", console_level=logging.WARNING)
        logging.getLogger("tasklane.tasks.task_store").info("store chatter")
        for h in root.handlers:
            h.flush()
        assert log_file == tmp_path / "logs" / "tasklane.log"
        assert "store chatter" in log_file.read_text("utf-8")
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        logging.captureWarnings(False)
