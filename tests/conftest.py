# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tasklane.core.state import AppState
from tasklane.storage.persistence import SnapshotPersistence
from tasklane.tasks.categories import CategoryRegistry
from tasklane.tasks.task_store import TaskStore

from .fakes import FakeClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    data_dir = tmp_path / "data"
    return SimpleNamespace(
        app_name="tasklane-test",
        log_level="DEBUG",
        owner="tester",
        data_dir=data_dir,
        tasks_path=data_dir / "tasks.json",
        categories_path=data_dir / "categories.json",
        backup_dir=data_dir / "backups",
        backup_retention_days=30,
        reminders_enabled=False,
        reminder_interval_seconds=0.01,
        due_soon_hours=24.0,
        validation_policy="fail_fast",
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock("2024-01-15T10:00:00Z")


@pytest.fixture()
def store(clock: FakeClock) -> TaskStore:
    return TaskStore(registry=CategoryRegistry(), clock=clock, owner="tester")


@pytest.fixture()
def persistence(settings: SimpleNamespace, clock: FakeClock) -> SnapshotPersistence:
    return SnapshotPersistence(
        settings.tasks_path,
        settings.categories_path,
        settings.backup_dir,
        retention_days=settings.backup_retention_days,
        clock=clock,
    )


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore, persistence: SnapshotPersistence) -> AppState:
    """
    AppState wired with the fake clock.

    NOTE: persistence writes real files under tmp_path because atomicity and
    recovery are part of what we want to test.
    """
    return AppState(settings=settings, store=store, persistence=persistence)
