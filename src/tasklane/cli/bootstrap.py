# src/tasklane/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local data directories exist,
- wires the category registry, task store and persistence into AppState,
- loads the last saved snapshot (falling back to backups when needed).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..storage.persistence import SnapshotPersistence
from ..tasks.categories import CategoryRegistry
from ..tasks.task_api import flush_or_warn, load_from_disk
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_path.parent.mkdir(parents=True, exist_ok=True)
    settings.categories_path.parent.mkdir(parents=True, exist_ok=True)
    settings.backup_dir.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create an empty AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(
        registry=CategoryRegistry(),
        owner=getattr(settings, "owner", None),
        validation_policy=getattr(settings, "validation_policy", "fail_fast"),
    )
    persistence = SnapshotPersistence(
        settings.tasks_path,
        settings.categories_path,
        settings.backup_dir,
        retention_days=int(getattr(settings, "backup_retention_days", 30)),
    )
    return AppState(settings=settings, store=store, persistence=persistence)


def open_state(*, settings=None) -> tuple[AppState, list[str]]:
    """
    Create the state and load saved data.

    Returns (state, notices): notices are user-facing messages, e.g. that data
    was restored from a backup. PersistenceError propagates when nothing
    readable exists on disk.
    """
    state = create_initial_state(settings=settings)
    notices: list[str] = []

    notice = load_from_disk(state)
    if notice:
        notices.append(notice)
        warning = flush_or_warn(state)
        if warning:
            notices.append(warning)

    logger.info("State ready: %d tasks (revision %d)", state.store.count(), state.store.revision)
    return state, notices
