# src/tasklane/tasks/task_api.py

from __future__ import annotations

import logging

from ..core.errors import PersistenceError, RecoveredFromBackupError
from ..core.state import AppState
from ..storage.snapshot import Snapshot

logger = logging.getLogger(__name__)


def flush(state: AppState) -> Snapshot:
    """
    Capture the store and write it to disk synchronously.

    A PersistenceError does not roll back the in-memory change; the state is
    flagged as having unsaved changes and the error propagates.
    """
    snapshot = Snapshot.capture(state.store)
    try:
        state.persistence.save(snapshot)
    except PersistenceError:
        state.unsaved_changes = True
        raise
    state.unsaved_changes = False
    return snapshot


def flush_or_warn(state: AppState) -> str | None:
    """Flush; return a user-facing warning instead of raising on I/O failure."""
    try:
        flush(state)
    except PersistenceError as exc:
        logger.warning("Change kept in memory but not saved: %s", exc)
        return f"Warning: change is not saved to disk yet ({exc}). Retry with /save."
    return None


def load_from_disk(state: AppState) -> str | None:
    """
    Populate the store from disk.

    Returns a user-facing notice when data had to be restored from a backup.
    PersistenceError (no readable data at all) propagates.
    """
    try:
        snapshot = state.persistence.load()
    except RecoveredFromBackupError as exc:
        exc.snapshot.apply_to(state.store)
        # Rewrite the canonical file from the recovered data.
        state.unsaved_changes = True
        return (
            f"Notice: the data file was damaged; restored {exc.snapshot.task_count} tasks "
            f"from backup {exc.backup_path.name}."
        )
    if snapshot is not None:
        snapshot.apply_to(state.store)
    return None
