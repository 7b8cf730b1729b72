# src/tasklane/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..storage.persistence import SnapshotPersistence
from ..tasks.categories import CategoryRegistry
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # Settings object (config.Settings in production, SimpleNamespace in tests).
    settings: Any

    store: TaskStore
    persistence: SnapshotPersistence

    # Serializes console commands against background work that touches state.
    lock: threading.RLock = field(default_factory=threading.RLock)

    # Set when the last flush failed; cleared by the next successful one.
    unsaved_changes: bool = False

    @property
    def registry(self) -> CategoryRegistry:
        return self.store.registry
