# src/tasklane/tasks/categories.py

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from .task_models import Category, CategoryKind

logger = logging.getLogger(__name__)

PREDEFINED_CATEGORIES: tuple[str, ...] = (
    "work",
    "personal",
    "study",
    "health",
    "finance",
    "shopping",
    "home",
    "other",
)

DEFAULT_CATEGORY = "other"
MAX_CATEGORY_LENGTH = 50


class CategoryRegistry:
    """
    Predefined + user-defined categories.

    Lookups are case-insensitive; the first spelling registered wins and is
    what gets stored on tasks. Custom categories are only ever appended.
    """

    def __init__(self, custom: Iterable[str] = ()) -> None:
        self._lock = threading.RLock()
        self._by_key: dict[str, Category] = {}
        for name in PREDEFINED_CATEGORIES:
            cat = Category(name, CategoryKind.PREDEFINED)
            self._by_key[cat.key] = cat
        for name in custom:
            self.ensure(name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.resolve(name) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_key)

    def resolve(self, name: str) -> Category | None:
        key = (name or "").strip().casefold()
        with self._lock:
            return self._by_key.get(key)

    def candidate(self, name: str) -> Category:
        """Resolve, or describe the custom category `name` would become (not registered)."""
        clean = (name or "").strip()
        return self.resolve(clean) or Category(clean, CategoryKind.CUSTOM)

    def ensure(self, name: str) -> Category:
        """Return the registered category, appending a custom one on first use."""
        clean = (name or "").strip()
        if not clean:
            raise ValueError("category name is required")
        with self._lock:
            existing = self._by_key.get(clean.casefold())
            if existing is not None:
                return existing
            cat = Category(clean, CategoryKind.CUSTOM)
            self._by_key[cat.key] = cat
        logger.info("Registered custom category %r", clean)
        return cat

    def all(self) -> list[Category]:
        with self._lock:
            return list(self._by_key.values())

    def custom(self) -> list[Category]:
        return [c for c in self.all() if not c.is_predefined]

    def predefined(self) -> list[Category]:
        return [c for c in self.all() if c.is_predefined]
