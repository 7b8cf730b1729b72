# src/tasklane/storage/persistence.py

"""
Durable storage for snapshots.

Layout:
    <tasks_path>               primary data file (tasks + meta)
    <categories_path>          category registry file
    <backup_dir>/tasks-<stamp>.json, categories-<stamp>.json

Guarantees:
- save() writes to a temp file in the same directory, fsyncs it and only then
  renames it over the canonical file, so a crash leaves either the old or the
  new complete file behind
- before each save the previous canonical files are copied into the backup
  directory; backups older than the retention window are pruned
- the task file is the commit point: categories are written first, and a
  category file whose revision differs from the task file (crash between the
  two renames) is replaced by the matching backup or rebuilt from the tasks
- load() falls back to the newest readable backup when the canonical file is
  corrupted and reports it with RecoveredFromBackupError
- save()/backup() are serialized by one lock; save_async() runs on a single
  worker thread
"""

from __future__ import annotations

import contextlib
import logging
import os
import re
import threading
import uuid
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

from ..core.errors import PersistenceError, RecoveredFromBackupError
from ..tasks.task_models import Category
from ..tasks.time_policy import ensure_utc, utcnow
from .snapshot import (
    Snapshot,
    SnapshotDecodeError,
    StaleCategoriesError,
    categories_from_tasks,
    decode_categories,
    decode_snapshot,
    encode_categories,
    encode_tasks,
)

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30
_STAMP_FMT = "%Y%m%dT%H%M%S%fZ"
_BACKUP_RE = re.compile(r"^tasks-(?P<stamp>\d{8}T\d{12}Z)(?:-(?P<seq>\d+))?\.json$")


@dataclass(slots=True, frozen=True)
class BackupHandle:
    created_at: datetime
    tasks_path: Path
    categories_path: Path

    @property
    def name(self) -> str:
        return self.tasks_path.name


def _fsync_dir(path: Path) -> None:
    # Not supported on every platform (e.g. Windows).
    with contextlib.suppress(OSError):
        fd = os.open(str(path), os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write-to-temp, flush, fsync, rename. Raises OSError."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
    try:
        with open(tmp, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise
    _fsync_dir(path.parent)


class SnapshotPersistence:
    def __init__(
        self,
        tasks_path: str | Path,
        categories_path: str | Path,
        backup_dir: str | Path,
        *,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.tasks_path = Path(tasks_path)
        self.categories_path = Path(categories_path)
        self.backup_dir = Path(backup_dir)
        self.retention = timedelta(days=max(0, int(retention_days)))
        self._clock = clock
        self._lock = threading.RLock()
        self._executor: ThreadPoolExecutor | None = None

    def close(self) -> None:
        """Wait for queued async saves, then stop the worker."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # ---- low-level helpers ----

    @staticmethod
    def _read_optional(path: Path) -> bytes | None:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def _stamp(self) -> str:
        return ensure_utc(self._clock()).strftime(_STAMP_FMT)

    def _write_backup(self, tasks_data: bytes, categories_data: bytes | None) -> BackupHandle:
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        stamp = self._stamp()
        suffix = ""
        seq = 0
        while (self.backup_dir / f"tasks-{stamp}{suffix}.json").exists():
            seq += 1
            suffix = f"-{seq}"
        tasks_file = self.backup_dir / f"tasks-{stamp}{suffix}.json"
        cats_file = self.backup_dir / f"categories-{stamp}{suffix}.json"
        if categories_data is not None:
            atomic_write_bytes(cats_file, categories_data)
        atomic_write_bytes(tasks_file, tasks_data)
        created = datetime.strptime(stamp, _STAMP_FMT).replace(tzinfo=timezone.utc)
        logger.debug("Backup written %s", tasks_file.name)
        return BackupHandle(created_at=created, tasks_path=tasks_file, categories_path=cats_file)

    # ---- public API ----

    def load(self) -> Snapshot | None:
        """
        Return the canonical snapshot, or None on first run.

        Raises RecoveredFromBackupError (carrying the recovered snapshot) when the
        canonical file is unreadable but a backup is, PersistenceError otherwise.
        """
        with self._lock:
            try:
                tasks_data = self._read_optional(self.tasks_path)
                if tasks_data is None:
                    logger.info("No data file at %s (first run)", self.tasks_path)
                    return None
                categories_data = self._read_optional(self.categories_path)
                snapshot = decode_snapshot(tasks_data)
                if categories_data is not None:
                    snapshot = replace(
                        snapshot, categories=self._matching_categories(snapshot, categories_data)
                    )
            except (OSError, SnapshotDecodeError) as exc:
                logger.warning("Data file %s is unreadable: %s", self.tasks_path, exc)
                recovered = self._load_latest_backup()
                if recovered is None:
                    raise PersistenceError(
                        f"cannot read {self.tasks_path} and no valid backup exists"
                    ) from exc
                snap, handle = recovered
                logger.warning("Recovered %d tasks from backup %s", snap.task_count, handle.name)
                raise RecoveredFromBackupError(snap, handle.tasks_path, exc) from exc

            logger.info(
                "Loaded snapshot tasks=%d revision=%d from %s",
                snapshot.task_count,
                snapshot.revision,
                self.tasks_path,
            )
            return snapshot

    def save(self, snapshot: Snapshot) -> None:
        tasks_data = encode_tasks(snapshot)
        categories_data = encode_categories(snapshot)
        with self._lock:
            try:
                old_tasks = self._read_optional(self.tasks_path)
                old_categories = self._read_optional(self.categories_path)
                if old_tasks == tasks_data and old_categories == categories_data:
                    logger.debug("Snapshot revision=%d unchanged; skip save", snapshot.revision)
                    return
                if old_tasks is not None:
                    self._write_backup(old_tasks, old_categories)

                atomic_write_bytes(self.categories_path, categories_data)
                atomic_write_bytes(self.tasks_path, tasks_data)
            except OSError as exc:
                logger.error("Saving snapshot revision=%d failed: %s", snapshot.revision, exc)
                raise PersistenceError(f"could not save to {self.tasks_path}: {exc}") from exc

            logger.info(
                "Saved snapshot tasks=%d revision=%d to %s",
                snapshot.task_count,
                snapshot.revision,
                self.tasks_path,
            )
            self._prune_quietly()

    def save_async(self, snapshot: Snapshot) -> Future[None]:
        """Queue a save on the single writer thread; the Future is the completion signal."""
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tasklane-save")
            return self._executor.submit(self.save, snapshot)

    def backup(self, snapshot: Snapshot) -> BackupHandle:
        with self._lock:
            try:
                return self._write_backup(encode_tasks(snapshot), encode_categories(snapshot))
            except OSError as exc:
                raise PersistenceError(f"could not write backup in {self.backup_dir}: {exc}") from exc

    def list_backups(self) -> list[BackupHandle]:
        """Backups, newest first."""
        if not self.backup_dir.is_dir():
            return []
        found: list[tuple[datetime, int, BackupHandle]] = []
        for path in self.backup_dir.iterdir():
            m = _BACKUP_RE.match(path.name)
            if not m:
                continue
            created = datetime.strptime(m["stamp"], _STAMP_FMT).replace(tzinfo=timezone.utc)
            seq = int(m["seq"] or 0)
            cats = path.with_name("categories-" + path.name[len("tasks-"):])
            found.append((created, seq, BackupHandle(created, path, cats)))
        found.sort(key=lambda it: (it[0], it[1]), reverse=True)
        return [h for _, _, h in found]

    def prune_backups(self, now: datetime | None = None) -> int:
        """Delete backups older than the retention window. Returns how many were removed."""
        cutoff = ensure_utc(now or self._clock()) - self.retention
        removed = 0
        with self._lock:
            for handle in self.list_backups():
                if handle.created_at >= cutoff:
                    continue
                handle.tasks_path.unlink(missing_ok=True)
                handle.categories_path.unlink(missing_ok=True)
                removed += 1
        if removed:
            logger.info("Pruned %d expired backups from %s", removed, self.backup_dir)
        return removed

    def _prune_quietly(self) -> None:
        try:
            self.prune_backups()
        except OSError:
            logger.exception("Backup pruning failed in %s", self.backup_dir)

    def _matching_categories(self, snapshot: Snapshot, categories_data: bytes) -> tuple[Category, ...]:
        try:
            return decode_categories(categories_data, revision=snapshot.revision)
        except StaleCategoriesError as exc:
            logger.warning("%s: %s", self.categories_path.name, exc)
        for handle in self.list_backups():
            try:
                return decode_categories(handle.categories_path.read_bytes(), revision=snapshot.revision)
            except (OSError, SnapshotDecodeError):
                continue
        logger.warning("No backup matches revision=%d; rebuilding categories from tasks", snapshot.revision)
        return categories_from_tasks(snapshot.tasks)

    def _load_latest_backup(self) -> tuple[Snapshot, BackupHandle] | None:
        for handle in self.list_backups():
            try:
                tasks_data = handle.tasks_path.read_bytes()
                categories_data = self._read_optional(handle.categories_path)
                try:
                    return decode_snapshot(tasks_data, categories_data), handle
                except StaleCategoriesError:
                    snap = decode_snapshot(tasks_data)
                    return replace(snap, categories=categories_from_tasks(snap.tasks)), handle
            except (OSError, SnapshotDecodeError) as exc:
                logger.warning("Skipping unreadable backup %s: %s", handle.name, exc)
        return None
