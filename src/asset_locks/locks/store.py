"""Durable storage of lock records in the shared coordination directory.

Design principles:
- One JSON file per locked resource, named by the path codec.
- File existence is the lock; there is no index to keep consistent.
- Writes go through a temp file and ``os.replace`` so a concurrent reader
  sees the old record or the new one, never a partial file.
- Unreadable records fail open: they read as absent, are logged, and are
  reported through ``pop_diagnostics()``.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import threading
import uuid
from collections import deque
from pathlib import Path

from asset_locks.core.constants import LOCK_FILE_SUFFIX
from asset_locks.locks import codec
from asset_locks.locks.models import LockDiagnostic, LockErrorKind, LockRecord

_MAX_PENDING_DIAGNOSTICS = 50


class LockRecordStore:
    """Reads and writes lock records under ``locks_dir``."""

    def __init__(self, locks_dir: Path, logger: logging.Logger | None = None):
        self.locks_dir = Path(locks_dir)
        self.logger = logger or logging.getLogger(__name__)
        self._diagnostics: deque[LockDiagnostic] = deque(maxlen=_MAX_PENDING_DIAGNOSTICS)
        self._diagnostics_lock = threading.Lock()

    def ensure_initialized(self) -> None:
        self.locks_dir.mkdir(parents=True, exist_ok=True)

    def lock_file_path(self, resource_path: str) -> Path:
        file_name = codec.lock_file_name(resource_path)
        if file_name is None:
            raise ValueError("resource path must be a non-empty string")
        return self.locks_dir / file_name

    def write(self, record: LockRecord) -> Path:
        """Persist a record atomically and return the lock file path.

        Raises:
            OSError: the record could not be written
        """
        target = self.lock_file_path(record.resource_path)
        self.ensure_initialized()
        tmp_path = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(record.to_dict(), f, indent=2, ensure_ascii=False)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, target)
        except OSError:
            with contextlib.suppress(OSError):
                tmp_path.unlink()
            raise
        return target

    def read(self, resource_path: str) -> LockRecord | None:
        """Read the record for a resource; absence is not an error."""
        if not resource_path:
            return None
        return self._read_file(self.lock_file_path(codec.normalize(resource_path)))

    def delete(self, resource_path: str) -> bool:
        """Remove the record if present. Returns True when a file was removed.

        Raises:
            OSError: the file exists but could not be removed
        """
        try:
            self.lock_file_path(codec.normalize(resource_path)).unlink()
            return True
        except FileNotFoundError:
            return False

    def delete_file(self, lock_file: Path) -> bool:
        try:
            lock_file.unlink()
            return True
        except FileNotFoundError:
            return False

    def list_all(self) -> list[LockRecord]:
        """Scan the directory; malformed records are skipped with a warning."""
        return [record for _, record in self.iter_files()]

    def iter_files(self) -> list[tuple[Path, LockRecord]]:
        """Pairs of (lock file, record) for every readable record on disk."""
        if not self.locks_dir.is_dir():
            return []
        pairs = []
        for lock_file in sorted(self.locks_dir.glob(f"*{LOCK_FILE_SUFFIX}")):
            record = self._read_file(lock_file)
            if record is not None:
                pairs.append((lock_file, record))
        return pairs

    def pop_diagnostics(self) -> list[LockDiagnostic]:
        """Return and clear diagnostics collected since the last call."""
        with self._diagnostics_lock:
            pending = list(self._diagnostics)
            self._diagnostics.clear()
        return pending

    def _read_file(self, lock_file: Path) -> LockRecord | None:
        try:
            with open(lock_file, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            self._report_corrupt(lock_file, f"unreadable lock record: {e}")
            return None

        record = LockRecord.from_dict(data) if isinstance(data, dict) else None
        if record is None:
            self._report_corrupt(lock_file, "lock record is missing required fields")
            return None

        expected_name = codec.lock_file_name(record.resource_path)
        if expected_name != lock_file.name:
            self._report_corrupt(lock_file, f"lock record names '{record.resource_path}', not this file")
            return None
        return record

    def _report_corrupt(self, lock_file: Path, detail: str) -> None:
        resource_path = codec.path_from_lock_file_name(lock_file.name)
        self.logger.warning("Skipping lock file %s: %s", lock_file, detail)
        with self._diagnostics_lock:
            self._diagnostics.append(
                LockDiagnostic(kind=LockErrorKind.CORRUPT_RECORD, message=detail, resource_path=resource_path)
            )
