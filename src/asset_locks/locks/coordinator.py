"""Lock coordinator: acquire, release, query and clean up advisory locks.

Correctness rests on file existence in a directory every teammate shares
through git. There is no arbiter: two coordinators that have not synced can
both see a path as free and both lock it. The coordinator optimizes for the
common case where teammates pull before they start editing.
"""

from __future__ import annotations

import logging
import socket
import threading
import time
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from pathlib import Path

from asset_locks.core.constants import (
    COORDINATION_DIRNAME,
    DEFAULT_LEASE_HOURS,
    DEFAULT_LOCK_REASON,
    LOCK_SCHEMA_VERSION,
    REPOSITORY_RECHECK_SECONDS,
)
from asset_locks.core.exceptions import CoordinationUnavailableError
from asset_locks.core.logging import with_log_context
from asset_locks.git.vcs import VersionControl
from asset_locks.locks import codec
from asset_locks.locks.cache import LockCache
from asset_locks.locks.history import LockHistory
from asset_locks.locks.layout import CoordinationLayout
from asset_locks.locks.models import (
    LockDiagnostic,
    LockErrorKind,
    LockOwner,
    LockRecord,
    LockResult,
    utcnow,
)
from asset_locks.locks.policy import LockablePolicy
from asset_locks.locks.store import LockRecordStore

ResultCallback = Callable[[LockResult], None]


class LockCoordinator:
    """Backend-agnostic advisory lock coordinator for one session.

    Args:
        vcs: Identity and repository collaborator
        root: Fallback coordination root when ``vcs`` reports no repository root
        policy: Lockable-resource predicate (default extension allow-list)
        cache: Cache instance owned by this coordinator
        store: Record store (default: ``<root>/.coordination/locks``)
        history: History log (default: ``<root>/.coordination/history.json``)
        clock: Returns the current timezone-aware time
        lease: Lease stamped on new records
        machine_id: Host identifier written to records
    """

    def __init__(
        self,
        vcs: VersionControl,
        *,
        root: Path | None = None,
        policy: LockablePolicy | None = None,
        cache: LockCache | None = None,
        store: LockRecordStore | None = None,
        history: LockHistory | None = None,
        clock: Callable[[], datetime] = utcnow,
        monotonic: Callable[[], float] = time.monotonic,
        lease: timedelta = timedelta(hours=DEFAULT_LEASE_HOURS),
        machine_id: str | None = None,
        logger: logging.Logger | None = None,
    ):
        resolved_root = vcs.repository_root() or root
        if resolved_root is None:
            raise CoordinationUnavailableError()

        self.vcs = vcs
        self.layout = CoordinationLayout(Path(resolved_root))
        self.logger = logger or logging.getLogger(__name__)
        self.policy = policy or LockablePolicy()
        self.cache = cache if cache is not None else LockCache()
        self.store = store or LockRecordStore(self.layout.locks_dir)
        self.clock = clock
        self.history = history or LockHistory(self.layout.history_file, vcs, clock=clock)
        self.lease = lease
        self.machine_id = machine_id or socket.gethostname()

        self._monotonic = monotonic
        self._coordinated: bool | None = None
        self._coordinated_checked_at = 0.0
        self._state_lock = threading.RLock()

    @property
    def root(self) -> Path:
        return self.layout.root

    # ==================== PREDICATES ====================

    def is_coordinated(self) -> bool:
        """Whether the shared storage is reachable.

        The answer is reused for ``REPOSITORY_RECHECK_SECONDS`` so batches do
        not spawn one git process per path.
        """
        with self._state_lock:
            now = self._monotonic()
            if self._coordinated is None or now - self._coordinated_checked_at >= REPOSITORY_RECHECK_SECONDS:
                self._coordinated = bool(self.vcs.is_repository_present())
                self._coordinated_checked_at = now
            return self._coordinated

    def is_lockable(self, resource_path: str | None) -> bool:
        return self.policy.is_lockable(resource_path)

    def is_owned_by_me(self, record: LockRecord) -> bool:
        return record.is_owned_by(self.vcs.current_user_email())

    def is_locked(self, resource_path: str) -> bool:
        return self.query(resource_path) is not None

    def can_lock(self, resource_path: str) -> bool:
        if not self.is_lockable(resource_path):
            return False
        if not self.is_coordinated():
            return False
        return not self.is_locked(resource_path)

    def can_unlock(self, resource_path: str) -> bool:
        record = self.query(resource_path)
        return record is not None and self.is_owned_by_me(record)

    # ==================== QUERIES ====================

    def query(self, resource_path: str) -> LockRecord | None:
        """Cache first, then the store. Misses are never cached."""
        if not resource_path:
            return None
        path = codec.normalize(resource_path)
        cached = self.cache.get(path)
        if cached is not None:
            return cached
        record = self.store.read(path)
        if record is not None:
            self.cache.put(record)
        return record

    def list_all(self) -> list[LockRecord]:
        records = self.store.list_all()
        self.cache.replace_all(records)
        return records

    def list_mine(self) -> list[LockRecord]:
        return [record for record in self.list_all() if self.is_owned_by_me(record)]

    def list_others(self) -> list[LockRecord]:
        return [record for record in self.list_all() if not self.is_owned_by_me(record)]

    def pop_diagnostics(self) -> list[LockDiagnostic]:
        """Non-fatal store diagnostics gathered since the last call."""
        return self.store.pop_diagnostics()

    # ==================== MUTATIONS ====================

    def acquire(self, resource_path: str, reason: str | None = None) -> LockResult:
        """Lock a resource for the current user."""
        path = codec.normalize(resource_path or "")
        log = with_log_context(self.logger, resource=path)

        if not self.is_coordinated():
            return LockResult.fail(LockErrorKind.NOT_COORDINATED, "Not a Git repository.", path)

        if not self.is_lockable(path):
            return LockResult.fail(LockErrorKind.NOT_LOCKABLE, "This file type cannot be locked.", path)

        existing = self.query(path)
        diagnostics = self.store.pop_diagnostics()
        if existing is not None:
            if self.is_owned_by_me(existing):
                result = LockResult.fail(
                    LockErrorKind.ALREADY_LOCKED_BY_ME, "Already locked by you.", path, record=existing
                )
            else:
                result = LockResult.fail(
                    LockErrorKind.LOCKED_BY_OTHER,
                    f"Locked by '{existing.owner.name}'.",
                    path,
                    owner_name=existing.owner.name,
                    record=existing,
                )
            result.diagnostics.extend(diagnostics)
            return result

        now = self.clock()
        record = LockRecord(
            resource_path=path,
            owner=LockOwner(name=self.vcs.current_user_name(), email=self.vcs.current_user_email()),
            locked_at=now.isoformat(),
            expires_at=(now + self.lease).isoformat(),
            content_hash=self.vcs.content_hash(path) or "",
            reason=reason or DEFAULT_LOCK_REASON,
            branch=self.vcs.current_branch(),
            machine_id=self.machine_id,
            schema_version=LOCK_SCHEMA_VERSION,
        )

        try:
            lock_file = self.store.write(record)
        except OSError as e:
            log.error(f"Failed to write lock record for {path}: {e}")
            result = LockResult.fail(LockErrorKind.IO_FAILURE, "Failed to write lock record.", path)
            result.diagnostics.extend(diagnostics)
            return result

        self.cache.put(record)
        self.history.record_lock(path, record.reason)

        result = LockResult.ok("Locked successfully.", path, record)
        result.diagnostics.extend(diagnostics)
        if not self._stage_best_effort(lock_file, log):
            result.diagnostics.append(
                LockDiagnostic(
                    kind=LockErrorKind.STAGING_FAILED,
                    message=f"Could not stage {lock_file.name}; commit it manually.",
                    resource_path=path,
                )
            )
        log.info(f"Locked {path} ({record.reason})")
        return result

    def release(self, resource_path: str, force: bool = False) -> LockResult:
        """Unlock a resource. ``force`` overrides ownership without any role check."""
        path = codec.normalize(resource_path or "")
        log = with_log_context(self.logger, resource=path)

        # Ownership is checked against the record on disk, not a cached copy
        self.cache.remove(path)
        record = self.query(path)
        diagnostics = self.store.pop_diagnostics()
        if record is None:
            result = LockResult.fail(LockErrorKind.NOT_LOCKED, "This file is not locked.", path)
            result.diagnostics.extend(diagnostics)
            return result

        owned = self.is_owned_by_me(record)
        if not owned and not force:
            return LockResult.fail(
                LockErrorKind.NOT_OWNER,
                f"Locked by '{record.owner.name}'. Force unlock required.",
                path,
                owner_name=record.owner.name,
                record=record,
            )

        try:
            self.store.delete(path)
        except OSError as e:
            log.error(f"Failed to delete lock record for {path}: {e}")
            return LockResult.fail(LockErrorKind.IO_FAILURE, "Failed to delete lock record.", path, record=record)

        self.cache.remove(path)
        self.history.record_unlock(path, forced=force)
        self._unstage_best_effort(self.store.lock_file_path(path), log)

        if force and not owned:
            log.warning(f"Force-unlocked {path} held by {record.owner.name} <{record.owner.email}>")
        else:
            log.info(f"Unlocked {path}")
        result = LockResult.ok("Unlocked successfully.", path, record)
        result.diagnostics.extend(diagnostics)
        return result

    def cleanup_expired(self) -> int:
        """Delete every record past its lease and return how many were removed.

        Nothing calls this implicitly; schedulers and front ends invoke it.
        """
        now = self.clock()
        cleaned = 0
        for lock_file, record in self.store.iter_files():
            if not record.is_expired(now):
                continue
            try:
                self.store.delete_file(lock_file)
            except OSError as e:
                self.logger.warning(f"Failed to clean up expired lock {lock_file.name}: {e}")
                continue
            self._unstage_best_effort(lock_file, self.logger)
            cleaned += 1
            self.logger.info(f"Cleaned expired lock: {record.resource_path} ({record.owner.name})")

        if cleaned > 0:
            self.invalidate_cache()
        return cleaned

    # ==================== BATCHES ====================

    def lock_many(
        self,
        resource_paths: Iterable[str],
        reason: str | None = None,
        on_result: ResultCallback | None = None,
    ) -> list[LockResult]:
        """Acquire each path independently; one failure never aborts the rest."""
        results = []
        for path in resource_paths:
            result = self.acquire(path, reason)
            results.append(result)
            if on_result is not None:
                on_result(result)
        return results

    def unlock_many(
        self,
        resource_paths: Iterable[str],
        force: bool = False,
        on_result: ResultCallback | None = None,
    ) -> list[LockResult]:
        """Release each path independently; one failure never aborts the rest."""
        results = []
        for path in resource_paths:
            result = self.release(path, force=force)
            results.append(result)
            if on_result is not None:
                on_result(result)
        return results

    def lock_folder(
        self,
        folder: str | Path,
        reason: str | None = None,
        on_result: ResultCallback | None = None,
    ) -> list[LockResult]:
        """Lock every lockable file under a folder that is not already locked."""
        folder_path = self._resolve_folder(folder)
        if folder_path is None:
            return [LockResult.fail(LockErrorKind.NOT_LOCKABLE, "Not a valid folder.", codec.normalize(str(folder)))]

        candidates = []
        for file_path in sorted(folder_path.rglob("*")):
            if not file_path.is_file() or self._is_internal(file_path):
                continue
            resource_path = self.resource_path_for(file_path)
            if not self.is_lockable(resource_path):
                continue
            if self.can_lock(resource_path):
                candidates.append(resource_path)
            elif self.is_locked(resource_path):
                self.logger.info(f"Skipped (already locked): {resource_path}")

        self.logger.info(f"Found {len(candidates)} lockable file(s) in folder: {folder_path}")
        return self.lock_many(candidates, reason, on_result=on_result)

    def unlock_folder(self, folder: str | Path, on_result: ResultCallback | None = None) -> list[LockResult]:
        """Release every lock the current user holds under a folder."""
        folder_path = self._resolve_folder(folder)
        if folder_path is None:
            return [LockResult.fail(LockErrorKind.NOT_LOCKABLE, "Not a valid folder.", codec.normalize(str(folder)))]

        prefix = self.resource_path_for(folder_path).rstrip("/")
        prefix = f"{prefix}/" if prefix and prefix != "." else ""
        mine = [
            record.resource_path
            for record in self.list_all()
            if record.resource_path.startswith(prefix) and self.is_owned_by_me(record)
        ]
        return self.unlock_many(mine, on_result=on_result)

    # ==================== HOUSEKEEPING ====================

    def invalidate_cache(self) -> None:
        """Drop cached records and the reachability answer; next reads hit the store."""
        self.cache.invalidate()
        with self._state_lock:
            self._coordinated = None

    def ensure_initialized(self) -> None:
        self.layout.ensure_initialized()

    def resource_path_for(self, path: str | Path) -> str:
        """Canonical resource path, relative to the root when ``path`` is inside it."""
        candidate = Path(path)
        if candidate.is_absolute():
            try:
                return candidate.resolve().relative_to(self.root.resolve()).as_posix()
            except ValueError:
                return codec.normalize(str(path))
        return codec.normalize(str(path))

    def _resolve_folder(self, folder: str | Path) -> Path | None:
        folder_path = Path(folder)
        if not folder_path.is_absolute():
            folder_path = self.root / folder_path
        return folder_path if folder_path.is_dir() else None

    def _is_internal(self, file_path: Path) -> bool:
        parts = file_path.relative_to(self.root).parts if file_path.is_relative_to(self.root) else file_path.parts
        return ".git" in parts or COORDINATION_DIRNAME in parts

    def _stage_best_effort(self, lock_file: Path, log: logging.Logger | logging.LoggerAdapter) -> bool:
        try:
            staged = bool(self.vcs.stage(lock_file))
        except Exception as e:
            log.warning(f"Staging {lock_file.name} raised: {e}")
            return False
        if not staged:
            log.warning(f"Could not stage lock file {lock_file.name}")
        return staged

    def _unstage_best_effort(self, lock_file: Path, log: logging.Logger | logging.LoggerAdapter) -> None:
        try:
            if not self.vcs.unstage(lock_file):
                log.debug(f"Could not unstage lock file {lock_file.name}")
        except Exception as e:
            log.debug(f"Unstaging {lock_file.name} raised: {e}")
