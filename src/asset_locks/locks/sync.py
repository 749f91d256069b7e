"""Refresh cycle: discard caches, re-read lock state, notify subscribers."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Protocol

from asset_locks.core.constants import REPOSITORY_RECHECK_SECONDS
from asset_locks.locks.coordinator import LockCoordinator


class Invalidatable(Protocol):
    def invalidate_cache(self) -> None: ...


@dataclass
class SyncResult:
    """Lock state observed by one refresh, compared with the previous one."""

    success: bool
    total_locks: int = 0
    new_locks: list[str] = field(default_factory=list)
    removed_locks: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def has_changes(self) -> bool:
        return bool(self.new_locks or self.removed_locks)


RefreshCallback = Callable[[SyncResult], None]


class Subscription:
    """Handle returned by :meth:`SyncCoordinator.subscribe`.

    Call :meth:`unsubscribe` when the consumer goes away, or use the handle
    as a context manager to tie the subscription to a block.
    """

    def __init__(self, sync: SyncCoordinator, callback: RefreshCallback):
        self._sync = sync
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._sync._remove_subscription(self)
            self.active = False

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.unsubscribe()


class SyncCoordinator:
    """Non-reentrant refresh of coordinator and dependent caches.

    A refresh already in flight is skipped, not queued.
    """

    def __init__(
        self,
        coordinator: LockCoordinator,
        dependents: Iterable[Invalidatable] = (),
        *,
        monotonic: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ):
        self.coordinator = coordinator
        self.dependents = list(dependents)
        self.logger = logger or logging.getLogger(__name__)
        self._monotonic = monotonic
        self._refresh_lock = threading.Lock()
        self._subscribers_lock = threading.Lock()
        self._subscriptions: list[Subscription] = []
        self._last_refresh: float | None = None
        self._last_check: float | None = None
        self._known_paths: set[str] | None = None

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_lock.locked()

    @property
    def seconds_since_last_refresh(self) -> float | None:
        """None until the first refresh completes."""
        if self._last_refresh is None:
            return None
        return self._monotonic() - self._last_refresh

    def should_recheck(self, min_interval: float = REPOSITORY_RECHECK_SECONDS) -> bool:
        """Rate limiter for UI polling of repository reachability."""
        now = self._monotonic()
        if self._last_check is not None and now - self._last_check < min_interval:
            return False
        self._last_check = now
        return True

    def subscribe(self, callback: RefreshCallback) -> Subscription:
        subscription = Subscription(self, callback)
        with self._subscribers_lock:
            self._subscriptions.append(subscription)
        return subscription

    def _remove_subscription(self, subscription: Subscription) -> None:
        with self._subscribers_lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        with self._subscribers_lock:
            return len(self._subscriptions)

    def refresh(self) -> SyncResult | None:
        """Invalidate caches, re-read every record and publish the result.

        Returns None when another refresh is already running.
        """
        if not self._refresh_lock.acquire(blocking=False):
            self.logger.debug("Refresh already in progress, skipping")
            return None
        try:
            result = self._refresh_locked()
            self._publish(result)
        finally:
            self._refresh_lock.release()
        return result

    def force_sync(self) -> SyncResult | None:
        """Reset rate limiting and refresh immediately."""
        self._last_check = None
        return self.refresh()

    def refresh_if_due(self, interval: float) -> SyncResult | None:
        elapsed = self.seconds_since_last_refresh
        if elapsed is not None and elapsed < interval:
            return None
        return self.refresh()

    def run_periodic(
        self,
        interval: float,
        stop_event: threading.Event,
        cleanup_expired: bool = False,
        *,
        max_iterations: int | None = None,
    ) -> int:
        """Refresh every ``interval`` seconds until ``stop_event`` is set.

        Returns the number of refresh cycles that ran.
        """
        cycles = 0
        while not stop_event.is_set():
            if cleanup_expired:
                cleaned = self.coordinator.cleanup_expired()
                if cleaned:
                    self.logger.info(f"Cleaned up {cleaned} expired lock(s)")
            self.refresh()
            cycles += 1
            if max_iterations is not None and cycles >= max_iterations:
                break
            stop_event.wait(interval)
        return cycles

    def _refresh_locked(self) -> SyncResult:
        self.coordinator.invalidate_cache()
        for dependent in self.dependents:
            try:
                dependent.invalidate_cache()
            except Exception as e:
                self.logger.warning(f"Failed to invalidate {type(dependent).__name__}: {e}")

        try:
            records = self.coordinator.list_all()
        except OSError as e:
            self.logger.error(f"Refresh failed: {e}")
            self._last_refresh = self._monotonic()
            return SyncResult(success=False, error=str(e))

        current = {record.resource_path for record in records}
        previous = self._known_paths if self._known_paths is not None else current
        result = SyncResult(
            success=True,
            total_locks=len(records),
            new_locks=sorted(current - previous),
            removed_locks=sorted(previous - current),
        )
        self._known_paths = current
        self._last_refresh = self._monotonic()
        self.logger.debug(
            f"Refreshed: {result.total_locks} lock(s), {len(result.new_locks)} new, "
            f"{len(result.removed_locks)} removed"
        )
        return result

    def _publish(self, result: SyncResult) -> None:
        with self._subscribers_lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            try:
                subscription.callback(result)
            except Exception as e:
                self.logger.warning(f"Refresh subscriber {subscription.callback!r} raised: {e}")
