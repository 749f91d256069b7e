"""Pytest configuration and fixtures for asset-locks tests"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from asset_locks.locks.cache import LockCache
from asset_locks.locks.coordinator import LockCoordinator
from asset_locks.locks.history import LockHistory
from asset_locks.locks.layout import CoordinationLayout
from asset_locks.locks.store import LockRecordStore

ALICE = ("Alice", "alice@example.com")
BOB = ("Bob", "bob@example.com")


@dataclass
class FakeVersionControl:
    """In-memory VersionControl double. Switch users by assigning ``user``."""

    root: Path | None
    user: tuple[str, str] = ALICE
    branch: str = "main"
    present: bool = True
    stage_ok: bool = True
    authors: list[tuple[str, str]] = field(default_factory=list)
    staged: list[Path] = field(default_factory=list)
    unstaged: list[Path] = field(default_factory=list)
    presence_checks: int = 0

    def current_user_name(self) -> str:
        return self.user[0]

    def current_user_email(self) -> str:
        return self.user[1]

    def current_branch(self) -> str:
        return self.branch

    def repository_root(self) -> Path | None:
        return self.root

    def is_repository_present(self) -> bool:
        self.presence_checks += 1
        return self.present

    def content_hash(self, resource_path: str) -> str | None:
        return f"hash-{resource_path}"

    def stage(self, file_path: Path) -> bool:
        self.staged.append(file_path)
        return self.stage_ok

    def unstage(self, file_path: Path) -> bool:
        self.unstaged.append(file_path)
        return True

    def commit_authors(self) -> list[tuple[str, str]]:
        return list(self.authors)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 3, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
def repo_root(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def vcs(repo_root):
    return FakeVersionControl(root=repo_root)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def layout(repo_root):
    return CoordinationLayout(repo_root)


@pytest.fixture
def store(layout):
    return LockRecordStore(layout.locks_dir)


@pytest.fixture
def history(layout, vcs, clock):
    return LockHistory(layout.history_file, vcs, clock=clock)


@pytest.fixture
def coordinator(vcs, store, history, clock, monotonic):
    return LockCoordinator(
        vcs,
        cache=LockCache(),
        store=store,
        history=history,
        clock=clock,
        monotonic=monotonic,
        machine_id="test-host",
    )


@pytest.fixture
def make_coordinator(vcs, layout, clock, monotonic):
    """Build a second coordinator sharing the same storage, as a teammate would."""

    def _make(fake_vcs: FakeVersionControl | None = None) -> LockCoordinator:
        other_vcs = fake_vcs or vcs
        return LockCoordinator(
            other_vcs,
            cache=LockCache(),
            store=LockRecordStore(layout.locks_dir),
            history=LockHistory(layout.history_file, other_vcs, clock=clock),
            clock=clock,
            monotonic=monotonic,
            machine_id="other-host",
        )

    return _make
