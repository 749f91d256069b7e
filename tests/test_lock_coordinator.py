"""Tests for the lock coordinator: acquire, release, query, batches and cleanup."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

import pytest

from asset_locks.core.exceptions import CoordinationUnavailableError
from asset_locks.locks.coordinator import LockCoordinator
from asset_locks.locks.models import HistoryAction, LockErrorKind, parse_timestamp
from asset_locks.locks.policy import LockablePolicy

from conftest import BOB, FakeVersionControl

MAIN_SCENE = "Assets/Scenes/Main.unity"


@pytest.fixture
def bob_vcs(repo_root):
    return FakeVersionControl(root=repo_root, user=BOB)


@pytest.fixture
def bob(make_coordinator, bob_vcs):
    return make_coordinator(bob_vcs)


class TestConstruction:
    def test_root_from_version_control(self, coordinator, repo_root):
        assert coordinator.root == repo_root

    def test_fallback_root(self, tmp_path):
        vcs = FakeVersionControl(root=None)

        coordinator = LockCoordinator(vcs, root=tmp_path)

        assert coordinator.layout.locks_dir == tmp_path / ".coordination" / "locks"

    def test_no_root_raises(self):
        with pytest.raises(CoordinationUnavailableError):
            LockCoordinator(FakeVersionControl(root=None))


class TestMainSceneScenario:
    """Two teammates contend for the main scene"""

    def test_full_lifecycle(self, coordinator, bob):
        result = coordinator.acquire(MAIN_SCENE, "layout pass")

        assert result.success
        assert result.message == "Locked successfully."
        record = coordinator.query(MAIN_SCENE)
        assert record is not None
        assert record.reason == "layout pass"
        assert coordinator.is_owned_by_me(record)
        assert not bob.is_owned_by_me(record)

        conflict = bob.acquire(MAIN_SCENE)
        assert not conflict.success
        assert conflict.error is LockErrorKind.LOCKED_BY_OTHER
        assert conflict.owner_name == "Alice"
        assert conflict.message == "Locked by 'Alice'."

        released = coordinator.release(MAIN_SCENE)
        assert released.success
        assert released.message == "Unlocked successfully."
        assert not coordinator.store.lock_file_path(MAIN_SCENE).exists()
        assert coordinator.query(MAIN_SCENE) is None


class TestAcquire:
    def test_record_fields(self, coordinator, clock):
        result = coordinator.acquire(MAIN_SCENE)
        record = result.record

        assert record.resource_path == MAIN_SCENE
        assert record.owner.name == "Alice"
        assert record.owner.email == "alice@example.com"
        assert record.reason == "Working"
        assert record.branch == "main"
        assert record.machine_id == "test-host"
        assert record.content_hash == f"hash-{MAIN_SCENE}"
        assert record.schema_version == 1
        assert parse_timestamp(record.locked_at) == clock.now

    def test_lease_is_exactly_24_hours(self, coordinator, clock):
        record = coordinator.acquire(MAIN_SCENE).record

        assert parse_timestamp(record.expires_at) - parse_timestamp(record.locked_at) == timedelta(hours=24)
        assert not record.is_expired(clock.now)
        clock.advance(hours=24, seconds=1)
        assert record.is_expired(clock.now)

    def test_custom_lease(self, vcs, store, history, clock):
        coordinator = LockCoordinator(vcs, store=store, history=history, clock=clock, lease=timedelta(hours=2))

        record = coordinator.acquire(MAIN_SCENE).record

        assert parse_timestamp(record.expires_at) - clock.now == timedelta(hours=2)

    def test_backslash_path_normalized(self, coordinator):
        result = coordinator.acquire("Assets\\Scenes\\Main.unity")

        assert result.resource_path == MAIN_SCENE
        assert coordinator.is_locked(MAIN_SCENE)

    def test_already_locked_by_me(self, coordinator):
        coordinator.acquire(MAIN_SCENE)

        result = coordinator.acquire(MAIN_SCENE)

        assert result.error is LockErrorKind.ALREADY_LOCKED_BY_ME
        assert result.message == "Already locked by you."

    def test_not_lockable(self, coordinator):
        result = coordinator.acquire("Assets/Scripts/Player.cs")

        assert result.error is LockErrorKind.NOT_LOCKABLE
        assert result.message == "This file type cannot be locked."
        assert coordinator.store.list_all() == []

    def test_extension_match_is_case_insensitive(self, coordinator):
        assert coordinator.acquire("Assets/Art/Hero.PNG").success

    def test_custom_policy(self, vcs, store, history):
        coordinator = LockCoordinator(vcs, store=store, history=history, policy=LockablePolicy([".cs"]))

        assert coordinator.acquire("Assets/Scripts/Player.cs").success
        assert not coordinator.acquire("Assets/Art/Hero.png").success

    def test_not_coordinated(self, coordinator, vcs):
        vcs.present = False

        result = coordinator.acquire(MAIN_SCENE)

        assert result.error is LockErrorKind.NOT_COORDINATED
        assert result.message == "Not a Git repository."

    def test_reachability_check_is_rate_limited(self, coordinator, vcs, monotonic):
        coordinator.acquire("Assets/a.prefab")
        coordinator.acquire("Assets/b.prefab")
        assert vcs.presence_checks == 1

        monotonic.advance(1.5)
        coordinator.acquire("Assets/c.prefab")
        assert vcs.presence_checks == 2

    def test_stages_lock_file(self, coordinator, vcs):
        coordinator.acquire(MAIN_SCENE)

        assert vcs.staged == [coordinator.store.lock_file_path(MAIN_SCENE)]

    def test_staging_failure_is_a_diagnostic(self, coordinator, vcs):
        vcs.stage_ok = False

        result = coordinator.acquire(MAIN_SCENE)

        assert result.success
        assert [d.kind for d in result.diagnostics] == [LockErrorKind.STAGING_FAILED]
        assert coordinator.store.read(MAIN_SCENE) is not None

    def test_staging_exception_does_not_fail_acquire(self, coordinator, vcs):
        with patch.object(vcs, "stage", side_effect=RuntimeError("git exploded")):
            result = coordinator.acquire(MAIN_SCENE)

        assert result.success
        assert result.diagnostics[0].kind is LockErrorKind.STAGING_FAILED

    def test_write_failure_becomes_io_failure(self, coordinator, history):
        with patch.object(coordinator.store, "write", side_effect=OSError("disk full")):
            result = coordinator.acquire(MAIN_SCENE)

        assert result.error is LockErrorKind.IO_FAILURE
        assert result.message == "Failed to write lock record."
        assert history.entries == []
        assert coordinator.query(MAIN_SCENE) is None

    def test_history_entry_appended(self, coordinator, history):
        coordinator.acquire(MAIN_SCENE, "layout pass")

        entry = history.entries[-1]
        assert entry.action is HistoryAction.LOCK
        assert entry.reason == "layout pass"

    def test_corrupt_record_stays_lockable(self, coordinator):
        coordinator.store.ensure_initialized()
        coordinator.store.lock_file_path(MAIN_SCENE).write_text("not json", encoding="utf-8")

        result = coordinator.acquire(MAIN_SCENE)

        assert result.success
        assert LockErrorKind.CORRUPT_RECORD in [d.kind for d in result.diagnostics]
        assert coordinator.store.read(MAIN_SCENE).owner.email == "alice@example.com"

    def test_at_most_one_record_per_path(self, coordinator):
        for _ in range(3):
            coordinator.acquire(MAIN_SCENE)
            coordinator.release(MAIN_SCENE)
            coordinator.acquire(MAIN_SCENE)

        assert len(coordinator.store.list_all()) == 1


class TestRelease:
    def test_not_locked(self, coordinator):
        result = coordinator.release(MAIN_SCENE)

        assert result.error is LockErrorKind.NOT_LOCKED
        assert result.message == "This file is not locked."

    def test_not_owner(self, coordinator, bob):
        coordinator.acquire(MAIN_SCENE)

        result = bob.release(MAIN_SCENE)

        assert result.error is LockErrorKind.NOT_OWNER
        assert result.message == "Locked by 'Alice'. Force unlock required."
        assert coordinator.store.read(MAIN_SCENE) is not None

    def test_force_release_of_other_users_lock(self, coordinator, bob, history):
        coordinator.acquire(MAIN_SCENE)

        result = bob.release(MAIN_SCENE, force=True)

        assert result.success
        assert coordinator.store.read(MAIN_SCENE) is None
        history.invalidate_cache()
        assert history.entries[-1].action is HistoryAction.FORCE_UNLOCK
        assert history.entries[-1].user == "Bob"

    def test_release_records_unlock_history(self, coordinator, history):
        coordinator.acquire(MAIN_SCENE)
        coordinator.release(MAIN_SCENE)

        assert [e.action for e in history.entries] == [HistoryAction.LOCK, HistoryAction.UNLOCK]

    def test_release_unstages_record(self, coordinator, vcs):
        coordinator.acquire(MAIN_SCENE)
        coordinator.release(MAIN_SCENE)

        assert vcs.unstaged == [coordinator.store.lock_file_path(MAIN_SCENE)]

    def test_delete_failure_becomes_io_failure(self, coordinator):
        coordinator.acquire(MAIN_SCENE)

        with patch.object(coordinator.store, "delete", side_effect=PermissionError("denied")):
            result = coordinator.release(MAIN_SCENE)

        assert result.error is LockErrorKind.IO_FAILURE
        assert coordinator.is_locked(MAIN_SCENE)

    def test_release_checks_owner_on_disk(self, coordinator, bob):
        coordinator.acquire(MAIN_SCENE)
        bob.release(MAIN_SCENE, force=True)
        bob.acquire(MAIN_SCENE, "relight")
        assert coordinator.cache.get(MAIN_SCENE).owner.email == "alice@example.com"

        result = coordinator.release(MAIN_SCENE)

        assert result.error is LockErrorKind.NOT_OWNER
        assert coordinator.store.read(MAIN_SCENE).owner.email == "bob@example.com"


class TestQueries:
    def test_can_lock(self, coordinator):
        assert coordinator.can_lock(MAIN_SCENE)
        assert not coordinator.can_lock("README.md")
        coordinator.acquire(MAIN_SCENE)
        assert not coordinator.can_lock(MAIN_SCENE)

    def test_can_unlock(self, coordinator, bob):
        coordinator.acquire(MAIN_SCENE)

        assert coordinator.can_unlock(MAIN_SCENE)
        assert not bob.can_unlock(MAIN_SCENE)
        assert not coordinator.can_unlock("Assets/other.prefab")

    def test_query_empty_path(self, coordinator):
        assert coordinator.query("") is None

    def test_query_caches_hits(self, coordinator, bob):
        bob.acquire(MAIN_SCENE)
        assert coordinator.query(MAIN_SCENE) is not None

        bob.release(MAIN_SCENE)

        assert coordinator.query(MAIN_SCENE) is not None
        coordinator.invalidate_cache()
        assert coordinator.query(MAIN_SCENE) is None

    def test_misses_are_not_cached(self, coordinator, bob):
        assert coordinator.query(MAIN_SCENE) is None

        bob.acquire(MAIN_SCENE)

        assert coordinator.query(MAIN_SCENE) is not None

    def test_list_mine_and_others(self, coordinator, bob):
        coordinator.acquire("Assets/a.prefab")
        coordinator.acquire("Assets/b.prefab")
        bob.acquire("Assets/c.prefab")

        assert sorted(r.resource_path for r in coordinator.list_all()) == [
            "Assets/a.prefab",
            "Assets/b.prefab",
            "Assets/c.prefab",
        ]
        assert sorted(r.resource_path for r in coordinator.list_mine()) == ["Assets/a.prefab", "Assets/b.prefab"]
        assert [r.resource_path for r in coordinator.list_others()] == ["Assets/c.prefab"]

    def test_list_all_populates_cache(self, coordinator, bob):
        bob.acquire("Assets/c.prefab")

        coordinator.list_all()

        assert coordinator.cache.complete
        assert "Assets/c.prefab" in coordinator.cache

    def test_resource_path_for_absolute_path(self, coordinator, repo_root):
        assert coordinator.resource_path_for(repo_root / "Assets" / "a.prefab") == "Assets/a.prefab"

    def test_resource_path_for_relative_path(self, coordinator):
        assert coordinator.resource_path_for("Assets\\a.prefab") == "Assets/a.prefab"


class TestBatches:
    def test_five_file_batch_with_one_conflict(self, coordinator, bob):
        paths = [f"Assets/Prefabs/Enemy{i}.prefab" for i in range(5)]
        bob.acquire(paths[2])

        results = coordinator.lock_many(paths, "balance pass")

        assert len(results) == 5
        assert sum(1 for r in results if r.success) == 4
        failure = results[2]
        assert failure.error is LockErrorKind.LOCKED_BY_OTHER
        assert failure.owner_name == "Bob"
        for path in paths[:2] + paths[3:]:
            assert coordinator.store.read(path).owner.email == "alice@example.com"

    def test_on_result_called_per_item(self, coordinator):
        seen = []

        coordinator.lock_many(["Assets/a.prefab", "notes.txt"], on_result=seen.append)

        assert [r.success for r in seen] == [True, False]

    def test_unlock_many_partial_failure(self, coordinator, bob):
        coordinator.acquire("Assets/a.prefab")
        bob.acquire("Assets/b.prefab")

        results = coordinator.unlock_many(["Assets/a.prefab", "Assets/b.prefab", "Assets/c.prefab"])

        assert [r.error for r in results] == [None, LockErrorKind.NOT_OWNER, LockErrorKind.NOT_LOCKED]

    def test_unlock_many_force(self, coordinator, bob):
        bob.acquire("Assets/b.prefab")

        results = coordinator.unlock_many(["Assets/b.prefab"], force=True)

        assert results[0].success


class TestFolders:
    @pytest.fixture
    def art_folder(self, repo_root):
        folder = repo_root / "Assets" / "Art"
        (folder / "Textures").mkdir(parents=True)
        for name in ("hero.png", "Textures/grass.tga", "notes.txt", "Textures/readme.md"):
            (folder / name).write_text("x", encoding="utf-8")
        (repo_root / "Assets" / "outside.png").write_text("x", encoding="utf-8")
        return folder

    def test_lock_folder_locks_lockable_files(self, coordinator, art_folder):
        results = coordinator.lock_folder("Assets/Art", "texture rework")

        assert sorted(r.resource_path for r in results) == ["Assets/Art/Textures/grass.tga", "Assets/Art/hero.png"]
        assert all(r.success for r in results)
        assert not coordinator.is_locked("Assets/outside.png")

    def test_lock_folder_skips_already_locked(self, coordinator, bob, art_folder):
        bob.acquire("Assets/Art/hero.png")

        results = coordinator.lock_folder(art_folder)

        assert [r.resource_path for r in results] == ["Assets/Art/Textures/grass.tga"]

    def test_lock_folder_invalid(self, coordinator):
        results = coordinator.lock_folder("Assets/Missing")

        assert len(results) == 1
        assert not results[0].success

    def test_lock_folder_ignores_coordination_dir(self, coordinator, repo_root):
        coordinator.acquire(MAIN_SCENE)
        (repo_root / ".coordination" / "stray.png").write_text("x", encoding="utf-8")

        results = coordinator.lock_folder(repo_root)

        assert results == []

    def test_unlock_folder_releases_only_mine(self, coordinator, bob, art_folder):
        coordinator.acquire("Assets/Art/hero.png")
        bob.acquire("Assets/Art/Textures/grass.tga")
        coordinator.acquire("Assets/outside.png")

        results = coordinator.unlock_folder("Assets/Art")

        assert [r.resource_path for r in results] == ["Assets/Art/hero.png"]
        assert coordinator.is_locked("Assets/outside.png")
        assert coordinator.is_locked("Assets/Art/Textures/grass.tga")


class TestCleanupExpired:
    def test_removes_only_expired(self, coordinator, bob, clock):
        coordinator.acquire("Assets/old.prefab")
        clock.advance(hours=20)
        bob.acquire("Assets/new.prefab")
        clock.advance(hours=5)

        cleaned = coordinator.cleanup_expired()

        assert cleaned == 1
        assert coordinator.query("Assets/old.prefab") is None
        assert coordinator.query("Assets/new.prefab") is not None

    def test_nothing_expired_keeps_cache(self, coordinator):
        coordinator.acquire(MAIN_SCENE)

        assert coordinator.cleanup_expired() == 0
        assert MAIN_SCENE in coordinator.cache

    def test_cleanup_invalidates_cache(self, coordinator, clock):
        coordinator.acquire(MAIN_SCENE)
        clock.advance(days=2)

        coordinator.cleanup_expired()

        assert MAIN_SCENE not in coordinator.cache
        assert coordinator.is_locked(MAIN_SCENE) is False

    def test_expired_lock_blocks_until_cleaned(self, coordinator, bob, clock):
        coordinator.acquire(MAIN_SCENE)
        clock.advance(days=2)

        assert bob.acquire(MAIN_SCENE).error is LockErrorKind.LOCKED_BY_OTHER
        bob.cleanup_expired()
        assert bob.acquire(MAIN_SCENE).success
