"""Git integration - identity, staging and publishing of lock files."""

from asset_locks.git.vcs import GitCommandResult, GitVersionControl, VersionControl

__all__ = ["GitCommandResult", "GitVersionControl", "VersionControl"]
