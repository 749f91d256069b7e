"""Version-control and identity collaborator.

The lock engine depends only on the :class:`VersionControl` protocol.
:class:`GitVersionControl` implements it by running the ``git`` executable;
tests substitute an in-memory fake.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from asset_locks.core.constants import UNKNOWN_BRANCH, UNKNOWN_USER_EMAIL, UNKNOWN_USER_NAME
from asset_locks.core.exceptions import VersionControlError


class VersionControl(Protocol):
    """Identity and repository operations the lock engine needs."""

    def current_user_name(self) -> str:
        """Display name recorded as lock owner."""

    def current_user_email(self) -> str:
        """Stable identity key compared for lock ownership."""

    def current_branch(self) -> str:
        """Branch checked out when a lock is taken."""

    def repository_root(self) -> Path | None:
        """Top-level directory of the working tree, None outside a repository."""

    def is_repository_present(self) -> bool:
        """Whether the shared storage is reachable."""

    def content_hash(self, resource_path: str) -> str | None:
        """Content fingerprint of a resource, None when unavailable."""

    def stage(self, file_path: Path) -> bool:
        """Stage a file for the next commit. Best effort."""

    def unstage(self, file_path: Path) -> bool:
        """Drop a deleted file from the index. Best effort."""

    def commit_authors(self) -> list[tuple[str, str]]:
        """(name, email) of every commit author, newest first."""


@dataclass
class GitCommandResult:
    """Outcome of a single git invocation."""

    success: bool
    output: str = ""
    error: str = ""
    returncode: int | None = None


class GitVersionControl:
    """``VersionControl`` backed by the git command line.

    Identity and repository root are cached for the lifetime of the
    instance; call :meth:`clear_cache` after changing git config.
    """

    def __init__(
        self,
        working_dir: Path | str | None = None,
        *,
        git_executable: str = "git",
        timeout_seconds: float = 30,
        logger: logging.Logger | None = None,
    ):
        self.working_dir = Path(working_dir) if working_dir is not None else Path.cwd()
        self.git_executable = git_executable
        self.timeout_seconds = timeout_seconds
        self.logger = logger or logging.getLogger(__name__)
        self._user_name: str | None = None
        self._user_email: str | None = None
        self._repo_root: Path | None = None

    def run(self, args: list[str], timeout: float | None = None) -> GitCommandResult:
        """Run a git command in the working directory without raising."""
        try:
            result = subprocess.run(
                [self.git_executable, *args],
                cwd=str(self.working_dir),
                capture_output=True,
                text=True,
                timeout=timeout or self.timeout_seconds,
            )
        except subprocess.TimeoutExpired:
            self.logger.warning(f"git {' '.join(args)} timed out")
            return GitCommandResult(success=False, error="Git operation timed out")
        except FileNotFoundError:
            self.logger.error("Git not found - ensure Git is installed and in PATH")
            return GitCommandResult(success=False, error="Git not found")
        except OSError as e:
            self.logger.error(f"git {' '.join(args)} failed to start: {e}")
            return GitCommandResult(success=False, error=str(e))
        return GitCommandResult(
            success=result.returncode == 0,
            output=result.stdout or "",
            error=result.stderr or "",
            returncode=result.returncode,
        )

    def run_checked(self, args: list[str], timeout: float | None = None) -> GitCommandResult:
        """Run a git command and raise :class:`VersionControlError` on failure."""
        result = self.run(args, timeout=timeout)
        if not result.success:
            raise VersionControlError(
                f"git {args[0]} failed", command=args, returncode=result.returncode, stderr=result.error
            )
        return result

    def current_user_name(self) -> str:
        if self._user_name is None:
            result = self.run(["config", "user.name"], timeout=5)
            if result.success and result.output.strip():
                self._user_name = result.output.strip()
        return self._user_name or UNKNOWN_USER_NAME

    def current_user_email(self) -> str:
        if self._user_email is None:
            result = self.run(["config", "user.email"], timeout=5)
            if result.success and result.output.strip():
                self._user_email = result.output.strip()
        return self._user_email or UNKNOWN_USER_EMAIL

    def current_branch(self) -> str:
        result = self.run(["rev-parse", "--abbrev-ref", "HEAD"], timeout=10)
        return result.output.strip() if result.success and result.output.strip() else UNKNOWN_BRANCH

    def repository_root(self) -> Path | None:
        if self._repo_root is None:
            result = self.run(["rev-parse", "--show-toplevel"], timeout=10)
            if result.success and result.output.strip():
                self._repo_root = Path(result.output.strip())
        return self._repo_root

    def is_repository_present(self) -> bool:
        result = self.run(["rev-parse", "--is-inside-work-tree"], timeout=10)
        return result.success and result.output.strip() == "true"

    def content_hash(self, resource_path: str) -> str | None:
        root = self.repository_root()
        target = root / resource_path if root is not None else Path(resource_path)
        result = self.run(["hash-object", "--", str(target)])
        return result.output.strip() if result.success and result.output.strip() else None

    def stage(self, file_path: Path) -> bool:
        result = self.run(["add", "--", str(file_path)])
        if not result.success:
            self.logger.debug(f"git add {file_path} failed: {result.error.strip()}")
        return result.success

    def unstage(self, file_path: Path) -> bool:
        result = self.run(["rm", "--cached", "--quiet", "--ignore-unmatch", "--", str(file_path)])
        if not result.success:
            self.logger.debug(f"git rm --cached {file_path} failed: {result.error.strip()}")
        return result.success

    def commit_authors(self) -> list[tuple[str, str]]:
        result = self.run(["log", "--format=%an|%ae", "--all"], timeout=60)
        if not result.success:
            return []
        authors = []
        for line in result.output.splitlines():
            parts = line.strip().strip('"').split("|")
            if len(parts) != 2 or not parts[1]:
                continue
            authors.append((parts[0], parts[1]))
        return authors

    def pull(self) -> GitCommandResult:
        """Pull teammates' lock changes; raises when git reports a failure."""
        return self.run_checked(["pull", "--ff-only"], timeout=120)

    def commit(self, message: str, paths: list[Path] | None = None) -> str:
        """Stage ``paths`` (additions and deletions), commit, and return the short SHA.

        With ``paths`` the commit is limited to them; anything else already
        staged stays staged and uncommitted. Returns an empty string when
        nothing was staged.
        """
        pathspec = ["--", *[str(p) for p in paths]] if paths else []
        if paths:
            self.run_checked(["add", "--all", *pathspec])
        staged = self.run(["diff", "--cached", "--quiet", *pathspec], timeout=10)
        if staged.success:
            self.logger.info("No lock changes to commit")
            return ""
        self.run_checked(["commit", "-m", message, *pathspec])
        head = self.run(["rev-parse", "HEAD"], timeout=10)
        return head.output.strip()[:8] if head.success else "unknown"

    def push(self) -> None:
        self.run_checked(["push"], timeout=120)

    def clear_cache(self) -> None:
        """Forget cached identity and repository root (user info changed)."""
        self._user_name = None
        self._user_email = None
        self._repo_root = None
