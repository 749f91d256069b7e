"""Custom exceptions for asset-locks.

Lock operations report expected failures (conflicts, ownership, unreadable
records) through ``LockResult`` values. The classes here cover the remaining
cases where continuing makes no sense: bad configuration, a git command that
had to succeed, or a repository root that cannot be resolved.
"""


class AssetLockError(Exception):
    """Base exception for all asset-locks errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(AssetLockError):
    """Exception raised for configuration-related errors.

    Examples:
        - Invalid value in an environment variable
        - Unparseable lease duration
        - Settings file that cannot be written
    """

    def __init__(
        self, message: str, config_file: str | None = None, field: str | None = None, details: str | None = None
    ):
        self.config_file = config_file
        self.field = field
        super().__init__(message, details)


class VersionControlError(AssetLockError):
    """Raised when a git command required by the caller fails."""

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr: str | None = None,
    ):
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message, (stderr or "").strip() or None)

    def __str__(self) -> str:
        parts = [self.message]
        if self.command:
            parts.append(f"command: git {' '.join(self.command)}")
        if self.returncode is not None:
            parts.append(f"exit {self.returncode}")
        if self.details:
            parts.append(self.details)
        return " - ".join(parts)


class CoordinationUnavailableError(AssetLockError):
    """Raised when no coordination root can be resolved for a session."""

    def __init__(self, root: str | None = None):
        self.root = root
        message = "Lock coordination is unavailable"
        details = f"'{root}' is not a directory" if root else "no repository root found and no --root given"
        super().__init__(message, details)
