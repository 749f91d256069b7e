"""ANSI console colors for asset-locks output."""

import os
import sys


def _terminal_supports_color() -> bool:
    if os.environ.get('NO_COLOR'):
        return False
    return sys.stdout.isatty() and (os.name != 'nt' or bool(os.environ.get('TERM')))


class ConsoleColors:
    """Class-level color policy shared by every CLI print.

    Lock states have fixed colors so a status table reads at a glance:
    blue for your locks, red for teammates', yellow for expired records.
    """

    GREEN = '\033[92m'
    RED = '\033[91m'
    YELLOW = '\033[93m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    BOLD = '\033[1m'
    DIM = '\033[90m'
    RESET = '\033[0m'

    LOCK_STATE_COLORS = {'mine': BLUE, 'other': RED, 'expired': YELLOW}

    _enabled = _terminal_supports_color()

    @classmethod
    def configure(cls, no_color: bool = False) -> None:
        """Apply ``--no-color``; NO_COLOR in the environment also disables colors."""
        cls._enabled = not no_color and _terminal_supports_color()

    @classmethod
    def is_enabled(cls) -> bool:
        return cls._enabled

    @classmethod
    def paint(cls, code: str | None, text: str) -> str:
        if not cls._enabled or not code:
            return text
        return f"{code}{text}{cls.RESET}"

    @classmethod
    def success(cls, text: str) -> str:
        return cls.paint(cls.GREEN, text)

    @classmethod
    def error(cls, text: str) -> str:
        return cls.paint(cls.RED, text)

    @classmethod
    def warning(cls, text: str) -> str:
        return cls.paint(cls.YELLOW, text)

    @classmethod
    def info(cls, text: str) -> str:
        return cls.paint(cls.CYAN, text)

    @classmethod
    def bold(cls, text: str) -> str:
        return cls.paint(cls.BOLD, text)

    @classmethod
    def dim(cls, text: str) -> str:
        return cls.paint(cls.DIM, text)

    @classmethod
    def status(cls, success: bool, text: str) -> str:
        """Green when ``success``, red otherwise."""
        return cls.success(text) if success else cls.error(text)

    @classmethod
    def lock_state(cls, state: str, text: str) -> str:
        """Color a line by lock state: 'mine', 'other' or 'expired'."""
        return cls.paint(cls.LOCK_STATE_COLORS.get(state), text)

