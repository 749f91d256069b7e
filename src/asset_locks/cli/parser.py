"""CLI argument parsing."""

from __future__ import annotations

import argparse

import argcomplete

from asset_locks.core.constants import DEFAULT_LOCK_REASON, DEFAULT_RECENT_HISTORY, DEFAULT_WATCH_INTERVAL_SECONDS
from asset_locks.core.version import __version__

OUTPUT_FORMATS = ("table", "json", "csv")


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got '{value}'") from None
    if parsed < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return parsed


def _positive_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a number, got '{value}'") from None
    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")
    return parsed


def _add_format_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        default="table",
        help="Output format (default: table). json and csv imply --quiet logging",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="asset-locks",
        description="asset-locks - Advisory locks for binary assets shared through git",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show every lock in the repository
  asset-locks status

  # Only my locks, as CSV
  asset-locks status --mine --format csv

  # Lock a scene and a prefab, then commit and push the lock files
  asset-locks lock Assets/Scenes/Main.unity Assets/Prefabs/Player.prefab --reason "Lighting pass" --publish

  # Release a teammate's stale lock
  asset-locks unlock Assets/Scenes/Main.unity --force

  # Lock everything lockable under a folder
  asset-locks lock-folder Assets/Art --reason "Texture rework"

  # Check whether files can be saved (exit code 1 if any is locked by someone else)
  asset-locks check-save Assets/Scenes/Main.unity

  # Poll for teammates' lock changes every 30 seconds
  asset-locks watch --interval 30 --cleanup

  # JSON structured logging
  asset-locks --log-format json status

Environment:
  ASSET_LOCKS_ROOT         Coordination root when not inside a git repository
  ASSET_LOCKS_LEASE_HOURS  Lease duration for new locks (default: 24)
  ASSET_LOCKS_EXTENSIONS   Comma separated lockable extensions
  LOG_LEVEL                Default log level
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--root",
        metavar="DIR",
        help="Repository root (default: detected from git, then ASSET_LOCKS_ROOT)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        default=None,
        help="Logging level (default: LOG_LEVEL env var or INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log output format (default: text)",
    )
    parser.add_argument("--log-file", metavar="PATH", help="Also write logs to a rotating log file")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log errors and hide progress bars")
    parser.add_argument("--no-color", action="store_true", help="Disable colored console output")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    # ==================== QUERIES ====================

    status = subparsers.add_parser("status", help="List current locks")
    owner_group = status.add_mutually_exclusive_group()
    owner_group.add_argument("--mine", action="store_true", help="Only locks held by you")
    owner_group.add_argument("--others", action="store_true", help="Only locks held by teammates")
    _add_format_option(status)

    info = subparsers.add_parser("info", help="Show the lock on one file")
    info.add_argument("path", help="Resource path (repository relative or absolute)")
    _add_format_option(info)

    history = subparsers.add_parser("history", help="Show recent lock activity")
    history.add_argument("path", nargs="?", help="Only entries for this resource")
    history.add_argument(
        "--limit",
        type=_positive_int,
        default=DEFAULT_RECENT_HISTORY,
        help=f"Maximum entries to show (default: {DEFAULT_RECENT_HISTORY})",
    )
    _add_format_option(history)

    check_save = subparsers.add_parser("check-save", help="Check whether files may be saved")
    check_save.add_argument("paths", nargs="+", metavar="PATH")

    # ==================== MUTATIONS ====================

    lock = subparsers.add_parser("lock", help="Lock one or more files")
    lock.add_argument("paths", nargs="+", metavar="PATH")
    lock.add_argument("--reason", default=None, help=f"Why the file is locked (default: '{DEFAULT_LOCK_REASON}')")
    lock.add_argument("--publish", action="store_true", help="Commit and push the lock files afterwards")

    unlock = subparsers.add_parser("unlock", help="Unlock one or more files")
    unlock.add_argument("paths", nargs="+", metavar="PATH")
    unlock.add_argument("--force", action="store_true", help="Release locks held by other users")
    unlock.add_argument("--publish", action="store_true", help="Commit and push the lock files afterwards")

    lock_folder = subparsers.add_parser("lock-folder", help="Lock every lockable file under a folder")
    lock_folder.add_argument("folder", metavar="DIR")
    lock_folder.add_argument("--reason", default=None)

    unlock_folder = subparsers.add_parser("unlock-folder", help="Release your locks under a folder")
    unlock_folder.add_argument("folder", metavar="DIR")

    subparsers.add_parser("cleanup", help="Delete lock records past their lease")

    # ==================== SYNC ====================

    refresh = subparsers.add_parser("refresh", help="Re-read lock state and report changes")
    refresh.add_argument("--pull", action="store_true", help="Run 'git pull --ff-only' first")

    watch = subparsers.add_parser("watch", help="Refresh periodically and report lock changes")
    watch.add_argument(
        "--interval",
        type=_positive_float,
        default=DEFAULT_WATCH_INTERVAL_SECONDS,
        help=f"Seconds between refreshes (default: {DEFAULT_WATCH_INTERVAL_SECONDS:g})",
    )
    watch.add_argument("--cleanup", action="store_true", help="Delete expired locks on every cycle")
    watch.add_argument("--iterations", type=_positive_int, default=None, help="Stop after N refreshes")

    # ==================== TEAM & CONFIG ====================

    team = subparsers.add_parser("team", help="Manage the team roster")
    team_sub = team.add_subparsers(dest="team_command", metavar="ACTION")
    team_sub.required = True
    team_sub.add_parser("list", help="List team members")
    team_add = team_sub.add_parser("add", help="Add a team member")
    team_add.add_argument("name")
    team_add.add_argument("email")
    team_add.add_argument("--role", choices=["member", "admin"], default="member")
    team_remove = team_sub.add_parser("remove", help="Remove a team member")
    team_remove.add_argument("email")
    team_detect = team_sub.add_parser("detect", help="List commit authors not yet on the roster")
    team_detect.add_argument("--add", action="store_true", help="Add the detected authors as members")

    subparsers.add_parser("config", help="Show effective configuration and shared settings")

    argcomplete.autocomplete(parser)
    return parser


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments"""
    return build_parser().parse_args(argv)
