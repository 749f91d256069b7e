"""Entry point for the ``asset-locks`` command."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from collections.abc import Callable
from pathlib import Path
from typing import NoReturn

from dotenv import load_dotenv

from asset_locks.cli import output
from asset_locks.cli.parser import parse_arguments
from asset_locks.core.colors import ConsoleColors
from asset_locks.core.config import CoordinatorConfig
from asset_locks.core.constants import ENV_VAR_MAPPING
from asset_locks.core.exceptions import AssetLockError, ConfigurationError, VersionControlError
from asset_locks.core.logging import setup_logging
from asset_locks.git.vcs import GitVersionControl
from asset_locks.locks.models import LockResult, utcnow
from asset_locks.locks.sync import SyncResult
from asset_locks.session import LockSession

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def _exit_error(msg: str, code: int = EXIT_USAGE) -> NoReturn:
    """Print a coloured error message to stderr and exit."""
    print(ConsoleColors.error(f"ERROR: {msg}"), file=sys.stderr)
    sys.exit(code)


def _resource_path(session: LockSession, raw: str) -> str:
    """Map a command-line path to a resource path.

    Paths that exist relative to the working directory are resolved through
    it; anything else is taken as repository relative.
    """
    candidate = Path(raw)
    if not candidate.is_absolute() and candidate.exists():
        candidate = candidate.resolve()
    return session.coordinator.resource_path_for(candidate)


def _exit_code(results: list[LockResult]) -> int:
    return EXIT_OK if all(result.success for result in results) else EXIT_FAILURE


def _print_summary(results: list[LockResult], verb: str) -> None:
    succeeded = sum(1 for result in results if result.success)
    failed = len(results) - succeeded
    summary = f"{verb} {succeeded} of {len(results)} file(s)"
    if failed:
        summary += f", {failed} failed"
    print(ConsoleColors.status(failed == 0, summary))


def _warn_diagnostics(session: LockSession) -> None:
    for diagnostic in session.coordinator.pop_diagnostics():
        print(ConsoleColors.warning(f"warning: {diagnostic.resource_path or '?'}: {diagnostic.message}"), file=sys.stderr)


def _publish(session: LockSession, message: str) -> int:
    """Commit and push the coordination directory."""
    if not isinstance(session.vcs, GitVersionControl):
        _exit_error("--publish requires a git working tree")
    try:
        sha = session.vcs.commit(message, [session.layout.coordination_dir])
        if not sha:
            print(ConsoleColors.dim("Nothing to publish"))
            return EXIT_OK
        session.vcs.push()
    except VersionControlError as e:
        print(ConsoleColors.error(f"Publish failed: {e}"), file=sys.stderr)
        return EXIT_FAILURE
    print(ConsoleColors.success(f"Published lock changes ({sha})"))
    return EXIT_OK


# ==================== QUERY COMMANDS ====================


def cmd_status(session: LockSession, args: argparse.Namespace) -> int:
    coordinator = session.coordinator
    if args.mine:
        records, scope = coordinator.list_mine(), "your"
    elif args.others:
        records, scope = coordinator.list_others(), "teammates'"
    else:
        records, scope = coordinator.list_all(), "all"
    _warn_diagnostics(session)

    rows = output.lock_rows(records, session.vcs.current_user_email(), utcnow())
    if args.format != "table":
        output.emit(output.format_rows(rows, output.LOCK_COLUMNS, args.format))
        return EXIT_OK
    if not rows:
        print(ConsoleColors.dim(f"No locks ({scope})"))
        return EXIT_OK
    print(
        output.format_as_table(
            f"{len(rows)} lock(s) ({scope}):",
            rows,
            output.LOCK_COLUMNS,
            output.LOCK_LABELS,
            colorize=output.color_by_state,
        )
    )
    return EXIT_OK


def cmd_info(session: LockSession, args: argparse.Namespace) -> int:
    path = _resource_path(session, args.path)
    record = session.coordinator.query(path)
    _warn_diagnostics(session)
    if args.format == "json":
        output.emit(json.dumps(record.to_dict() if record else None, indent=2))
        return EXIT_OK
    if record is None:
        lockable = session.coordinator.is_lockable(path)
        print(f"{path}: not locked" + ("" if lockable else " (file type cannot be locked)"))
        return EXIT_OK
    if args.format == "csv":
        rows = output.lock_rows([record], session.vcs.current_user_email(), utcnow())
        output.emit(output.format_rows(rows, output.LOCK_COLUMNS, "csv"))
        return EXIT_OK

    now = utcnow()
    mine = session.coordinator.is_owned_by_me(record)
    output.print_banner(path)
    print(f"Owner:    {record.owner.name} <{record.owner.email}>" + (" (you)" if mine else ""))
    print(f"Reason:   {record.reason}")
    print(f"Locked:   {record.locked_at} ({record.time_since_lock(now)})")
    expiry = f"Expires:  {record.expires_at}"
    print(ConsoleColors.warning(f"{expiry} (expired)") if record.is_expired(now) else expiry)
    print(f"Branch:   {record.branch or '-'}")
    print(f"Machine:  {record.machine_id or '-'}")
    print(f"Hash:     {record.content_hash or '-'}")
    return EXIT_OK


def cmd_history(session: LockSession, args: argparse.Namespace) -> int:
    if args.path:
        entries = session.history.entries_for(_resource_path(session, args.path))[: args.limit]
    else:
        entries = session.history.recent_entries(args.limit)
    rows = output.history_rows(entries, utcnow())
    if args.format != "table":
        output.emit(output.format_rows(rows, output.HISTORY_COLUMNS, args.format))
        return EXIT_OK
    if not rows:
        print(ConsoleColors.dim("No lock history"))
        return EXIT_OK
    print(output.format_as_table(f"Last {len(rows)} action(s):", rows, output.HISTORY_COLUMNS, output.HISTORY_LABELS))
    return EXIT_OK


def cmd_check_save(session: LockSession, args: argparse.Namespace) -> int:
    paths = [_resource_path(session, raw) for raw in args.paths]
    check = session.protection.filter_saveable(paths)
    for path in check.allowed:
        print(ConsoleColors.success(f"✓ {path}"))
    for blocked in check.blocked:
        print(ConsoleColors.error(f"✗ {blocked.message}"))
    return EXIT_OK if check.all_allowed else EXIT_FAILURE


# ==================== MUTATING COMMANDS ====================


def cmd_lock(session: LockSession, args: argparse.Namespace) -> int:
    paths = [_resource_path(session, raw) for raw in args.paths]
    results = output.run_with_progress(
        paths,
        lambda items, callback: session.coordinator.lock_many(items, args.reason, on_result=callback),
        "Locking",
        quiet=args.quiet,
    )
    for result in results:
        output.print_result(result)
    if len(results) > 1:
        _print_summary(results, "Locked")

    code = _exit_code(results)
    if args.publish and any(results):
        code = max(code, _publish(session, "Lock: " + ", ".join(r.resource_path for r in results if r)))
    return code


def cmd_unlock(session: LockSession, args: argparse.Namespace) -> int:
    settings = session.settings.settings
    if args.force and settings.require_admin_for_force_unlock and not session.team.is_current_user_admin():
        _exit_error("Force unlock is restricted to team admins", code=EXIT_FAILURE)

    paths = [_resource_path(session, raw) for raw in args.paths]
    results = output.run_with_progress(
        paths,
        lambda items, callback: session.coordinator.unlock_many(items, force=args.force, on_result=callback),
        "Unlocking",
        quiet=args.quiet,
    )
    for result in results:
        output.print_result(result)
    if len(results) > 1:
        _print_summary(results, "Unlocked")

    code = _exit_code(results)
    if args.publish and any(results):
        code = max(code, _publish(session, "Unlock: " + ", ".join(r.resource_path for r in results if r)))
    return code


def cmd_lock_folder(session: LockSession, args: argparse.Namespace) -> int:
    results = session.coordinator.lock_folder(args.folder, args.reason, on_result=output.print_result)
    if not results:
        print(ConsoleColors.dim("No lockable files to lock"))
        return EXIT_OK
    _print_summary(results, "Locked")
    return _exit_code(results)


def cmd_unlock_folder(session: LockSession, args: argparse.Namespace) -> int:
    results = session.coordinator.unlock_folder(args.folder, on_result=output.print_result)
    if not results:
        print(ConsoleColors.dim("None of your locks are under this folder"))
        return EXIT_OK
    _print_summary(results, "Unlocked")
    return _exit_code(results)


def cmd_cleanup(session: LockSession, args: argparse.Namespace) -> int:
    cleaned = session.coordinator.cleanup_expired()
    _warn_diagnostics(session)
    if cleaned:
        print(ConsoleColors.success(f"Cleaned up {cleaned} expired lock(s)"))
    else:
        print(ConsoleColors.dim("No expired locks"))
    return EXIT_OK


# ==================== SYNC COMMANDS ====================


def _print_sync_result(result: SyncResult | None) -> None:
    if result is None:
        return
    if not result.success:
        print(ConsoleColors.error(f"Refresh failed: {result.error}"), file=sys.stderr)
        return
    for path in result.new_locks:
        print(ConsoleColors.lock_state("other", f"+ {path}"))
    for path in result.removed_locks:
        print(ConsoleColors.success(f"- {path}"))


def cmd_refresh(session: LockSession, args: argparse.Namespace) -> int:
    if args.pull:
        if not isinstance(session.vcs, GitVersionControl):
            _exit_error("--pull requires a git working tree")
        try:
            session.vcs.pull()
        except VersionControlError as e:
            print(ConsoleColors.error(f"Pull failed: {e}"), file=sys.stderr)
            return EXIT_FAILURE

    result = session.sync.force_sync()
    _warn_diagnostics(session)
    if result is None or not result.success:
        _print_sync_result(result)
        return EXIT_FAILURE
    print(f"{result.total_locks} lock(s) in repository")
    return EXIT_OK


def cmd_watch(session: LockSession, args: argparse.Namespace) -> int:
    stop_event = threading.Event()
    print(ConsoleColors.info(f"Watching lock changes every {args.interval:g}s (Ctrl+C to stop)"))
    with session.sync.subscribe(_print_sync_result):
        try:
            session.sync.run_periodic(
                args.interval,
                stop_event,
                cleanup_expired=args.cleanup,
                max_iterations=args.iterations,
            )
        except KeyboardInterrupt:
            stop_event.set()
            print()
    return EXIT_OK


# ==================== TEAM & CONFIG ====================


def cmd_team(session: LockSession, args: argparse.Namespace) -> int:
    roster = session.team
    if args.team_command == "list":
        team = roster.get_team()
        rows = [
            {"name": m.name, "email": m.email, "role": m.role, "joined_at": m.joined_at or "-"} for m in team.members
        ]
        header = f"Team '{team.project_name}' ({len(rows)} member(s)):"
        print(output.format_as_table(header, rows, ["name", "email", "role", "joined_at"]))
        return EXIT_OK

    if args.team_command == "add":
        if not roster.add_member(args.name, args.email, args.role):
            print(ConsoleColors.warning(f"{args.email} is already on the team"))
            return EXIT_FAILURE
        print(ConsoleColors.success(f"Added {args.name} <{args.email}> as {args.role}"))
        return EXIT_OK

    if args.team_command == "remove":
        if not roster.remove_member(args.email):
            print(ConsoleColors.warning(f"{args.email} is not on the team"))
            return EXIT_FAILURE
        print(ConsoleColors.success(f"Removed {args.email}"))
        return EXIT_OK

    team = roster.get_team()
    new_members = [member for member in roster.detect_from_history() if team.find(member.email) is None]
    if not new_members:
        print(ConsoleColors.dim("No new commit authors found"))
        return EXIT_OK
    for member in new_members:
        if args.add:
            roster.add_member(member.name, member.email)
            print(ConsoleColors.success(f"Added {member.name} <{member.email}>"))
        else:
            print(f"{member.name} <{member.email}>")
    return EXIT_OK


def cmd_config(session: LockSession, args: argparse.Namespace, config: CoordinatorConfig) -> int:
    output.print_banner("asset-locks configuration")
    print(f"Repository root:  {session.layout.root}")
    print(f"Coordination dir: {session.layout.coordination_dir}")
    print(f"Lease:            {config.lease_hours:g} hour(s)")
    print(f"History cap:      {config.max_history_entries}")
    print(f"Lockable types:   {' '.join(sorted(session.coordinator.policy.extensions))}")
    print(f"User:             {session.vcs.current_user_name()} <{session.vcs.current_user_email()}>")
    print()
    print(ConsoleColors.bold(f"Shared settings ({session.layout.config_file.name}):"))
    for key, value in session.settings.settings.to_dict().items():
        print(f"  {key}: {value}")
    print()
    print(ConsoleColors.bold("Environment variables:"))
    for option, env_var in ENV_VAR_MAPPING.items():
        print(f"  {env_var} ({option})")
    return EXIT_OK


COMMANDS: dict[str, Callable[[LockSession, argparse.Namespace], int]] = {
    "status": cmd_status,
    "info": cmd_info,
    "history": cmd_history,
    "check-save": cmd_check_save,
    "lock": cmd_lock,
    "unlock": cmd_unlock,
    "lock-folder": cmd_lock_folder,
    "unlock-folder": cmd_unlock_folder,
    "cleanup": cmd_cleanup,
    "refresh": cmd_refresh,
    "watch": cmd_watch,
    "team": cmd_team,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the script"""
    load_dotenv()
    args = parse_arguments(argv)

    ConsoleColors.configure(no_color=args.no_color)

    # Machine-readable output on stdout implies quiet logging
    if getattr(args, "format", "table") != "table":
        args.quiet = True

    try:
        config = CoordinatorConfig.from_args(args)
    except ConfigurationError as e:
        _exit_error(str(e))

    logger = setup_logging(
        log_level="ERROR" if args.quiet else config.log.level,
        log_format=config.log.log_format,
        log_file=args.log_file,
    )

    try:
        session = LockSession.open(GitVersionControl(config.root), config, logger=logger)
        if args.command == "config":
            return cmd_config(session, args, config)
        return COMMANDS[args.command](session, args)
    except AssetLockError as e:
        _exit_error(str(e))
    except KeyboardInterrupt:
        print(ConsoleColors.warning("\nInterrupted"), file=sys.stderr)
        return 130
    except OSError as e:
        logging.getLogger(__name__).debug("Unhandled OS error", exc_info=True)
        _exit_error(f"File system error: {e}", code=EXIT_FAILURE)


if __name__ == "__main__":
    sys.exit(main())
