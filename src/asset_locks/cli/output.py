"""Rendering helpers for CLI output: tables, CSV/JSON export and progress bars."""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterable
from datetime import datetime

import pandas as pd
from tqdm import tqdm

from asset_locks.core.colors import ConsoleColors
from asset_locks.core.constants import BANNER_WIDTH, PROGRESS_BAR_THRESHOLD
from asset_locks.locks.models import HistoryEntry, LockRecord, LockResult

LOCK_COLUMNS = ["resource_path", "owner", "email", "reason", "locked", "expires_at", "branch", "state"]
LOCK_LABELS = ["Resource", "Owner", "Email", "Reason", "Locked", "Expires", "Branch", "State"]
HISTORY_COLUMNS = ["timestamp", "when", "action", "resource_path", "user", "reason", "branch"]
HISTORY_LABELS = ["Timestamp", "When", "Action", "Resource", "User", "Reason", "Branch"]


def lock_rows(records: Iterable[LockRecord], my_email: str, now: datetime) -> list[dict]:
    rows = []
    for record in records:
        if record.is_expired(now):
            state = "expired"
        elif record.is_owned_by(my_email):
            state = "mine"
        else:
            state = "other"
        rows.append(
            {
                "resource_path": record.resource_path,
                "owner": record.owner.name,
                "email": record.owner.email,
                "reason": record.reason,
                "locked": record.time_since_lock(now),
                "locked_at": record.locked_at,
                "expires_at": record.expires_at,
                "branch": record.branch,
                "machine_id": record.machine_id,
                "content_hash": record.content_hash,
                "state": state,
            }
        )
    return rows


def history_rows(entries: Iterable[HistoryEntry], now: datetime) -> list[dict]:
    return [
        {
            "timestamp": entry.timestamp,
            "when": entry.formatted_time(now),
            "action": entry.action.value,
            "resource_path": entry.resource_path,
            "user": entry.user,
            "email": entry.email,
            "reason": entry.reason,
            "branch": entry.branch,
        }
        for entry in entries
    ]


def format_as_table(
    header_line: str,
    items: list[dict],
    columns: list[str],
    col_labels: list[str] | None = None,
    colorize: Callable[[dict, str], str] | None = None,
) -> str:
    """Format rows as an aligned text table.

    Args:
        header_line: Summary line (e.g. "3 lock(s):").
        items: List of dicts, one per row.
        columns: Dict keys to include, in order.
        col_labels: Display labels for each column (defaults to title-cased keys).
        colorize: Optional hook returning a colored version of a row's line.
    """
    labels = col_labels or [c.replace("_", " ").title() for c in columns]
    widths = [
        max(len(lbl), max((len(str(item.get(col, ""))) for item in items), default=0)) + 2
        for col, lbl in zip(columns, labels, strict=True)
    ]
    lines: list[str] = ["", header_line, ""]
    lines.append("".join(f"{lbl:<{w}}" for lbl, w in zip(labels, widths, strict=True)))
    lines.append("-" * sum(widths))
    for item in items:
        line = "".join(f"{item.get(col, '')!s:<{w}}" for col, w in zip(columns, widths, strict=True)).rstrip()
        lines.append(colorize(item, line) if colorize else line)
    lines.append("")
    return "\n".join(lines)


def color_by_state(item: dict, line: str) -> str:
    return ConsoleColors.lock_state(item.get("state", ""), line)


def format_rows(rows: list[dict], columns: list[str], output_format: str) -> str:
    """Serialize rows as CSV or JSON through a DataFrame."""
    frame = pd.DataFrame(rows, columns=columns)
    if output_format == "csv":
        return frame.to_csv(index=False)
    if output_format == "json":
        return frame.to_json(orient="records", indent=2) + "\n"
    raise ValueError(f"Unsupported output format: {output_format}")


def emit(text: str) -> None:
    sys.stdout.write(text if text.endswith("\n") else f"{text}\n")
    sys.stdout.flush()


def print_banner(title: str) -> None:
    print("=" * BANNER_WIDTH)
    print(ConsoleColors.bold(title))
    print("=" * BANNER_WIDTH)


def print_result(result: LockResult) -> None:
    marker = "✓" if result.success else "✗"
    print(ConsoleColors.status(result.success, f"{marker} {result.resource_path}: {result.message}"))
    for diagnostic in result.diagnostics:
        print(ConsoleColors.warning(f"  ! {diagnostic.message}"))


def run_with_progress(
    items: list[str],
    operation: Callable[[list[str], Callable[[LockResult], None]], list[LockResult]],
    description: str,
    quiet: bool = False,
) -> list[LockResult]:
    """Run a batch operation with a progress bar for larger batches."""
    disable = quiet or len(items) < PROGRESS_BAR_THRESHOLD
    with tqdm(
        total=len(items),
        desc=description,
        unit="file",
        bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}]",
        disable=disable,
    ) as pbar:

        def on_result(result: LockResult) -> None:
            pbar.set_postfix_str(f"{'✓' if result.success else '✗'} {(result.resource_path or '')[-30:]}", refresh=False)
            pbar.update(1)

        return operation(items, on_result)
