"""Logging setup for asset-locks.

Lock operations attach context (the resource path, sometimes the user)
through :func:`with_log_context`. Text output appends that context in
brackets; JSON output promotes it to top-level keys.
"""

import atexit
import json
import logging
import os
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from asset_locks.core.constants import LOG_FILE_BACKUP_COUNT, LOG_FILE_MAX_BYTES

PACKAGE_LOGGER = "asset_locks"
TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Attributes every LogRecord carries; anything else was supplied as context
_STANDARD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

_shutdown_hooked = False


def _context_fields(record: logging.LogRecord) -> dict[str, object]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if isinstance(key, str) and key not in _STANDARD_ATTRS and not key.startswith("_")
    }


def _render_message(record: logging.LogRecord) -> str:
    try:
        return record.getMessage()
    except Exception:
        # A bad %-placeholder must not take the caller down with it
        return f"{record.msg!s} [unformattable arguments: {record.args!r}]"


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers.

    Context fields (``resource``, ``user`` and anything passed via
    ``extra=``) become top-level keys next to the standard ones.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": _render_message(record),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process": record.process,
            "thread": record.threadName,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        for key, value in _context_fields(record).items():
            entry.setdefault(key, value)
        return json.dumps(entry, default=str)


class ContextTextFormatter(logging.Formatter):
    """Plain text with context appended, e.g. ``Locked a.png [resource=a.png]``."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context_fields(record)
        if not context:
            return line
        rendered = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        return f"{line} [{rendered}]"


class ContextLoggerAdapter(logging.LoggerAdapter):
    """Adapter whose context is merged with, not replaced by, per-call ``extra``."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def with_log_context(logger, **context):
    """Return an adapter that stamps ``context`` on every record.

    Stacking is allowed: wrapping an adapter keeps its fields and adds the
    new ones. None values are dropped. Objects that are neither loggers nor
    adapters (test doubles) are returned unchanged.
    """
    if isinstance(logger, ContextLoggerAdapter):
        fields = dict(logger.extra)
        base = logger.logger
    elif isinstance(logger, logging.Logger):
        fields = {}
        base = logger
    else:
        return logger
    fields.update({key: value for key, value in context.items() if value is not None})
    return ContextLoggerAdapter(base, fields)


def _resolve_level(log_level: str | None) -> str:
    level = (log_level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    if level not in LOG_LEVELS:
        print(f"Warning: Invalid log level '{log_level or level}', using INFO", file=sys.stderr)
        return "INFO"
    return level


def setup_logging(
    log_level: str | None = None,
    log_format: str = "text",
    log_file: Path | str | None = None,
) -> logging.Logger:
    """Configure root handlers for a CLI run and return the package logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL. Falls back to the
            LOG_LEVEL environment variable, then INFO
        log_format: "text" or "json"
        log_file: Optional path for a rotating log file (parents are created)
    """
    global _shutdown_hooked
    if not _shutdown_hooked:
        atexit.register(logging.shutdown)
        _shutdown_hooked = True

    level = _resolve_level(log_level)
    numeric_level = getattr(logging, level)

    for handler in list(logging.root.handlers):
        handler.close()
        logging.root.removeHandler(handler)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        log_path = Path(log_file)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(RotatingFileHandler(log_path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUP_COUNT))
        except OSError as e:
            print(f"Warning: Cannot open log file {log_path}: {e}. Logging to console only.", file=sys.stderr)

    formatter = JSONFormatter() if log_format.lower() == "json" else ContextTextFormatter(TEXT_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(numeric_level)
        logging.root.addHandler(handler)
    logging.root.setLevel(numeric_level)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.NOTSET)
    logger.debug("Logging initialized at %s (%s format)", level, log_format)
    return logger
