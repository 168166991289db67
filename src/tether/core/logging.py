# Tether
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
#
# This file is part of Tether.
#
# Tether is dual-licensed:
#
# 1. Open Source: GNU Affero General Public License v3.0 (AGPL-3.0)
# 2. Commercial: Available from Phoenix Link (Pty) Ltd
#
# Contributions require a signed CLA. See COPYRIGHT.md and CLA.md.
"""
Tether -- Log setup

Modules log through ``logging.getLogger("tether.<module>")``. This
module wires those loggers to a rotating file users can tail to see
exactly which requests were allowed, blocked or failed.

LOG LOCATION:
    ~/.tether/logs/tether.log        (current)
    ~/.tether/logs/tether.log.1      (previous rotation)

RULES:
    - Single log file, max 10 MB before rotation
    - Log folder purges oldest files once it exceeds 1 GB
    - WARNING and above also go to stderr

USAGE:
    from tether.core.logging import configure_logging
    configure_logging(log_dir="~/.tether/logs", level="INFO")
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path

# =============================================================================
# CONSTANTS
# =============================================================================

MAX_LOG_FILE_BYTES = 10 * 1024 * 1024  # 10 MB per file
MAX_LOG_FOLDER_BYTES = 1024 * 1024 * 1024  # 1 GB total
LOG_BACKUP_COUNT = 20
LOG_FILE_NAME = "tether.log"
ROOT_LOGGER_NAME = "tether"

_HANDLER_TAG = "_tether_handler"


# =============================================================================
# FORMATTER
# =============================================================================


class TetherLogFormatter(logging.Formatter):
    """
    Format: TIMESTAMP | LEVEL | COMPONENT | MESSAGE

    Example:
    2026-02-09T17:30:45.123Z | INFO  | manager      | Request completed: GET https://api.example.com/data -> 200 (84 ms)
    2026-02-09T17:30:46.501Z | WARNING | manager    | Kill switch engaged: now offline (was connected, 0 request(s) in flight)
    """

    LEVEL_WIDTH = 5
    COMPONENT_WIDTH = 12

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.fromtimestamp(record.created, tz=timezone.utc)
        ts = now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"

        # "tether.connectivity.manager" -> "manager"
        component = record.name.rsplit(".", 1)[-1]
        line = (
            f"{ts} | {record.levelname:<{self.LEVEL_WIDTH}} | "
            f"{component:<{self.COMPONENT_WIDTH}} | {record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


# =============================================================================
# FOLDER PURGE
# =============================================================================


def _purge_old_logs(log_dir: Path, max_bytes: int = MAX_LOG_FOLDER_BYTES) -> int:
    """Delete oldest rotated log files while the folder exceeds max_bytes.

    Returns the number of files removed.
    """
    removed = 0
    try:
        log_files = sorted(
            (f for f in log_dir.iterdir() if f.is_file() and f.name.startswith(LOG_FILE_NAME)),
            key=lambda f: f.stat().st_mtime,
        )
        total_size = sum(f.stat().st_size for f in log_files)

        while total_size > max_bytes and len(log_files) > 1:
            oldest = log_files.pop(0)
            total_size -= oldest.stat().st_size
            oldest.unlink()
            removed += 1
    except OSError as exc:
        logging.getLogger("tether.core.logging").warning("Log purge failed: %s", exc)
    return removed


# =============================================================================
# SETUP
# =============================================================================


def configure_logging(
    log_dir: str | Path | None = None,
    level: str = "INFO",
    stderr: bool = True,
) -> Path:
    """Attach Tether's file (and stderr) handlers to the ``tether`` logger.

    Safe to call more than once: handlers installed by a previous call
    are replaced, handlers installed by anyone else are left alone.

    Returns the path of the active log file.
    """
    directory = Path(log_dir).expanduser() if log_dir else Path.home() / ".tether" / "logs"
    directory.mkdir(parents=True, exist_ok=True)
    log_file = directory / LOG_FILE_NAME

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()

    file_handler = logging.handlers.RotatingFileHandler(
        str(log_file),
        maxBytes=MAX_LOG_FILE_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(TetherLogFormatter())
    setattr(file_handler, _HANDLER_TAG, True)
    root.addHandler(file_handler)

    if stderr:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(logging.WARNING)
        stderr_handler.setFormatter(TetherLogFormatter())
        setattr(stderr_handler, _HANDLER_TAG, True)
        root.addHandler(stderr_handler)

    _purge_old_logs(directory)

    root.info("Logging initialized (file=%s, level=%s)", log_file, level.upper())
    return log_file
