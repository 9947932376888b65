"""Audit log — one JSONL line per dispatch decision, one file per UTC day.

Files live under ~/.sqlgate/logs/<project-slug>/YYYY-MM-DD.jsonl, where the
slug is the working directory with path separators folded into dashes.
Both accepted and rejected calls are recorded; rejected ones carry the
validation code and reason.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from datetime import UTC, date, datetime, timedelta
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30
_LOG_ROOT = Path.home() / ".sqlgate" / "logs"


def _project_slug() -> str:
    return os.getcwd().replace(os.sep, "-").replace("/", "-").lstrip("-")


def _log_dir() -> Path:
    return _LOG_ROOT / _project_slug()


def _log_file(day: date) -> Path:
    return _log_dir() / f"{day.isoformat()}.jsonl"


def log_dispatch(
    *,
    tool: str,
    operation: str | None,
    sql: str,
    accepted: bool,
    code: str | None = None,
    reason: str | None = None,
    db: str | None = None,
    row_count: int | None = None,
    duration_ms: float | None = None,
    error: str | None = None,
) -> None:
    """Append one dispatch decision to today's file."""
    now = datetime.now(UTC)
    entry = {
        "ts": now.isoformat(),
        "tool": tool,
        "operation": operation,
        "db": db,
        "sql": sql,
        "accepted": accepted,
        "code": code,
        "reason": reason,
        "row_count": row_count,
        "duration_ms": duration_ms,
        "error": error,
    }

    path = _log_file(now.date())
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(entry, default=str) + "\n")


def cleanup_old_logs(*, retention_days: int = DEFAULT_RETENTION_DAYS) -> int:
    """Remove day files older than `retention_days`; return how many went.

    Files whose name is not a date are left alone. The project directory is
    removed once it is empty.
    """
    directory = _log_dir()
    if not directory.is_dir():
        return 0

    oldest_kept = datetime.now(UTC).date() - timedelta(days=retention_days)
    removed = 0
    for path in sorted(directory.glob("*.jsonl")):
        try:
            day = date.fromisoformat(path.stem)
        except ValueError:
            continue
        if day < oldest_kept:
            path.unlink()
            removed += 1

    if removed:
        logger.info("Removed %d audit log file(s) older than %d days", removed, retention_days)
    with contextlib.suppress(OSError):
        directory.rmdir()
    return removed
