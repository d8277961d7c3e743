"""
Tool call audit trail.

One CSV row per handled call: when it ran, which tool, how long it took
and, for failures, the JSON-RPC code the caller received. An empty
``error_code`` means the call succeeded.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from pathlib import Path
from threading import Lock

logger = logging.getLogger(__name__)

AUDIT_COLUMNS = ("timestamp", "correlation_id", "tool", "outcome", "error_code", "latency_ms")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class AuditRecord:
    """A finished tool call as seen by the caller."""

    correlation_id: str
    tool: str
    latency_ms: float
    error_code: int | None = None
    timestamp: str = field(default_factory=_utc_now)

    @property
    def outcome(self) -> str:
        return "ok" if self.error_code is None else "error"

    def as_row(self) -> list[str | int | float]:
        return [
            self.timestamp,
            self.correlation_id,
            self.tool,
            self.outcome,
            "" if self.error_code is None else self.error_code,
            round(self.latency_ms, 2),
        ]


class CallAuditWriter:
    """Append-only CSV sink for ``AuditRecord`` rows.

    The file and its parent directory are created on the first write. A file
    left behind with a different column layout is moved aside to ``*.old``
    so rows never land under the wrong header.
    """

    def __init__(self, csv_path: str | Path, enabled: bool = True):
        self.csv_path = Path(csv_path)
        self.enabled = enabled
        self._lock = Lock()
        self._ready = False

    def _prepare(self) -> None:
        if self._ready:
            return

        self.csv_path.parent.mkdir(parents=True, exist_ok=True)
        if self.csv_path.exists() and self._header() != list(AUDIT_COLUMNS):
            stale = self.csv_path.with_name(self.csv_path.name + ".old")
            logger.warning(f"Audit file {self.csv_path} has another layout, moved to {stale}")
            self.csv_path.replace(stale)
        if not self.csv_path.exists():
            with open(self.csv_path, "w", newline="") as f:
                csv.writer(f).writerow(AUDIT_COLUMNS)

        self._ready = True

    def _header(self) -> list[str]:
        with open(self.csv_path, newline="") as f:
            return next(csv.reader(f), [])

    def record(self, entry: AuditRecord) -> None:
        if not self.enabled:
            return

        with self._lock:
            self._prepare()
            with open(self.csv_path, "a", newline="") as f:
                csv.writer(f).writerow(entry.as_row())
