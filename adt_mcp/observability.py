"""Observability module for the ADT MCP server.

Provides:
- Correlation ID generation
- JSON structured logging
- In-memory metrics collection (counters, latency totals, rolling percentiles)
- CSV call audit trail
"""

from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
import logging
from threading import Lock
import time
from typing import Any
import uuid

from adt_mcp.audit import AuditRecord, CallAuditWriter
from adt_mcp.config import McpObservabilityConfig

logger = logging.getLogger(__name__)

DEFAULT_LATENCY_WINDOW = 1000


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for request tracing."""
    return str(uuid.uuid4())[:8]  # Short form for readability


class JsonLogFormatter(logging.Formatter):
    """JSON structured log formatter with correlation ID support."""

    def __init__(self, include_correlation_id: bool = True):
        super().__init__()
        self.include_correlation_id = include_correlation_id

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }

        if self.include_correlation_id and hasattr(record, "correlation_id"):
            log_data["cid"] = record.correlation_id

        if hasattr(record, "tool"):
            log_data["tool"] = record.tool
        if hasattr(record, "latency_ms"):
            log_data["latency_ms"] = record.latency_ms
        if hasattr(record, "status"):
            log_data["status"] = record.status
        if hasattr(record, "error"):
            log_data["error"] = record.error
        if getattr(record, "error_code", None) is not None:
            log_data["error_code"] = record.error_code

        if record.exc_info:
            log_data["exc"] = self.formatException(record.exc_info)

        return json.dumps(log_data, separators=(",", ":"))


def _percentile(samples: list[float], pct: float) -> float:
    """Nearest-rank percentile of an unsorted sample list."""
    if not samples:
        return 0.0
    ordered = sorted(samples)
    rank = max(0, min(len(ordered) - 1, round(pct / 100 * len(ordered)) - 1))
    return ordered[rank]


@dataclass
class ToolMetrics:
    """Metrics for a single tool (or for all tools together)."""

    window_size: int = DEFAULT_LATENCY_WINDOW
    call_count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_latency_ms: float = 0.0
    min_latency_ms: float = float("inf")
    max_latency_ms: float = 0.0
    recent_latency_ms: deque[float] = field(init=False)

    def __post_init__(self) -> None:
        self.recent_latency_ms = deque(maxlen=self.window_size)

    @property
    def avg_latency_ms(self) -> float:
        if self.call_count == 0:
            return 0.0
        return self.total_latency_ms / self.call_count

    def add(self, latency_ms: float, success: bool) -> None:
        self.call_count += 1
        if success:
            self.success_count += 1
        else:
            self.error_count += 1
        self.total_latency_ms += latency_ms
        self.min_latency_ms = min(self.min_latency_ms, latency_ms)
        self.max_latency_ms = max(self.max_latency_ms, latency_ms)
        self.recent_latency_ms.append(latency_ms)

    def snapshot(self) -> dict[str, Any]:
        recent = list(self.recent_latency_ms)
        return {
            "calls": self.call_count,
            "succeeded": self.success_count,
            "errors": self.error_count,
            "total_ms": round(self.total_latency_ms, 2),
            "avg_ms": round(self.avg_latency_ms, 2),
            "min_ms": round(self.min_latency_ms, 2) if self.min_latency_ms != float("inf") else 0,
            "max_ms": round(self.max_latency_ms, 2),
            "p50_ms": round(_percentile(recent, 50), 2),
            "p95_ms": round(_percentile(recent, 95), 2),
            "window": len(recent),
        }


class MetricsCollector:
    """In-memory metrics collector for the MCP server.

    Thread-safe collection of:
    - Per-tool attempted/succeeded/failed counts and latencies
    - Global totals over all tools
    - Rolling latency window for p50/p95 estimates
    """

    def __init__(self, latency_window: int = DEFAULT_LATENCY_WINDOW):
        self._lock = Lock()
        self._window = latency_window
        self._tools: dict[str, ToolMetrics] = defaultdict(self._new_metrics)
        self._total = self._new_metrics()
        self._start_time: float = time.time()

    def _new_metrics(self) -> ToolMetrics:
        return ToolMetrics(window_size=self._window)

    def record_call(self, tool: str, latency_ms: float, success: bool) -> None:
        """Record a tool call with metrics."""
        latency_ms = max(0.0, latency_ms)
        with self._lock:
            self._total.add(latency_ms, success)
            self._tools[tool].add(latency_ms, success)

    def get_stats(self) -> dict[str, Any]:
        """Get current metrics snapshot."""
        with self._lock:
            total = self._total.snapshot()
            return {
                "uptime_s": round(time.time() - self._start_time, 1),
                "attempted": self._total.call_count,
                "succeeded": self._total.success_count,
                "failed": self._total.error_count,
                "error_rate": round(self._total.error_count / max(1, self._total.call_count), 4),
                "latency": {k: v for k, v in total.items() if k.endswith("_ms") or k == "window"},
                "tools": {name: m.snapshot() for name, m in self._tools.items()},
            }

    def reset(self) -> None:
        """Reset all metrics (for testing)."""
        with self._lock:
            self._tools.clear()
            self._total = self._new_metrics()
            self._start_time = time.time()


class ObservabilityContext:
    """Unified observability context for the MCP server.

    Manages:
    - Metrics collection (always on)
    - Call audit CSV (opt-in)

    Usage:
        obs = ObservabilityContext(config.observability)

        # In a tool handler:
        start = time.perf_counter()
        # ... backend call ...
        obs.observe("getObjectStructure", start, succeeded=True)
    """

    def __init__(self, config: McpObservabilityConfig | None = None):
        self.config = config or McpObservabilityConfig()
        self.metrics = MetricsCollector(latency_window=self.config.latency_window)
        self.audit = CallAuditWriter(
            csv_path=self.config.csv_path,
            enabled=self.config.csv_audit_enabled,
        )

    def correlation_id(self) -> str:
        """Generate a new correlation ID."""
        return generate_correlation_id()

    def observe(self, tool: str, start: float, succeeded: bool) -> None:
        """Fold one finished call into the metrics. Never raises."""
        try:
            latency_ms = (time.perf_counter() - start) * 1000
            self.metrics.record_call(tool=tool, latency_ms=latency_ms, success=succeeded)
        except Exception:
            logger.warning(f"Failed to record metrics for {tool}", exc_info=True)

    def audit_call(
        self, correlation_id: str, tool: str, latency_ms: float, error_code: int | None = None
    ) -> None:
        """Append to the audit trail (``error_code`` None means success). Never raises."""
        try:
            self.audit.record(AuditRecord(correlation_id, tool, latency_ms, error_code))
        except Exception:
            logger.warning(f"Failed to write audit record for {tool}", exc_info=True)

    def get_stats(self) -> dict[str, Any]:
        """Get current metrics snapshot."""
        return self.metrics.get_stats()


def setup_logging(config: McpObservabilityConfig, logger_name: str = "adt_mcp") -> logging.Logger:
    """Configure logging based on observability settings.

    Handlers always write to stderr; stdout carries the stdio MCP stream.

    Args:
        config: Observability configuration
        logger_name: Name of logger to configure

    Returns:
        Configured logger instance
    """
    root_logger = logging.getLogger(logger_name)
    root_logger.handlers.clear()

    level = getattr(logging, config.log_level.upper(), logging.INFO)
    root_logger.setLevel(level)

    handler = logging.StreamHandler()
    handler.setLevel(level)

    if config.log_format == "json":
        handler.setFormatter(JsonLogFormatter(
            include_correlation_id=config.include_correlation_id
        ))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        ))

    root_logger.addHandler(handler)

    return root_logger
