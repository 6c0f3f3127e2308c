"""
Observability for fleetadapter.

Structured logging for reconciliation runs. Module code logs through
plain `logging.getLogger(__name__)`; the executor additionally emits
structured events through ReconcileLogger so every resource outcome
can be searched by resource name, transport and operation.

Example output:
    {"timestamp": "2026-01-02T10:30:00+00:00", "level": "info",
     "message": "Resource applied", "resource": "cluster-namespace",
     "transport": "maestro", "operation": "create",
     "reason": "resource not found"}
"""
from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

_STRUCTURED = "_fleetadapter_structured"
_HANDLER_NAME = "_fleetadapter_handler"

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# =============================================================================
# Log Levels
# =============================================================================


class LogLevel(Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


# =============================================================================
# Structured Logger
# =============================================================================


class StructuredLogger(Protocol):
    """Logs a message with key-value context."""

    def debug(self, message: str, **context: Any) -> None: ...

    def info(self, message: str, **context: Any) -> None: ...

    def warning(self, message: str, **context: Any) -> None: ...

    def error(self, message: str, **context: Any) -> None: ...


@dataclass
class JSONLogger:
    """
    Structured logger that outputs one JSON object per entry.

    Each entry carries timestamp, level, message, the bound context and,
    when set, a correlation_id tying all entries of one reconcile run
    together.
    """

    name: str = "fleetadapter"
    correlation_id: str | None = None
    extra_context: dict[str, Any] = field(default_factory=dict)
    _python_logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._python_logger = logging.getLogger(self.name)

    def _log(self, level: LogLevel, message: str, context: dict[str, Any]) -> None:
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level.value,
            "message": message,
            **self.extra_context,
            **context,
        }
        if self.correlation_id:
            record["correlation_id"] = self.correlation_id

        log_method = getattr(self._python_logger, level.value)
        log_method(json.dumps(record, default=str), extra={_STRUCTURED: True})

    def debug(self, message: str, **context: Any) -> None:
        self._log(LogLevel.DEBUG, message, context)

    def info(self, message: str, **context: Any) -> None:
        self._log(LogLevel.INFO, message, context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(LogLevel.WARNING, message, context)

    def error(self, message: str, **context: Any) -> None:
        self._log(LogLevel.ERROR, message, context)

    def with_context(self, **extra: Any) -> JSONLogger:
        """Create a new logger with additional context."""
        return JSONLogger(
            name=self.name,
            correlation_id=self.correlation_id,
            extra_context={**self.extra_context, **extra},
        )


# =============================================================================
# Reconcile Logger
# =============================================================================


@dataclass
class ReconcileLogger:
    """
    Event logger for the resource executor.

    Example:
        log = ReconcileLogger(correlation_id="evt-123")
        log.resource_applied("cluster-ns", "kubernetes", "create", "resource not found", 12.5)
        log.discovery_failed("cluster-ns", "Namespace/cluster-abc not found")
    """

    correlation_id: str | None = None
    inner: StructuredLogger | None = None

    def __post_init__(self) -> None:
        if self.inner is None:
            self.inner = JSONLogger(name="fleetadapter.reconcile", correlation_id=self.correlation_id)

    def resource_started(self, resource: str, transport: str) -> None:
        self.inner.debug("Resource started", resource=resource, transport=transport)

    def resource_applied(
        self,
        resource: str,
        transport: str,
        operation: str,
        reason: str,
        duration_ms: float,
    ) -> None:
        self.inner.info(
            "Resource applied",
            resource=resource,
            transport=transport,
            operation=operation,
            reason=reason,
            duration_ms=round(duration_ms, 2),
        )

    def resource_failed(
        self,
        resource: str,
        transport: str,
        error: str,
        error_type: str,
        duration_ms: float,
    ) -> None:
        self.inner.error(
            "Resource failed",
            resource=resource,
            transport=transport,
            error=error,
            error_type=error_type,
            duration_ms=round(duration_ms, 2),
        )

    def discovery_failed(self, resource: str, error: str, nested: str | None = None) -> None:
        self.inner.warning(
            "Discovery after apply failed",
            resource=resource,
            nested=nested,
            error=error,
        )


# =============================================================================
# Handler setup
# =============================================================================


class JSONFormatter(logging.Formatter):
    """
    Formats records as JSON objects.

    Records produced by JSONLogger are already JSON and pass through.
    """

    def format(self, record: logging.LogRecord) -> str:
        if getattr(record, _STRUCTURED, False):
            return record.getMessage()

        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str | int = logging.INFO, json_format: bool = False) -> None:
    """
    Install (or reconfigure) a stdout handler on the root logger.

    Calling it again replaces the formatter and level of the handler it
    installed earlier instead of adding a second one.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    formatter: logging.Formatter = JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT)
    root = logging.getLogger()

    handler = next((h for h in root.handlers if getattr(h, _HANDLER_NAME, False)), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        setattr(handler, _HANDLER_NAME, True)
        root.addHandler(handler)

    handler.setFormatter(formatter)
    handler.setLevel(level)
    root.setLevel(level)
