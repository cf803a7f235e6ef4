"""Structured logging for peerlock processes.

Provides:
- JSON-formatted logs for log aggregation systems (ELK, Loki, etc.)
- Peer and resource context on every line
- A human-readable console format for development

Usage:
    from peerlock.observability.logging import LogContext, configure_logging

    configure_logging(json_format=False, level="DEBUG")

    with LogContext(peer_id=coordinator.peer_id, resource="printer"):
        logger.info("Holding lock")  # Includes peer_id and resource
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# Context variables identifying the peer that is logging
peer_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("peer_id", default="")
resource_var: contextvars.ContextVar[str] = contextvars.ContextVar("resource", default="")

# Standard LogRecord attributes, never copied as extra fields
_STANDARD_ATTRS = {
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "exc_info",
    "exc_text",
    "thread",
    "threadName",
    "taskName",
    "message",
}


def _context_fields(record: logging.LogRecord) -> dict[str, str]:
    """Peer/resource from the record's extras, falling back to the context."""
    fields: dict[str, str] = {}
    peer_id = getattr(record, "peer_id", "") or peer_id_var.get()
    if peer_id:
        fields["peer_id"] = peer_id
    resource = getattr(record, "resource", "") or resource_var.get()
    if resource:
        fields["resource"] = resource
    return fields


class JsonFormatter(logging.Formatter):
    """JSON log formatter with peer context.

    Output format:
    {
        "timestamp": "2026-01-10T12:34:56.789Z",
        "level": "INFO",
        "logger": "peerlock.lock.coordinator",
        "message": "Peer 3f2a... became owner of 'printer'",
        "module": "coordinator",
        "function": "_become_owner",
        "line": 42,
        "peer_id": "3f2a...",
        "resource": "printer"
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        log_data.update(_context_fields(record))

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key in log_data or key in _STANDARD_ATTRS or key.startswith("_"):
                continue
            try:
                json.dumps(value)  # Verify it's JSON serializable
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = str(value)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for development.

    Output format:
    2026-01-10 12:34:56 | INFO | peerlock.lock.coordinator | Peer ... became owner | peer=3f2a9c1e
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level, "")
            level = f"{color}{level}{self.RESET}"

        message = record.getMessage()

        fields = _context_fields(record)
        context_parts = []
        if "peer_id" in fields:
            context_parts.append(f"peer={fields['peer_id'][:8]}")
        if "resource" in fields:
            context_parts.append(f"res={fields['resource']}")
        context = f" | {' '.join(context_parts)}" if context_parts else ""

        result = f"{timestamp} | {level:8} | {record.name} | {message}{context}"

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result


def configure_logging(
    json_format: bool = True,
    level: str = "INFO",
    use_colors: bool = True,
) -> None:
    """Configure process-wide logging.

    Args:
        json_format: Use JSON format (recommended for production)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_colors: Use ANSI colors in console format
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)

    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(ConsoleFormatter(use_colors=use_colors))

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


class LogContext:
    """Context manager for adding temporary peer context to logs.

    Usage:
        with LogContext(peer_id="3f2a...", resource="printer"):
            logger.info("Waiting for ownership")
    """

    def __init__(self, **kwargs: Any) -> None:
        self.extra = kwargs
        self._tokens: dict[str, contextvars.Token[str]] = {}

    def __enter__(self) -> "LogContext":
        if "peer_id" in self.extra:
            self._tokens["peer_id"] = peer_id_var.set(self.extra["peer_id"])
        if "resource" in self.extra:
            self._tokens["resource"] = resource_var.set(self.extra["resource"])
        return self

    def __exit__(self, *args: Any) -> None:
        for key, token in self._tokens.items():
            if key == "peer_id":
                peer_id_var.reset(token)
            elif key == "resource":
                resource_var.reset(token)
