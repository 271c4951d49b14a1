"""
Structured logging configuration for Permscope.

Provides consistent logging across all modules with human-readable and
JSON output formats.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

# LogRecord attributes that are not user-supplied extra fields
_RESERVED_RECORD_FIELDS = frozenset({
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
})


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs structured JSON logs.

    Useful for shipping logs to Azure Monitor or another aggregation system.
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        include_location: bool = False,
        extra_fields: dict[str, Any] | None = None,
    ):
        """
        Initialize structured formatter.

        Args:
            include_timestamp: Include timestamp in output
            include_level: Include log level in output
            include_logger: Include logger name in output
            include_location: Include file/line location
            extra_fields: Additional fields to include in every log
        """
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.include_location = include_location
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {}

        if self.include_timestamp:
            log_data["timestamp"] = (
                datetime.fromtimestamp(record.created, tz=timezone.utc)
                .isoformat()
                .replace("+00:00", "Z")
            )

        if self.include_level:
            log_data["level"] = record.levelname.lower()

        if self.include_logger:
            log_data["logger"] = record.name

        log_data["message"] = record.getMessage()

        if self.include_location:
            log_data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_FIELDS:
                log_data[key] = value

        log_data.update(self.extra_fields)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Formatter that outputs human-readable logs.

    Useful for local runs.
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(
        self,
        use_colors: bool = True,
        include_timestamp: bool = True,
        include_level: bool = True,
    ):
        """
        Initialize human-readable formatter.

        Args:
            use_colors: Use ANSI colors in output
            include_timestamp: Include timestamp in output
            include_level: Include log level in output
        """
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()
        self.include_timestamp = include_timestamp
        self.include_level = include_level

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as human-readable text."""
        parts = []

        if self.include_timestamp:
            timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
            parts.append(f"[{timestamp.strftime('%Y-%m-%d %H:%M:%S')}]")

        if self.include_level:
            level = record.levelname
            if self.use_colors and level in self.COLORS:
                level = f"{self.COLORS[level]}{level}{self.RESET}"
            parts.append(f"{level:>8}")

        parts.append(f"{record.name}:")
        parts.append(record.getMessage())

        output = " ".join(parts)

        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)

        return output


class PermscopeLogger:
    """
    Wrapper around Python logging for analysis events.

    Attaches keyword fields and an ``event_type`` field to each record,
    which the structured formatter emits as JSON fields.
    """

    def __init__(self, name: str, level: int | None = None):
        """
        Initialize logger.

        Args:
            name: Logger name
            level: Optional log level for this logger
        """
        self.logger = logging.getLogger(name)
        if level is not None:
            self.logger.setLevel(level)

    def _log(
        self,
        level: int,
        message: str,
        exc_info: bool = False,
        **kwargs: Any,
    ) -> None:
        """Internal logging method with event fields."""
        self.logger.log(level, message, exc_info=exc_info, extra=kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        """Log error message."""
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def analysis_started(self, app_id: str, window_start: str, window_end: str) -> None:
        """Log start of one application's analysis."""
        self.debug(
            f"Analysis started for {app_id}",
            event_type="analysis.started",
            app_id=app_id,
            window_start=window_start,
            window_end=window_end,
        )

    def analysis_completed(
        self,
        app_id: str,
        status: str,
        activity_count: int,
        permission_count: int,
        unmatched_count: int,
        duration_seconds: float,
    ) -> None:
        """Log completion of one application's analysis."""
        self.info(
            f"Analysis {status} for {app_id}: {activity_count} activities, "
            f"{permission_count} permissions, {unmatched_count} unmatched",
            event_type="analysis.completed",
            app_id=app_id,
            status=status,
            activity_count=activity_count,
            permission_count=permission_count,
            unmatched_count=unmatched_count,
            duration_seconds=duration_seconds,
        )

    def application_failed(self, app_id: str, error: str) -> None:
        """Log failure of one application's analysis."""
        self.error(
            f"Analysis failed for {app_id}: {error}",
            event_type="analysis.failed",
            app_id=app_id,
            error=error,
        )

    def window_split(
        self,
        principal_id: str,
        window_start: str,
        window_end: str,
        max_entries: int,
    ) -> None:
        """Log an oversized window being bisected."""
        self.debug(
            f"Response too large for {principal_id}, splitting "
            f"{window_start} - {window_end} (max_entries={max_entries})",
            event_type="collection.window_split",
            principal_id=principal_id,
            window_start=window_start,
            window_end=window_end,
            max_entries=max_entries,
        )

    def window_dropped(
        self,
        principal_id: str,
        window_start: str,
        window_end: str,
        error: str,
    ) -> None:
        """Log a minimum-width window abandoned while still oversized."""
        self.warning(
            f"Response still too large for {principal_id} in minimum window "
            f"{window_start} - {window_end}; skipping slice: {error}",
            event_type="collection.window_dropped",
            principal_id=principal_id,
            window_start=window_start,
            window_end=window_end,
            error=error,
        )

    def collection_stalled(
        self,
        stall_timeout: float,
        completed: int,
        total: int,
    ) -> None:
        """Log the coordinator giving up on a stalled batch."""
        self.warning(
            f"No result within {stall_timeout:.0f}s; returning "
            f"{completed}/{total} completed analyses",
            event_type="collection.stalled",
            stall_timeout_seconds=stall_timeout,
            completed_applications=completed,
            total_applications=total,
        )

    def batch_completed(
        self,
        total: int,
        completed: int,
        failed: int,
        stalled: bool,
    ) -> None:
        """Log completion of a batch."""
        self.info(
            f"Batch completed: {completed}/{total} applications, {failed} failed"
            + (" (stalled)" if stalled else ""),
            event_type="batch.completed",
            total_applications=total,
            completed_applications=completed,
            failed_applications=failed,
            stalled=stalled,
        )


def configure_logging(
    level: str = "INFO",
    format: str = "human",
    output: str = "stderr",
    extra_fields: dict[str, Any] | None = None,
) -> None:
    """
    Configure logging for Permscope.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format (human, json)
        output: Output destination (stderr, stdout)
        extra_fields: Extra fields to include in structured logs
    """
    root_logger = logging.getLogger("permscope")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    root_logger.handlers.clear()

    if output == "stdout":
        handler = logging.StreamHandler(sys.stdout)
    else:
        handler = logging.StreamHandler(sys.stderr)

    if format == "json":
        formatter: logging.Formatter = StructuredFormatter(extra_fields=extra_fields)
    else:
        formatter = HumanReadableFormatter()

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


def get_logger(name: str) -> PermscopeLogger:
    """
    Get a Permscope logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        PermscopeLogger instance
    """
    if not name.startswith("permscope"):
        name = f"permscope.{name}"
    return PermscopeLogger(name)


# Configure logging from environment on import
_log_level = os.getenv("PERMSCOPE_LOG_LEVEL", "INFO")
_log_format = os.getenv("PERMSCOPE_LOG_FORMAT", "human")
configure_logging(level=_log_level, format=_log_format)
