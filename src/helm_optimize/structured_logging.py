"""
Structured logging configuration for helm-optimize.

Provides consistent, machine-readable logging of traversal decisions and
filesystem mutations. Log records go to stderr so that stdout stays reserved
for the human-readable report.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

_RESERVED_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
    "taskName",
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
        }

        message = record.getMessage()
        if message:
            log_entry["message"] = message

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class PlainFormatter(logging.Formatter):
    """Key=value formatter used when JSON output is disabled."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = " ".join(
            f"{key}={value}"
            for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_KEYS and key != "message"
            and key != "asctime"
        )
        return f"{base} {extras}".rstrip()


class OperationLogger:
    """Structured logger for one engine or collaborator."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self._setup_logger()
        self.run_context: Dict[str, Any] = {}

    def _setup_logger(self) -> None:
        """Setup logger with structured formatting."""
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.WARNING)
        self.logger.propagate = False

    def set_run_context(
        self,
        run_id: Optional[str] = None,
        chart_path: Optional[str] = None,
        dry_run: Optional[bool] = None,
    ) -> None:
        """Set run context for logging."""
        self.run_context = {}
        if run_id:
            self.run_context["run_id"] = run_id
        if chart_path:
            self.run_context["chart_path"] = chart_path
        if dry_run is not None:
            self.run_context["dry_run"] = dry_run

    def clear_run_context(self) -> None:
        """Clear run context."""
        self.run_context.clear()

    def _log(self, level: str, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **self.run_context, **kwargs}
        getattr(self.logger, level.lower())("", extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        """Log info level event."""
        self._log("info", event_type, **kwargs)

    def warning(self, event_type: str, **kwargs) -> None:
        """Log warning level event."""
        self._log("warning", event_type, **kwargs)

    def error(self, event_type: str, **kwargs) -> None:
        """Log error level event."""
        self._log("error", event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        """Log debug level event."""
        self._log("debug", event_type, **kwargs)


# Global logger instances
_dedup_logger = OperationLogger("dedup")
_cleanup_logger = OperationLogger("cleanup")
_manifest_logger = OperationLogger("manifest")
_filesystem_logger = OperationLogger("filesystem")

_ALL_LOGGERS: List[OperationLogger] = [
    _dedup_logger,
    _cleanup_logger,
    _manifest_logger,
    _filesystem_logger,
]


def get_dedup_logger() -> OperationLogger:
    """Get deduplication engine logger."""
    return _dedup_logger


def get_cleanup_logger() -> OperationLogger:
    """Get cleanup engine logger."""
    return _cleanup_logger


def get_manifest_logger() -> OperationLogger:
    """Get manifest reader logger."""
    return _manifest_logger


def get_filesystem_logger() -> OperationLogger:
    """Get filesystem operations logger."""
    return _filesystem_logger


def log_run_start(
    logger: OperationLogger, run_id: str, chart_path: str, dry_run: bool
) -> None:
    """Log run start event."""
    logger.set_run_context(run_id, chart_path, dry_run)
    logger.info("run_started")


def log_run_complete(
    logger: OperationLogger,
    duration_ms: int,
    deleted_count: int,
    charts_visited: int,
) -> None:
    """Log run completion event."""
    logger.info(
        "run_completed",
        run_duration_ms=duration_ms,
        deleted_count=deleted_count,
        charts_visited=charts_visited,
    )
    logger.clear_run_context()


def log_dependency_classified(
    dependency: str, path: str, classification: str, original: Optional[str] = None
) -> None:
    """Log how the deduplicator classified one dependency occurrence."""
    log_data = {
        "dependency": dependency,
        "path": path,
        "classification": classification,
    }
    if original is not None:
        log_data["original_path"] = original

    if classification == "duplicate":
        _dedup_logger.info("duplicate_dependency_found", **log_data)
    else:
        _dedup_logger.debug("dependency_registered", **log_data)


def log_directory_removed(path: str, component: str) -> None:
    """Log a completed directory removal."""
    _filesystem_logger.info("directory_removed", path=path, requested_by=component)


def log_directory_skipped(logger: OperationLogger, path: str, reason: str) -> None:
    """Log a candidate directory that was left in place."""
    logger.debug("directory_skipped", path=path, reason=reason)


def configure_logging(
    log_level: str = "WARNING",
    enable_json: bool = True,
    log_file_path: Optional[str] = None,
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
) -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.WARNING)

    formatter: logging.Formatter = (
        StructuredFormatter() if enable_json else PlainFormatter(log_format)
    )

    file_handler: Optional[logging.Handler] = None
    if log_file_path:
        file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
        file_handler.setFormatter(formatter)

    for operation_logger in _ALL_LOGGERS:
        operation_logger.logger.setLevel(level)
        for handler in list(operation_logger.logger.handlers):
            if isinstance(handler, logging.FileHandler):
                operation_logger.logger.removeHandler(handler)
                handler.close()
            else:
                handler.setFormatter(formatter)
        if file_handler is not None:
            operation_logger.logger.addHandler(file_handler)
