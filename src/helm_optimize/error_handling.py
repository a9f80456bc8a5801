"""
Error handling for helm-optimize.

Defines the exception taxonomy raised by the engines and a centralized error
handler that logs structured error context and notifies registered callbacks
before the exception propagates to the command layer.
"""

import logging
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

PathLike = Union[str, Path]


class ChartOptimizeError(Exception):
    """Base class for all errors surfaced by helm-optimize."""

    def __init__(self, message: str, path: Optional[PathLike] = None):
        super().__init__(message)
        self.message = message
        self.path = str(path) if path is not None else None


class ChartPathError(ChartOptimizeError):
    """The supplied chart or output path is not usable."""


class ManifestError(ChartOptimizeError):
    """A chart manifest exists but cannot be read or parsed."""


class RemovalError(ChartOptimizeError):
    """Removing a directory from the filesystem failed."""

    def __init__(self, path: PathLike, cause: Union[Exception, str]):
        super().__init__(f"failed to remove {path}: {cause}", path)
        self.cause = cause


class ErrorLevel(Enum):
    """Error severity levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorCategory(Enum):
    """Error categories for better classification."""

    MANIFEST = "MANIFEST"
    FILESYSTEM = "FILESYSTEM"
    VALIDATION = "VALIDATION"
    CONFIGURATION = "CONFIGURATION"
    PACKAGING = "PACKAGING"


@dataclass
class ErrorContext:
    """Structured error context information."""

    level: ErrorLevel
    category: ErrorCategory
    message: str
    module: str
    function: str
    details: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[Exception] = None
    traceback_info: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error context to dictionary for logging."""
        return {
            "level": self.level.value,
            "category": self.category.value,
            "message": self.message,
            "module": self.module,
            "function": self.function,
            "details": self.details,
            "exception_type": type(self.exception).__name__ if self.exception else None,
            "exception_message": str(self.exception) if self.exception else None,
            "traceback": self.traceback_info,
            "suggestions": self.suggestions,
        }


class ContextLogger:
    """Logger that renders an ErrorContext as a single log line."""

    def __init__(self, name: str, level: int = logging.WARNING):
        """
        Initialize context logger.

        Args:
            name: Logger name
            level: Logging level
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_error_context(self, context: ErrorContext):
        """
        Log error context with appropriate level.

        Args:
            context: Error context to log
        """
        log_data = {
            "category": context.category.value,
            "module": context.module,
            "function": context.function,
            "details": context.details,
        }

        if context.exception:
            log_data["exception"] = type(context.exception).__name__

        if context.suggestions:
            log_data["suggestions"] = context.suggestions

        log_message = f"{context.message} | {log_data}"

        level = getattr(logging, context.level.value, logging.ERROR)
        self.logger.log(level, log_message)


# Error callback type
ErrorCallback = Callable[[ErrorContext], None]


class ErrorHandler:
    """
    Centralized error handler for consistent error management.

    Provides logging, callbacks, and per-category statistics for the
    manifest reader, the filesystem layer and both engines.
    """

    def __init__(
        self,
        logger_name: str = "helm_optimize",
        log_level: int = logging.WARNING,
        enable_callbacks: bool = True,
    ):
        """
        Initialize error handler.

        Args:
            logger_name: Name for the logger
            log_level: Logging level
            enable_callbacks: Whether to enable error callbacks
        """
        self.logger = ContextLogger(logger_name, log_level)
        self.enable_callbacks = enable_callbacks
        self.error_callbacks: Dict[ErrorCategory, List[ErrorCallback]] = {}
        self.global_callbacks: List[ErrorCallback] = []
        self.error_stats: Dict[str, int] = {}

    def register_callback(
        self, callback: ErrorCallback, category: Optional[ErrorCategory] = None
    ):
        """
        Register error callback.

        Args:
            callback: Function to call on errors
            category: Error category to filter, None for all errors
        """
        if not self.enable_callbacks:
            return

        if category is None:
            self.global_callbacks.append(callback)
        else:
            self.error_callbacks.setdefault(category, []).append(callback)

    def handle_error(
        self,
        level: ErrorLevel,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        exception: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ) -> ErrorContext:
        """
        Handle an error with structured logging and callbacks.

        Args:
            level: Error severity level
            category: Error category
            message: Error message
            module: Module where error occurred
            function: Function where error occurred
            exception: Optional exception object
            details: Additional error details
            suggestions: Suggested fixes

        Returns:
            ErrorContext: The created error context
        """
        context = ErrorContext(
            level=level,
            category=category,
            message=message,
            module=module,
            function=function,
            details=details or {},
            exception=exception,
            traceback_info=(
                "".join(traceback.format_exception_only(type(exception), exception))
                if exception
                else None
            ),
            suggestions=suggestions or [],
        )

        stat_key = f"{category.value}_{level.value}"
        self.error_stats[stat_key] = self.error_stats.get(stat_key, 0) + 1

        self.logger.log_error_context(context)

        if self.enable_callbacks:
            for callback in self.error_callbacks.get(category, []):
                try:
                    callback(context)
                except Exception as cb_error:
                    # Don't let callback errors break the main flow
                    self.logger.logger.error(f"Error in callback: {cb_error}")

            for callback in self.global_callbacks:
                try:
                    callback(context)
                except Exception as cb_error:
                    self.logger.logger.error(f"Error in global callback: {cb_error}")

        return context

    def warning(
        self,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        **kwargs,
    ) -> ErrorContext:
        """Handle warning level error."""
        return self.handle_error(
            ErrorLevel.WARNING, category, message, module, function, **kwargs
        )

    def error(
        self,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        **kwargs,
    ) -> ErrorContext:
        """Handle error level error."""
        return self.handle_error(
            ErrorLevel.ERROR, category, message, module, function, **kwargs
        )

    def get_error_stats(self) -> Dict[str, int]:
        """Get error statistics."""
        return self.error_stats.copy()


# Global error handler instance
_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """
    Get the global error handler instance.

    Returns:
        ErrorHandler: Global error handler
    """
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def setup_error_handling(
    log_level: int = logging.WARNING,
    enable_callbacks: bool = True,
    logger_name: str = "helm_optimize",
) -> ErrorHandler:
    """
    Setup global error handling configuration.

    Args:
        log_level: Logging level
        enable_callbacks: Whether to enable callbacks
        logger_name: Logger name

    Returns:
        ErrorHandler: Configured error handler
    """
    global _global_error_handler
    _global_error_handler = ErrorHandler(logger_name, log_level, enable_callbacks)
    return _global_error_handler


def log_manifest_error(
    message: str,
    module: str,
    function: str,
    manifest_path: Optional[PathLike] = None,
    exception: Optional[Exception] = None,
):
    """
    Convenience function for logging manifest read/parse errors.

    Args:
        message: Error message
        module: Module name
        function: Function name
        manifest_path: Manifest being read
        exception: Optional exception
    """
    details = {}
    if manifest_path is not None:
        details["manifest_path"] = str(manifest_path)

    get_error_handler().error(
        ErrorCategory.MANIFEST,
        message,
        module,
        function,
        details=details,
        exception=exception,
        suggestions=[
            "Check the Chart.yaml syntax",
            "Verify the dependencies entry is a list of mappings",
        ],
    )


def log_removal_error(
    message: str,
    module: str,
    function: str,
    path: Optional[PathLike] = None,
    exception: Optional[Exception] = None,
):
    """Convenience function for logging directory removal failures."""
    details = {}
    if path is not None:
        details["path"] = str(path)

    get_error_handler().error(
        ErrorCategory.FILESYSTEM,
        message,
        module,
        function,
        details=details,
        exception=exception,
        suggestions=[
            "Check directory permissions",
            "Re-run with --dry-run to preview the remaining deletions",
        ],
    )


def log_not_implemented(feature: str, module: str, function: str):
    """Report a declared but unimplemented capability."""
    get_error_handler().warning(
        ErrorCategory.PACKAGING,
        f"{feature} is not implemented",
        module,
        function,
    )
