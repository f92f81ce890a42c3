"""
Error taxonomy and error handling for dep2bazel.

Defines the exceptions raised along the resolution pipeline and a centralized
handler that logs recovered errors with structured, sanitized context.
"""

import logging
import re
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse


class Dep2BazelError(Exception):
    """Base class for all dep2bazel errors."""


class InputError(Dep2BazelError):
    """Missing argument, or a lockfile that cannot be read or parsed."""


class VcsRootError(Dep2BazelError):
    """An import path could not be mapped to a repository root."""

    def __init__(self, import_path: str, message: str):
        self.import_path = import_path
        super().__init__(f"{import_path}: {message}")


class ProbeError(Dep2BazelError):
    """A tarball descriptor could not be derived for a host and revision."""


class FetchError(ProbeError):
    """Network or HTTP failure while downloading."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"{message} ({url})")


class ArchiveFormatError(ProbeError):
    """A downloaded archive is malformed or has too few entries."""


class UnsupportedHostError(ProbeError):
    """No tarball probing strategy exists for the host."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Unknown server: {url}")


class ErrorLevel(Enum):
    """Error severity levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorCategory(Enum):
    """Error categories for better classification."""

    PARSING = "PARSING"
    NETWORK = "NETWORK"
    ARCHIVE = "ARCHIVE"
    VCS = "VCS"
    CONFIGURATION = "CONFIGURATION"
    FILESYSTEM = "FILESYSTEM"


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


# Credentials embedded in URLs or headers never reach the log stream
SENSITIVE_PATTERNS = [
    (re.compile(r"(https?://[^@\s/]+:)[^@\s]+@", re.IGNORECASE), r"\1[REDACTED]@"),
    (re.compile(r"Authorization:\s*\w+\s+([^\s]+)", re.IGNORECASE), "Authorization: [REDACTED]"),
    (re.compile(r'token["\s]*[:=]["\s]*([a-zA-Z0-9_\-+=/.]{8,})', re.IGNORECASE), 'token="[REDACTED]"'),
]


class SecureLogger:
    """Logger that sanitizes credentials out of messages before emitting them."""

    def __init__(self, name: str, level: int = logging.WARNING):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def _sanitize_message(self, message: str) -> str:
        sanitized = message
        for pattern, replacement in SENSITIVE_PATTERNS:
            sanitized = pattern.sub(replacement, sanitized)
        return sanitized

    def _sanitize_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        sanitized = {}
        for key, value in data.items():
            if isinstance(value, dict):
                sanitized[key] = self._sanitize_dict(value)
            elif isinstance(value, str):
                sanitized[key] = self._sanitize_message(value)
            else:
                sanitized[key] = value
        return sanitized

    def log_error_context(self, context: ErrorContext) -> None:
        """
        Log error context with appropriate level.

        Args:
            context: Error context to log
        """
        log_data: Dict[str, Any] = {
            "category": context.category.value,
            "module": context.module,
            "function": context.function,
            "details": self._sanitize_dict(context.details),
        }

        if context.exception:
            log_data["exception"] = type(context.exception).__name__
        if context.traceback_info:
            log_data["error"] = self._sanitize_message(context.traceback_info.strip())

        if context.suggestions:
            log_data["suggestions"] = context.suggestions

        log_message = f"{self._sanitize_message(context.message)} | {log_data}"
        self.logger.log(getattr(logging, context.level.value), log_message)


class ErrorHandler:
    """
    Centralized error handler for consistent error management.

    Recovered errors (probe failures, skipped dependencies, bad config values)
    are routed here so they are logged once and counted per category.
    """

    def __init__(self, logger_name: str = "dep2bazel", log_level: int = logging.WARNING):
        self.logger = SecureLogger(logger_name, log_level)
        self.error_stats: Dict[str, int] = {}

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
        Handle an error with structured logging.

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
        return context

    def debug(
        self, category: ErrorCategory, message: str, module: str, function: str, **kwargs
    ) -> ErrorContext:
        """Handle debug level error."""
        return self.handle_error(
            ErrorLevel.DEBUG, category, message, module, function, **kwargs
        )

    def warning(
        self, category: ErrorCategory, message: str, module: str, function: str, **kwargs
    ) -> ErrorContext:
        """Handle warning level error."""
        return self.handle_error(
            ErrorLevel.WARNING, category, message, module, function, **kwargs
        )

    def error(
        self, category: ErrorCategory, message: str, module: str, function: str, **kwargs
    ) -> ErrorContext:
        """Handle error level error."""
        return self.handle_error(
            ErrorLevel.ERROR, category, message, module, function, **kwargs
        )

    def get_error_stats(self) -> Dict[str, int]:
        """Counts of handled errors keyed ``<CATEGORY>_<LEVEL>``."""
        return self.error_stats.copy()


_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance."""
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def setup_error_handling(
    log_level: int = logging.WARNING, logger_name: str = "dep2bazel"
) -> ErrorHandler:
    """
    Setup global error handling configuration.

    Args:
        log_level: Logging level
        logger_name: Logger name

    Returns:
        ErrorHandler: Configured error handler
    """
    global _global_error_handler
    _global_error_handler = ErrorHandler(logger_name, log_level)
    return _global_error_handler


def sanitize_url(url: str) -> str:
    """Strip userinfo and query from a URL so it is safe to log."""
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.hostname:
        return url
    sanitized = f"{parsed.scheme}://{parsed.hostname}"
    try:
        port = parsed.port
    except ValueError:
        port = None
    if port:
        sanitized += f":{port}"
    return sanitized + parsed.path


def log_parsing_error(
    message: str,
    module: str,
    function: str,
    file_path: Optional[str] = None,
    exception: Optional[Exception] = None,
) -> None:
    """Convenience function for logging lockfile parsing errors."""
    details = {}
    if file_path is not None:
        details["file_path"] = Path(file_path).name

    get_error_handler().error(
        ErrorCategory.PARSING,
        message,
        module,
        function,
        details=details,
        exception=exception,
        suggestions=[
            "Check that the file is a Gopkg.lock generated by dep",
            "Verify the file is valid TOML",
        ],
    )


def log_network_error(
    message: str,
    module: str,
    function: str,
    url: Optional[str] = None,
    status_code: Optional[int] = None,
    exception: Optional[Exception] = None,
) -> None:
    """
    Convenience function for logging recovered network errors.

    Probe failures are expected along the fallback chain, so they are logged
    at debug level.
    """
    details: Dict[str, Any] = {}
    if url is not None:
        details["url"] = sanitize_url(url)
    if status_code is not None:
        details["status_code"] = status_code

    get_error_handler().debug(
        ErrorCategory.NETWORK,
        message,
        module,
        function,
        details=details,
        exception=exception,
    )


def log_vcs_error(
    message: str,
    module: str,
    function: str,
    import_path: Optional[str] = None,
    exception: Optional[Exception] = None,
) -> None:
    """Convenience function for logging a dependency skipped during root lookup."""
    details = {}
    if import_path is not None:
        details["import_path"] = import_path

    get_error_handler().warning(
        ErrorCategory.VCS,
        message,
        module,
        function,
        details=details,
        exception=exception,
        suggestions=[
            "Check that the import path is reachable",
            "Set a 'source' for the project in Gopkg.lock",
        ],
    )


def log_archive_error(
    message: str,
    module: str,
    function: str,
    url: Optional[str] = None,
    exception: Optional[Exception] = None,
) -> None:
    """Convenience function for logging an archive that could not be inspected."""
    details: Dict[str, Any] = {}
    if url is not None:
        details["url"] = sanitize_url(url)

    get_error_handler().debug(
        ErrorCategory.ARCHIVE,
        message,
        module,
        function,
        details=details,
        exception=exception,
    )


def log_config_error(
    message: str, module: str, function: str, key: Optional[str] = None
) -> None:
    """Convenience function for logging a configuration value that was ignored."""
    get_error_handler().warning(
        ErrorCategory.CONFIGURATION,
        message,
        module,
        function,
        details={"key": key} if key else {},
        suggestions=["Run 'dep2bazel --sample-config' for the expected format"],
    )


def log_filesystem_error(
    message: str,
    module: str,
    function: str,
    file_path: Optional[str] = None,
    exception: Optional[Exception] = None,
) -> None:
    """Convenience function for logging a file that could not be written."""
    get_error_handler().error(
        ErrorCategory.FILESYSTEM,
        message,
        module,
        function,
        details={"file_path": file_path} if file_path else {},
        exception=exception,
    )
