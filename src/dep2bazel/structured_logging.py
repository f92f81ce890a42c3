"""
Structured logging configuration for dep2bazel.

Emits one JSON object per event on stderr; stdout is reserved for the
generated build file.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

RESERVED_RECORD_KEYS = frozenset(
    [
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
        "taskName",
        "getMessage",
        "exc_info",
        "exc_text",
        "stack_info",
        "message",
    ]
)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in RESERVED_RECORD_KEYS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class EventLogger:
    """Structured logger for pipeline events."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(f"dep2bazel.{name}")
        self._setup_logger()
        self.run_context: Dict[str, Any] = {}

    def _setup_logger(self) -> None:
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.WARNING)
            # The error handler owns the plain "dep2bazel" logger
            self.logger.propagate = False

    def set_run_context(
        self,
        lockfile: Optional[str] = None,
        total_dependencies: Optional[int] = None,
    ) -> None:
        """Set run context attached to every subsequent event."""
        self.run_context = {}
        if lockfile:
            self.run_context["lockfile"] = lockfile
        if total_dependencies is not None:
            self.run_context["total_dependencies"] = total_dependencies

    def clear_run_context(self) -> None:
        self.run_context.clear()

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **self.run_context, **kwargs}
        self.logger.log(level, event_type, extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        self._log(logging.INFO, event_type, **kwargs)

    def warning(self, event_type: str, **kwargs) -> None:
        self._log(logging.WARNING, event_type, **kwargs)

    def error(self, event_type: str, **kwargs) -> None:
        self._log(logging.ERROR, event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        self._log(logging.DEBUG, event_type, **kwargs)


_resolver_logger = EventLogger("resolver")
_archive_logger = EventLogger("archive")
_vcs_logger = EventLogger("vcs")
_generator_logger = EventLogger("generator")

_ALL_LOGGERS = [_resolver_logger, _archive_logger, _vcs_logger, _generator_logger]


def get_archive_logger() -> EventLogger:
    """Get archive probing logger."""
    return _archive_logger


def log_generation_start(lockfile: str, total_dependencies: int) -> None:
    """Log generation start event and set the run context on all loggers."""
    set_run_context(lockfile, total_dependencies)
    _generator_logger.info(
        "generation_started",
        lockfile=lockfile,
        total_dependencies=total_dependencies,
    )


def log_generation_complete(
    duration_ms: int, rendered_count: int, skipped_count: int
) -> None:
    """Log generation completion event and clear the run context."""
    log_data = {
        "duration_ms": duration_ms,
        "rendered_count": rendered_count,
        "skipped_count": skipped_count,
    }
    if skipped_count:
        _generator_logger.warning("generation_completed_with_skips", **log_data)
    else:
        _generator_logger.info("generation_completed", **log_data)
    clear_run_context()


def log_dependency_resolved(import_path: str, kind: str, url: Optional[str] = None) -> None:
    """Log which kind of descriptor a dependency resolved to."""
    log_data = {"import_path": import_path, "kind": kind}
    if url is not None:
        log_data["url"] = url
    _resolver_logger.info("dependency_resolved", **log_data)


def log_probe_failure(url: str, revision: str, reason: str) -> None:
    """Log a tarball probe that fell through to the next strategy."""
    _archive_logger.debug("tarball_probe_failed", url=url, revision=revision, reason=reason)


def log_repo_root(import_path: str, repo: str, vcs: str) -> None:
    """Log a discovered repository root."""
    _vcs_logger.debug("repo_root_resolved", import_path=import_path, repo=repo, vcs=vcs)


def set_run_context(
    lockfile: Optional[str] = None, total_dependencies: Optional[int] = None
) -> None:
    """Set global run context for all loggers."""
    for logger in _ALL_LOGGERS:
        logger.set_run_context(lockfile, total_dependencies)


def clear_run_context() -> None:
    """Clear global run context."""
    for logger in _ALL_LOGGERS:
        logger.clear_run_context()


def configure_logging(log_level: str = "WARNING", enable_json: bool = True) -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.WARNING)

    for logger in _ALL_LOGGERS:
        logger.logger.setLevel(level)
        if not enable_json:
            for handler in logger.logger.handlers:
                handler.setFormatter(
                    logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
                )

    logging.getLogger("dep2bazel").setLevel(level)
