"""
Structured logging configuration for tfcheck.

Log records are emitted as one JSON object per line on stderr, so they
never interleave with the pipeline report written to stdout. Every record
carries the run id of the pipeline run it belongs to.

Log Format:
    {
        "timestamp": "2026-01-14T10:30:00.123456+00:00",
        "level": "INFO",
        "logger": "tfcheck.runner",
        "run_id": "abc123...",
        "message": "Step passed",
        "step": "validate",
        "duration_seconds": 1.42
    }

Usage:
    from tfcheck.logging_config import setup_logging, get_logger, log_with_context

    setup_logging(log_level="INFO")
    logger = get_logger(__name__)

    log_with_context(logger, "info", "Step passed", step="fmt")
"""

import json
import logging
import sys
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from datetime import UTC, datetime
from types import TracebackType
from typing import TextIO, override

_run_id: ContextVar[str | None] = ContextVar("run_id", default=None)

# Attributes every LogRecord has; anything else came in through `extra`.
_STANDARD_ATTRS = frozenset(
    {
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
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class StructuredFormatter(logging.Formatter):
    """
    Formatter that renders each record as a single JSON object.

    Standard Fields:
        - timestamp: ISO 8601 timestamp in UTC
        - level: Log level name
        - logger: Logger name (module path)
        - run_id: Pipeline run id, or null outside a run
        - message: Human-readable log message
        - exc_info: Formatted traceback if present

    Extra fields passed through `log_with_context` are added at top level.
    """

    @override
    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "run_id": _run_id.get(),
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exc_info"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


def setup_logging(log_level: str = "WARNING", stream: TextIO | None = None) -> None:
    """
    Configure structured logging for tfcheck.

    Replaces any handlers on the root logger with a single JSON handler.
    Should be called once per process, by the CLI.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        stream: Output stream (default: sys.stderr)

    Example:
        >>> setup_logging("DEBUG")
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(StructuredFormatter())

    root_logger.addHandler(console_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get logger for a module.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def generate_run_id() -> str:
    """Generate a new run id (UUID4 string)."""
    return str(uuid.uuid4())


def set_run_id(run_id: str | None) -> None:
    """
    Set run id for the current context.

    Args:
        run_id: Run id to attach to subsequent records, or None to clear
    """
    _ = _run_id.set(run_id)


def get_run_id() -> str | None:
    """Return the run id of the current context, if any."""
    return _run_id.get()


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context: object,
) -> None:
    """
    Log message with additional structured context.

    Context fields become top-level JSON fields of the record.

    Args:
        logger: Logger instance
        level: Log level (debug, info, warning, error, critical)
        message: Human-readable log message
        **context: Additional context fields as keyword arguments

    Example:
        >>> log_with_context(logger, "info", "Step passed", step="fmt")
    """
    log_func: Callable[..., None] = getattr(logger, level.lower())
    log_func(message, extra=dict(context))


class LogContext:
    """
    Context manager binding a run id for a block of code.

    Example:
        >>> with LogContext() as run_id:
        ...     runner.run(target)
    """

    def __init__(self, run_id: str | None = None) -> None:
        self.run_id: str = run_id or generate_run_id()
        self._previous: str | None = None

    def __enter__(self) -> str:
        self._previous = get_run_id()
        set_run_id(self.run_id)
        return self.run_id

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        set_run_id(self._previous)
