"""Structured logging infrastructure for jobrunner.

Provides structured logging using structlog with component names bound to
every entry. Diagnostic logs go to stderr so they never mix with the report
that jobrunner prints to stdout.

Example usage:
    from jobrunner.core.logging import get_logger, configure_logging

    # Configure once at startup
    configure_logging(level="DEBUG", format="console")

    # Get a component-specific logger
    logger = get_logger("engine")

    # Log with context
    logger.info("attempt_started", attempt=2)

    # Bind context for a scope
    job_logger = logger.bind(job_name="backup")
    job_logger.debug("launching")
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Field names whose values are never logged
SENSITIVE_PATTERNS = frozenset({
    "password",
    "pass",
    "token",
    "secret",
    "credential",
    "authorization",
})

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]


def _sanitize_value(key: str, value: Any) -> Any:
    """Return "[REDACTED]" for values whose key looks sensitive."""
    key_lower = key.lower()
    for pattern in SENSITIVE_PATTERNS:
        if pattern in key_lower:
            return "[REDACTED]"
    return value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that sanitizes sensitive fields.

    Args:
        logger: The wrapped logger object.
        method_name: The name of the method called on the logger.
        event_dict: The event dict containing all bound and event data.

    Returns:
        Sanitized event dict with sensitive values redacted.
    """
    sanitized: EventDict = {}
    for key, value in event_dict.items():
        if isinstance(value, dict):
            sanitized[key] = {
                k: _sanitize_value(k, v) for k, v in value.items()
            }
        else:
            sanitized[key] = _sanitize_value(key, value)
    return sanitized


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds an ISO8601 UTC timestamp."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


class RunnerLogger:
    """jobrunner logger wrapper around structlog.

    The logger is bound to a component name and can have additional context
    bound for a scope (e.g., job_name, channel).

    Note: loggers are resolved lazily so that module-level loggers created
    at import time still respect configure_logging() called later.
    """

    def __init__(
        self,
        component: str,
        **initial_context: Any,
    ) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> RunnerLogger:
        """Create a new logger with additional bound context.

        Args:
            **context: Additional context to bind (e.g., job_name, attempt).

        Returns:
            A new RunnerLogger with the additional context bound.
        """
        new_logger = RunnerLogger.__new__(RunnerLogger)
        new_logger._component = self._component
        new_logger._context = {**self._context, **context}
        return new_logger

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)


def _get_processors(format: LogFormat, include_timestamps: bool) -> list[Processor]:  # noqa: A002
    """Get structlog processors for the given output format.

    Args:
        format: "console" for colored human-readable output, "json" for
            one JSON object per line.
        include_timestamps: Whether to add timestamps to log entries.

    Returns:
        List of processors ending in the matching renderer.
    """
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,  # Filter before processing
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
    ]

    if include_timestamps:
        processors.append(_add_timestamp)

    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ])

    if format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    return processors


def configure_logging(
    level: LogLevel = "WARNING",
    format: LogFormat = "console",  # noqa: A002
    include_timestamps: bool = True,
) -> None:
    """Configure jobrunner structured logging.

    Call once at startup, before any logging occurs. All output goes to
    stderr; stdout is reserved for the run report.

    Args:
        level: Minimum log level to capture.
        format: Output format - "json" for structured, "console" for
            human-readable.
        include_timestamps: Whether to include ISO8601 timestamps.
    """
    log_level = getattr(logging, level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    # NOTE: cache_logger_on_first_use=False ensures loggers respect runtime config
    # even when created at module import time before configure_logging() is called
    structlog.configure(
        processors=_get_processors(format, include_timestamps),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> RunnerLogger:
    """Get a jobrunner logger for a component.

    Args:
        component: The component name (e.g., "engine", "notifications.mail").
        **initial_context: Additional context to bind.

    Returns:
        A RunnerLogger instance bound to the component.
    """
    return RunnerLogger(component, **initial_context)


__all__ = [
    "LogFormat",
    "LogLevel",
    "RunnerLogger",
    "SENSITIVE_PATTERNS",
    "configure_logging",
    "get_logger",
]
