"""
Structured logging utilities with JSON formatting and context injection.

This module provides:
- JSON formatted log output for machine-readable compile/build logs
- Context injection (run_id, node_path, phase) via LoggerAdapter
- Helpers for the events every run reports: node state transitions,
  provider calls and errors
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from logging import LogRecord
from typing import Any, Dict, MutableMapping, Optional

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info", "taskName",
})

_CONTEXT_FIELDS = ("run_id", "node_path", "phase")


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON with standard fields:
    - timestamp: ISO 8601 formatted timestamp
    - level, logger, message
    - run_id / node_path / phase when present
    - context: any other extra fields
    - error: exception details when exc_info is set
    """

    def format(self, record: LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in _CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and key not in _CONTEXT_FIELDS
        }
        if extra_fields:
            log_data["context"] = extra_fields

        if record.exc_info:
            log_data["error"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stack_trace": "".join(traceback.format_exception(*record.exc_info)),
            }

        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        return json.dumps(log_data, default=str)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that injects context fields into all log records.

    Context set on the adapter (run_id, node_path, phase) is merged into the
    ``extra`` of every call; per-call ``extra`` keys are kept.
    """

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(self.extra)
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(self, **context: Any) -> "ContextLoggerAdapter":
        """
        Create a new logger adapter with additional context.

        Args:
            **context: Additional context fields

        Returns:
            New logger adapter with merged context
        """
        new_extra = dict(self.extra)
        new_extra.update(context)
        return ContextLoggerAdapter(self.logger, new_extra)


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure JSON logging on the root logger.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter())
    handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str, **context: Any) -> ContextLoggerAdapter:
    """
    Get a context-aware logger for a module.

    Example:
        logger = get_logger(__name__, run_id="a1b2", phase="compile")
        logger.info("Compiling tree")  # includes run_id and phase
    """
    return ContextLoggerAdapter(logging.getLogger(name), context)


def log_node_transition(
    logger: logging.LoggerAdapter,
    node_path: str,
    state: str,
    **details: Any
) -> None:
    """
    Log a node compiler state transition.

    Args:
        logger: Logger to use
        node_path: Path of the node being compiled
        state: New state name (e.g. 'spec_serialized', 'leaf', 'branch')
        **details: Extra fields such as child count or cache status
    """
    logger.debug(
        f"Node {node_path} -> {state}",
        extra={"node_path": node_path, "state": state, **details}
    )


def log_provider_call(
    logger: logging.LoggerAdapter,
    provider: str,
    operation: str,
    node_path: str,
    duration_ms: Optional[float] = None,
    error: Optional[str] = None
) -> None:
    """
    Log a provider compile/generate call.

    Args:
        logger: Logger to use
        provider: Provider name (e.g. 'openai')
        operation: 'compile' or 'generate'
        node_path: Node the call was made for
        duration_ms: Call duration in milliseconds (if available)
        error: Error message (if the call failed)
    """
    extra: Dict[str, Any] = {
        "provider": provider,
        "operation": operation,
        "node_path": node_path,
    }
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)
    if error is not None:
        extra["error"] = error

    if error is not None:
        logger.error(f"Provider call failed: {provider}.{operation} {node_path}", extra=extra)
    else:
        logger.info(f"Provider call: {provider}.{operation} {node_path}", extra=extra)


def log_error_with_context(
    logger: logging.LoggerAdapter,
    message: str,
    error: Exception,
    **context: Any
) -> None:
    """
    Log error with full stack trace and context.

    Args:
        logger: Logger to use
        message: Error message
        error: Exception object
        **context: Additional context fields
    """
    logger.error(
        message,
        extra={"error_type": type(error).__name__, **context},
        exc_info=(type(error), error, error.__traceback__)
    )
