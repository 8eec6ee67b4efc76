"""
Unit tests for structured logging utilities.
"""

import json
import logging
from io import StringIO

from aidef.utils.logging import (
    JSONFormatter,
    get_logger,
    log_error_with_context,
    log_node_transition,
    log_provider_call,
    setup_logging,
)


def capture(logger_name):
    """Attach a JSON handler to a logger and return its buffer."""
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())
    target = logging.getLogger(logger_name)
    target.handlers.clear()
    target.addHandler(handler)
    target.setLevel(logging.DEBUG)
    return stream


def test_json_formatter():
    """Test JSON formatter produces valid JSON output."""
    stream = capture("test.formatter")

    logging.getLogger("test.formatter").info(
        "Test message", extra={"node_path": "server/api", "run_id": "r1", "cache": "hit"}
    )

    log_data = json.loads(stream.getvalue())
    assert "timestamp" in log_data
    assert log_data["level"] == "INFO"
    assert log_data["logger"] == "test.formatter"
    assert log_data["message"] == "Test message"
    assert log_data["node_path"] == "server/api"
    assert log_data["run_id"] == "r1"
    assert log_data["context"] == {"cache": "hit"}
    assert "source" in log_data


def test_get_logger_with_context():
    """Test getting logger with context."""
    logger = get_logger("test_module", run_id="r1", phase="compile")

    assert logger.extra["run_id"] == "r1"
    assert logger.extra["phase"] == "compile"


def test_with_context_merges():
    """Test with_context adds fields without touching the original adapter."""
    logger = get_logger("test.merge", phase="build")

    child = logger.with_context(node_path="cli")

    assert child.extra == {"phase": "build", "node_path": "cli"}
    assert logger.extra == {"phase": "build"}


def test_adapter_context_reaches_record():
    """Test adapter context and per-call extra both end up in the output."""
    stream = capture("test.adapter")
    logger = get_logger("test.adapter", phase="compile")

    logger.info("Compiling", extra={"node_path": "db"})

    log_data = json.loads(stream.getvalue())
    assert log_data["phase"] == "compile"
    assert log_data["node_path"] == "db"


def test_log_node_transition():
    """Test node transition logging."""
    stream = capture("test.transition")
    logger = get_logger("test.transition")

    log_node_transition(logger, "server", "branch", children=2)

    log_data = json.loads(stream.getvalue())
    assert log_data["level"] == "DEBUG"
    assert log_data["message"] == "Node server -> branch"
    assert log_data["node_path"] == "server"
    assert log_data["context"]["state"] == "branch"
    assert log_data["context"]["children"] == 2


def test_log_provider_call():
    """Test provider call logging for success and failure."""
    stream = capture("test.provider")
    logger = get_logger("test.provider")

    log_provider_call(logger, "openai", "compile", "server", duration_ms=12.5)
    log_provider_call(logger, "openai", "generate", "cli", error="timeout")

    first, second = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert first["level"] == "INFO"
    assert first["context"]["duration_ms"] == 12.5
    assert second["level"] == "ERROR"
    assert second["context"]["error"] == "timeout"


def test_log_provider_call_empty_error_is_failure():
    """Test an empty error message still logs at ERROR."""
    stream = capture("test.provider.empty")
    logger = get_logger("test.provider.empty")

    log_provider_call(logger, "openai", "compile", "server", error="")

    log_data = json.loads(stream.getvalue())
    assert log_data["level"] == "ERROR"
    assert log_data["context"]["error"] == ""


def test_log_error_with_context():
    """Test errors are logged with their stack trace."""
    stream = capture("test.error")
    logger = get_logger("test.error")

    try:
        raise ValueError("bad spec")
    except ValueError as e:
        log_error_with_context(logger, "Compilation failed", e, node_path="api")

    log_data = json.loads(stream.getvalue())
    assert log_data["error"]["type"] == "ValueError"
    assert log_data["error"]["message"] == "bad spec"
    assert "Traceback" in log_data["error"]["stack_trace"]
    assert log_data["context"]["error_type"] == "ValueError"


def test_setup_logging():
    """Test setup_logging installs a single JSON handler on the root logger."""
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        setup_logging("DEBUG")

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("openai").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
