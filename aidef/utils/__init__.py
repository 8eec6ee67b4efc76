"""
Utility modules for AIDef.
"""

from aidef.utils.logging import (
    ContextLoggerAdapter,
    JSONFormatter,
    get_logger,
    log_error_with_context,
    log_node_transition,
    log_provider_call,
    setup_logging,
)
from aidef.utils.metrics import (
    MetricsCollector,
    emit_metric,
    track_provider_call,
)
from aidef.utils.resilience import (
    CircuitBreaker,
    CircuitBreakerOpenError,
    CircuitState,
    ErrorRecoveryManager,
    retry_with_backoff,
)

__all__ = [
    "ContextLoggerAdapter",
    "JSONFormatter",
    "get_logger",
    "setup_logging",
    "log_node_transition",
    "log_provider_call",
    "log_error_with_context",
    "MetricsCollector",
    "track_provider_call",
    "emit_metric",
    "CircuitBreaker",
    "CircuitBreakerOpenError",
    "CircuitState",
    "ErrorRecoveryManager",
    "retry_with_backoff",
]
