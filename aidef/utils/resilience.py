"""
Resilience utilities for provider calls.

This module provides:
- retry_with_backoff decorator for transient errors
- CircuitBreaker class guarding a remote provider
- ErrorRecoveryManager for partial-failure reporting
"""

import asyncio
import logging
import time
from enum import Enum
from functools import wraps
from typing import Awaitable, Callable, ParamSpec, TypeVar

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject calls
    HALF_OPEN = "half_open"  # Probing for recovery


class CircuitBreakerOpenError(Exception):
    """Raised when circuit breaker is open."""
    pass


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: tuple = (Exception,)
):
    """
    Decorator for retrying functions with exponential backoff.

    ``max_retries`` is the total number of attempts; the delay before attempt
    ``n + 1`` is ``min(base_delay * exponential_base ** (n - 1), max_delay)``.

    Args:
        max_retries: Maximum number of attempts (default: 3)
        base_delay: Initial delay in seconds between attempts (default: 1.0)
        max_delay: Maximum delay in seconds between attempts (default: 60.0)
        exponential_base: Base for exponential backoff calculation (default: 2.0)
        exceptions: Exception types that trigger a retry; others propagate at once

    Returns:
        Decorated function with retry logic

    Example:
        @retry_with_backoff(max_retries=3, base_delay=1.0)
        async def compile_node():
            return await provider.compile(request)
    """
    attempts = max(1, max_retries)

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(attempts):
                try:
                    result = await func(*args, **kwargs)
                    if attempt > 0:
                        logger.info(
                            f"{func.__name__} succeeded on attempt {attempt + 1}/{attempts}"
                        )
                    return result

                except exceptions as e:
                    if attempt == attempts - 1:
                        logger.error(
                            f"{func.__name__} failed after {attempts} attempts: {e}"
                        )
                        raise

                    delay = min(base_delay * (exponential_base ** attempt), max_delay)
                    logger.warning(
                        f"{func.__name__} failed on attempt {attempt + 1}/{attempts}: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )
                    await asyncio.sleep(delay)

        @wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(attempts):
                try:
                    return func(*args, **kwargs)

                except exceptions as e:
                    if attempt == attempts - 1:
                        logger.error(
                            f"{func.__name__} failed after {attempts} attempts: {e}"
                        )
                        raise

                    delay = min(base_delay * (exponential_base ** attempt), max_delay)
                    logger.warning(
                        f"{func.__name__} failed on attempt {attempt + 1}/{attempts}: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )
                    time.sleep(delay)

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


class CircuitBreaker:
    """
    Circuit breaker for calls to a remote provider.

    States:
    - CLOSED: calls pass through
    - OPEN: the provider is failing, calls are rejected immediately
    - HALF_OPEN: a limited number of probe calls are allowed

    Args:
        failure_threshold: Consecutive failures before opening (default: 5)
        timeout: Seconds to stay open before probing (default: 60)
        half_open_max_calls: Successful probes needed to close again (default: 3)
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: float = 60,
        half_open_max_calls: int = 3
    ):
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.half_open_max_calls = half_open_max_calls

        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: float | None = None
        self.state = CircuitState.CLOSED
        self.half_open_calls = 0

    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        """
        Execute an async callable with circuit breaker protection.

        Raises:
            CircuitBreakerOpenError: If the circuit is open
            Exception: Any exception raised by the callable
        """
        if self.state == CircuitState.OPEN:
            if self.last_failure_time and (time.time() - self.last_failure_time) > self.timeout:
                logger.info("Circuit breaker transitioning to HALF_OPEN state")
                self.state = CircuitState.HALF_OPEN
                self.half_open_calls = 0
                self.success_count = 0
            else:
                raise CircuitBreakerOpenError(
                    f"Circuit breaker is OPEN. Provider unavailable. "
                    f"Will retry after {self.timeout}s timeout."
                )

        if self.state == CircuitState.HALF_OPEN:
            if self.half_open_calls >= self.half_open_max_calls:
                raise CircuitBreakerOpenError(
                    "Circuit breaker is HALF_OPEN and max test calls reached"
                )
            self.half_open_calls += 1

        try:
            result = await func()
        except Exception:
            self._record_failure()
            raise

        self._record_success()
        return result

    def _record_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.half_open_max_calls:
                logger.info("Circuit breaker transitioning to CLOSED state (provider recovered)")
                self.reset()
        elif self.failure_count > 0:
            self.failure_count = 0

    def _record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == CircuitState.HALF_OPEN:
            logger.warning("Circuit breaker transitioning to OPEN state (provider still failing)")
            self.state = CircuitState.OPEN
            self.success_count = 0
            self.half_open_calls = 0
        elif self.state == CircuitState.CLOSED and self.failure_count >= self.failure_threshold:
            logger.warning(
                f"Circuit breaker transitioning to OPEN state "
                f"(failure threshold {self.failure_threshold} exceeded)"
            )
            self.state = CircuitState.OPEN
            self.success_count = 0

    def get_state(self) -> CircuitState:
        return self.state

    def reset(self) -> None:
        """Reset circuit breaker to closed state."""
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.half_open_calls = 0
        self.last_failure_time = None


class ErrorRecoveryManager:
    """Helpers for reporting partial failures without aborting a run."""

    @staticmethod
    def handle_partial_failure(
        operation_name: str,
        total_items: int,
        successful_items: int,
        errors: list,
        context: dict
    ) -> None:
        """
        Log partial failure with context.

        Args:
            operation_name: Name of the operation
            total_items: Total number of items processed
            successful_items: Number of successful items
            errors: List of error messages
            context: Additional context information
        """
        failed_items = total_items - successful_items

        if failed_items > 0:
            logger.warning(
                f"Partial failure in {operation_name}: "
                f"{successful_items}/{total_items} succeeded, {failed_items} failed",
                extra={
                    "operation": operation_name,
                    "total_items": total_items,
                    "successful_items": successful_items,
                    "failed_items": failed_items,
                    "errors": errors[:10],
                    "context": context
                }
            )
        else:
            logger.info(
                f"{operation_name} completed successfully: {successful_items}/{total_items}",
                extra={
                    "operation": operation_name,
                    "total_items": total_items,
                    "context": context
                }
            )


def create_provider_circuit_breaker() -> CircuitBreaker:
    """Create circuit breaker configured for LLM provider calls."""
    return CircuitBreaker(
        failure_threshold=3,
        timeout=30,
        half_open_max_calls=2
    )
