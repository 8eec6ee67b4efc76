"""
Unit tests for retry, circuit breaker and partial-failure helpers.
"""

from unittest.mock import patch

import pytest

from aidef.utils.resilience import (
    CircuitBreaker,
    CircuitBreakerOpenError,
    CircuitState,
    ErrorRecoveryManager,
    create_provider_circuit_breaker,
    retry_with_backoff,
)


@pytest.mark.asyncio
async def test_retry_async_succeeds_after_transient_errors():
    """Test an async function is retried until it succeeds."""
    calls = []

    @retry_with_backoff(max_retries=3, base_delay=0, exceptions=(ConnectionError,))
    async def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise ConnectionError("try again")
        return "ok"

    assert await flaky() == "ok"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_retry_async_reraises_last_error():
    calls = []

    @retry_with_backoff(max_retries=2, base_delay=0, exceptions=(ConnectionError,))
    async def always_fails():
        calls.append(1)
        raise ConnectionError("still down")

    with pytest.raises(ConnectionError, match="still down"):
        await always_fails()
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_retry_ignores_unlisted_exceptions():
    calls = []

    @retry_with_backoff(max_retries=3, base_delay=0, exceptions=(ConnectionError,))
    async def broken():
        calls.append(1)
        raise KeyError("bug")

    with pytest.raises(KeyError):
        await broken()
    assert len(calls) == 1


def test_retry_sync_backoff_delays():
    """Test delays grow exponentially up to max_delay."""
    calls = []

    @retry_with_backoff(max_retries=4, base_delay=1.0, max_delay=3.0, exceptions=(ConnectionError,))
    def flaky():
        calls.append(1)
        if len(calls) < 4:
            raise ConnectionError("again")
        return len(calls)

    with patch("aidef.utils.resilience.time.sleep") as sleep:
        assert flaky() == 4

    assert [call.args[0] for call in sleep.call_args_list] == [1.0, 2.0, 3.0]


class TestCircuitBreaker:
    """Tests for CircuitBreaker."""

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=2, timeout=60)

        async def failing():
            raise RuntimeError("down")

        for _ in range(2):
            with pytest.raises(RuntimeError):
                await breaker.call(failing)

        assert breaker.get_state() == CircuitState.OPEN
        with pytest.raises(CircuitBreakerOpenError):
            await breaker.call(failing)

    @pytest.mark.asyncio
    async def test_success_resets_failures(self):
        breaker = CircuitBreaker(failure_threshold=2)

        async def failing():
            raise RuntimeError("down")

        async def working():
            return "ok"

        with pytest.raises(RuntimeError):
            await breaker.call(failing)
        assert await breaker.call(working) == "ok"

        assert breaker.failure_count == 0
        assert breaker.get_state() == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_recovers(self):
        """Test probes after the timeout close the circuit again."""
        breaker = CircuitBreaker(failure_threshold=1, timeout=0, half_open_max_calls=1)

        async def failing():
            raise RuntimeError("down")

        async def working():
            return "ok"

        with pytest.raises(RuntimeError):
            await breaker.call(failing)
        assert breaker.get_state() == CircuitState.OPEN

        with patch("aidef.utils.resilience.time.time", return_value=breaker.last_failure_time + 1):
            assert await breaker.call(working) == "ok"

        assert breaker.get_state() == CircuitState.CLOSED

    def test_provider_defaults(self):
        breaker = create_provider_circuit_breaker()

        assert breaker.failure_threshold == 3
        assert breaker.timeout == 30
        assert breaker.half_open_max_calls == 2


def test_handle_partial_failure_logs_warning(caplog):
    ErrorRecoveryManager.handle_partial_failure(
        operation_name="build",
        total_items=3,
        successful_items=2,
        errors=["Provider generation failed for b: boom"],
        context={"plan_dir": ".aid-plan"},
    )

    assert "Partial failure in build: 2/3 succeeded, 1 failed" in caplog.text
