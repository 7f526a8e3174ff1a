"""Tests for the notification circuit breaker."""

import pytest
from unittest.mock import AsyncMock

from pulsewatch.core.circuit_breaker import CircuitBreaker, CircuitBreakerError, CircuitState


class FakeClock:

    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


async def fail():
    raise ConnectionError("channel down")


@pytest.mark.unit
class TestCircuitBreaker:
    """Test circuit breaker state transitions."""

    def test_initial_state(self):
        cb = CircuitBreaker("notification_webhook", failure_threshold=5, recovery_timeout=60)

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0
        assert cb.get_state()["state"] == "closed"

    async def test_successful_call_passes_result_through(self):
        cb = CircuitBreaker("test")
        func = AsyncMock(return_value="sent")

        assert await cb.call(func, "message", retries=2) == "sent"
        func.assert_awaited_once_with("message", retries=2)
        assert cb.state == CircuitState.CLOSED

    async def test_failures_open_circuit(self):
        cb = CircuitBreaker("test", failure_threshold=3)

        for _ in range(3):
            with pytest.raises(ConnectionError):
                await cb.call(fail)

        assert cb.state == CircuitState.OPEN

        func = AsyncMock()
        with pytest.raises(CircuitBreakerError):
            await cb.call(func)
        func.assert_not_awaited()

    async def test_success_resets_failure_count(self):
        cb = CircuitBreaker("test", failure_threshold=3)

        for _ in range(2):
            with pytest.raises(ConnectionError):
                await cb.call(fail)
        await cb.call(AsyncMock(return_value=None))

        assert cb.failure_count == 0
        assert cb.state == CircuitState.CLOSED

    async def test_half_open_success_closes(self):
        clock = FakeClock()
        cb = CircuitBreaker("test", failure_threshold=1, recovery_timeout=30, clock=clock)

        with pytest.raises(ConnectionError):
            await cb.call(fail)
        assert cb.state == CircuitState.OPEN

        clock.now += 31
        await cb.call(AsyncMock(return_value="ok"))

        assert cb.state == CircuitState.CLOSED

    async def test_half_open_failure_reopens(self):
        clock = FakeClock()
        cb = CircuitBreaker("test", failure_threshold=1, recovery_timeout=30, clock=clock)

        with pytest.raises(ConnectionError):
            await cb.call(fail)
        clock.now += 31
        with pytest.raises(ConnectionError):
            await cb.call(fail)

        assert cb.state == CircuitState.OPEN
        with pytest.raises(CircuitBreakerError):
            await cb.call(fail)

    async def test_stays_open_until_timeout(self):
        clock = FakeClock()
        cb = CircuitBreaker("test", failure_threshold=1, recovery_timeout=30, clock=clock)

        with pytest.raises(ConnectionError):
            await cb.call(fail)
        clock.now += 10

        with pytest.raises(CircuitBreakerError):
            await cb.call(fail)
        assert cb.state == CircuitState.OPEN
