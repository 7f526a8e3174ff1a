"""Tests for retry with exponential backoff."""

import pytest
from unittest.mock import AsyncMock, patch

from pulsewatch.utils.retry import RetryError, compute_delay, retry_with_backoff


@pytest.mark.unit
class TestRetryWithBackoff:

    async def test_returns_first_success(self):
        func = AsyncMock(return_value="ok")

        result = await retry_with_backoff(func, "a", max_attempts=3, base_delay=0)

        assert result == "ok"
        func.assert_awaited_once_with("a")

    async def test_retries_until_success(self):
        func = AsyncMock(side_effect=[ConnectionError("boom"), ConnectionError("boom"), "ok"])

        with patch("pulsewatch.utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await retry_with_backoff(func, max_attempts=3, base_delay=1, jitter=False)

        assert result == "ok"
        assert func.await_count == 3
        assert [call.args[0] for call in sleep.await_args_list] == [1, 2]

    async def test_raises_retry_error_after_last_attempt(self):
        func = AsyncMock(side_effect=ConnectionError("down"))

        with pytest.raises(RetryError) as exc_info:
            await retry_with_backoff(func, max_attempts=2, base_delay=0)

        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert func.await_count == 2

    async def test_unlisted_exceptions_propagate_immediately(self):
        func = AsyncMock(side_effect=KeyError("bad"))

        with pytest.raises(KeyError):
            await retry_with_backoff(func, max_attempts=5, base_delay=0, exceptions=(ConnectionError,))

        func.assert_awaited_once()

    async def test_zero_attempts_still_calls_once(self):
        func = AsyncMock(return_value=1)

        assert await retry_with_backoff(func, max_attempts=0) == 1
        func.assert_awaited_once()


@pytest.mark.unit
def test_compute_delay_is_capped():
    assert compute_delay(1, 1.0, 2.0, 60.0, jitter=False) == 1.0
    assert compute_delay(3, 1.0, 2.0, 60.0, jitter=False) == 4.0
    assert compute_delay(10, 1.0, 2.0, 60.0, jitter=False) == 60.0


@pytest.mark.unit
def test_compute_delay_jitter_bounds():
    for _ in range(20):
        delay = compute_delay(2, 1.0, 2.0, 60.0, jitter=True)
        assert 1.0 <= delay <= 3.0
