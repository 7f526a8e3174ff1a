"""Retry with exponential backoff for outbound notification calls."""

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from pulsewatch.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


class RetryError(Exception):
    """Raised when all retry attempts have failed."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


def compute_delay(
    attempt: int,
    base_delay: float,
    multiplier: float,
    max_delay: float,
    jitter: bool,
) -> float:
    """Backoff delay before the retry that follows ``attempt`` (1-based)."""
    delay = min(base_delay * (multiplier ** (attempt - 1)), max_delay)
    if jitter:
        delay = delay * (0.5 + random.random())
    return delay


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    multiplier: float = 2.0,
    max_delay: float = 60.0,
    jitter: bool = True,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    **kwargs: Any
) -> T:
    """
    Execute an async function with exponential backoff retry logic.

    Args:
        func: Async function to execute
        *args: Positional arguments for func
        max_attempts: Maximum number of attempts (at least one is made)
        base_delay: Initial delay in seconds
        multiplier: Multiplier for exponential backoff
        max_delay: Maximum delay in seconds
        jitter: Whether to add random jitter to delay
        exceptions: Exception types that trigger another attempt
        **kwargs: Keyword arguments for func

    Returns:
        Result of the function call

    Raises:
        RetryError: If all attempts fail

    Example:
        ```python
        await retry_with_backoff(
            channel.deliver,
            message,
            max_attempts=3,
            base_delay=5.0,
            exceptions=(aiohttp.ClientError, asyncio.TimeoutError),
        )
        ```
    """
    max_attempts = max(1, max_attempts)
    name = getattr(func, "__name__", repr(func))
    last_exception: Optional[Exception] = None

    for attempt in range(1, max_attempts + 1):
        try:
            result = await func(*args, **kwargs)
            if attempt > 1:
                logger.info(
                    "Call succeeded after retry",
                    extra={"function": name, "attempt": attempt}
                )
            return result

        except exceptions as e:
            last_exception = e

            if attempt == max_attempts:
                logger.error(
                    "Call failed after all retry attempts",
                    extra={"function": name, "attempts": max_attempts, "error": str(e)}
                )
                break

            delay = compute_delay(attempt, base_delay, multiplier, max_delay, jitter)
            logger.warning(
                "Call failed, retrying",
                extra={
                    "function": name,
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "delay": delay,
                    "error": str(e)
                }
            )
            await asyncio.sleep(delay)

    raise RetryError(
        f"{name} failed after {max_attempts} attempts. Last error: {last_exception}",
        attempts=max_attempts,
    ) from last_exception
