"""Circuit breaker guarding outbound notification channels."""

import asyncio
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from pulsewatch.utils.logger import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"  # Normal operation
    OPEN = "open"      # Failing, rejecting calls
    HALF_OPEN = "half_open"  # Letting calls through to test recovery


class CircuitBreakerError(Exception):
    """Raised when the circuit is open and the call was rejected."""
    pass


class CircuitBreaker:
    """
    Circuit breaker for a single notification channel.

    After ``failure_threshold`` consecutive failures the circuit opens and
    calls are rejected for ``recovery_timeout`` seconds. The next call is let
    through in half-open state; ``success_threshold`` successes close the
    circuit again, a single failure reopens it.

    Example:
        ```python
        breaker = CircuitBreaker("notification_webhook")
        try:
            await breaker.call(channel.deliver, message)
        except CircuitBreakerError:
            logger.warning("Webhook circuit open, skipping delivery")
        ```
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60,
        success_threshold: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize circuit breaker.

        Args:
            name: Circuit breaker name (for logging)
            failure_threshold: Consecutive failures before opening
            recovery_timeout: Seconds to stay open before a trial call
            success_threshold: Successes in half-open state needed to close
            clock: Monotonic time source
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold
        self._clock = clock

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.opened_at: Optional[float] = None
        self._lock = asyncio.Lock()

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Execute an async function with circuit breaker protection.

        Raises:
            CircuitBreakerError: If the circuit is open
            Exception: Whatever the function raised
        """
        async with self._lock:
            if self.state == CircuitState.OPEN:
                elapsed = self._clock() - (self.opened_at or 0)
                if elapsed < self.recovery_timeout:
                    raise CircuitBreakerError(
                        f"Circuit breaker '{self.name}' is OPEN. "
                        f"Will retry in {self.recovery_timeout - elapsed:.0f}s"
                    )
                logger.warning(
                    "Circuit breaker entering HALF_OPEN state",
                    extra={"circuit_name": self.name}
                )
                self.state = CircuitState.HALF_OPEN
                self.success_count = 0

        try:
            result = await func(*args, **kwargs)
        except Exception:
            await self._on_failure()
            raise

        await self._on_success()
        return result

    async def _on_success(self) -> None:
        async with self._lock:
            if self.state == CircuitState.HALF_OPEN:
                self.success_count += 1
                if self.success_count >= self.success_threshold:
                    logger.warning(
                        "Circuit breaker CLOSING after successful recovery",
                        extra={"circuit_name": self.name}
                    )
                    self.state = CircuitState.CLOSED
                    self.success_count = 0
            self.failure_count = 0

    async def _on_failure(self) -> None:
        async with self._lock:
            self.failure_count += 1

            if self.state == CircuitState.HALF_OPEN:
                self._open("failure in HALF_OPEN state")
            elif self.state == CircuitState.CLOSED and self.failure_count >= self.failure_threshold:
                self._open("failure threshold reached")

    def _open(self, reason: str) -> None:
        logger.error(
            "Circuit breaker OPENING",
            extra={
                "circuit_name": self.name,
                "reason": reason,
                "failure_count": self.failure_count,
                "recovery_timeout": self.recovery_timeout
            }
        )
        self.state = CircuitState.OPEN
        self.success_count = 0
        self.opened_at = self._clock()

    def get_state(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout,
        }
