"""
Fault tolerance for the two things this service talks to: its database and
the lifecycle webhook.

**Circuit breaker.**  After ``failure_threshold`` consecutive connection-level
failures the breaker opens and calls fail immediately with
:class:`CircuitBreakerError` (rendered as 503) instead of queueing on a dead
pool.  Once ``recovery_timeout`` has passed one probe call is let through; it
closes the breaker on success and re-opens it on failure.

**Retry with backoff.**  Used only for webhook delivery.  Ledger writes are
never retried: a failed reconcile is rolled back and surfaced, and the next
reconcile call picks up the same periods.
"""

import asyncio
import functools
import logging
import random
import time
from enum import Enum
from typing import Any, Callable, Optional, Tuple, Type

from sqlalchemy.exc import OperationalError

from investment_engine.core.config import settings

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: Tuple[Type[Exception], ...] = (ConnectionError, OSError, TimeoutError)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """A call was refused because the breaker is open."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit '{name}' is open; retry after {retry_after:.1f}s")


class CircuitBreaker:
    """
    Async circuit breaker.

    Only ``expected_exceptions`` count as failures; domain errors such as
    :class:`~investment_engine.core.exceptions.InvalidTransition` pass through
    without touching the breaker.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        expected_exceptions: Tuple[Type[Exception], ...] = TRANSIENT_ERRORS,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exceptions = expected_exceptions

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = 0.0
        self._success_count = 0

    def _seconds_open(self) -> float:
        return time.monotonic() - self._opened_at

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self._seconds_open() >= self.recovery_timeout:
            self._state = CircuitState.HALF_OPEN
            logger.info("Circuit '%s' half-open, allowing a probe", self.name)
        return self._state

    def _on_success(self) -> None:
        if self._state != CircuitState.CLOSED:
            logger.info("Circuit '%s' closed after successful probe", self.name)
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count += 1

    def _on_failure(self) -> None:
        self._failure_count += 1
        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            self._opened_at = time.monotonic()
            logger.error(
                "Circuit '%s' opened after %d failures; failing fast for %.1fs",
                self.name,
                self._failure_count,
                self.recovery_timeout,
            )
        else:
            logger.warning(
                "Circuit '%s' failure %d/%d",
                self.name,
                self._failure_count,
                self.failure_threshold,
            )

    async def call(self, func: Callable, *args: Any, **kwargs: Any) -> Any:
        if self.state == CircuitState.OPEN:
            raise CircuitBreakerError(
                self.name, max(self.recovery_timeout - self._seconds_open(), 0)
            )
        try:
            result = await func(*args, **kwargs)
        except self.expected_exceptions:
            self._on_failure()
            raise
        self._on_success()
        return result

    def get_status(self) -> dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "success_count": self._success_count,
            "recovery_timeout_s": self.recovery_timeout,
        }


db_circuit_breaker = CircuitBreaker(
    name="database",
    failure_threshold=settings.CB_FAILURE_THRESHOLD,
    recovery_timeout=settings.CB_RECOVERY_TIMEOUT,
    expected_exceptions=TRANSIENT_ERRORS + (OperationalError,),
)


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: bool = True,
    retryable_exceptions: Tuple[Type[Exception], ...] = TRANSIENT_ERRORS,
) -> Callable:
    """
    Decorator: retry an async callable on ``retryable_exceptions``.

    The delay starts at ``base_delay`` and doubles per attempt up to
    ``max_delay``; ``jitter`` adds up to 50% on top.  After ``max_retries``
    retries the last exception is re-raised.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = base_delay
            last_exc: Optional[Exception] = None
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as exc:
                    last_exc = exc
                    if attempt == max_retries:
                        break
                    wait = min(delay, max_delay)
                    if jitter:
                        wait += random.uniform(0, wait * 0.5)
                    logger.warning(
                        "%s failed (%s: %s); retry %d/%d in %.2fs",
                        func.__qualname__,
                        type(exc).__name__,
                        exc,
                        attempt + 1,
                        max_retries,
                        wait,
                    )
                    await asyncio.sleep(wait)
                    delay *= 2
            logger.error("%s gave up after %d retries", func.__qualname__, max_retries)
            raise last_exc  # type: ignore[misc]

        return wrapper

    return decorator
