"""
Unit tests for resilience patterns — Circuit Breaker & retry with backoff.

Tests cover:
- CircuitBreaker state machine: CLOSED → OPEN → HALF_OPEN → CLOSED
- Fast-fail behaviour when circuit is open
- Domain errors passing through without tripping the breaker
- get_status() health-check dict
- retry_with_backoff: retries, exhaustion, non-retryable passthrough, max delay
"""

import time
from unittest.mock import AsyncMock, patch

import pytest

from investment_engine.core.exceptions import InvalidTransition
from investment_engine.core.resilience import (
    CircuitBreaker,
    CircuitBreakerError,
    CircuitState,
    retry_with_backoff,
)
from investment_engine.models.investment import InvestmentStatus

# ────────────────────────────────────────────────────────────────────────────
# CircuitBreaker tests
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def cb():
    return CircuitBreaker(
        name="test",
        failure_threshold=2,
        recovery_timeout=5.0,
        expected_exceptions=(ConnectionError,),
    )


async def _trip(cb):
    func = AsyncMock(side_effect=ConnectionError("down"))
    for _ in range(cb.failure_threshold):
        with pytest.raises(ConnectionError):
            await cb.call(func)
    return func


class TestCircuitBreakerError:
    def test_attributes(self):
        err = CircuitBreakerError("database", 5.5)
        assert err.name == "database"
        assert err.retry_after == 5.5
        assert "database" in str(err)


class TestCircuitBreaker:
    @pytest.mark.asyncio
    async def test_successful_call(self, cb):
        func = AsyncMock(return_value="ok")
        assert await cb.call(func, 1, key="v") == "ok"
        func.assert_awaited_once_with(1, key="v")
        assert cb.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_failure_below_threshold_stays_closed(self, cb):
        with pytest.raises(ConnectionError):
            await cb.call(AsyncMock(side_effect=ConnectionError("down")))
        assert cb.state == CircuitState.CLOSED
        assert cb._failure_count == 1

    @pytest.mark.asyncio
    async def test_opens_after_threshold_and_fails_fast(self, cb):
        await _trip(cb)
        assert cb.state == CircuitState.OPEN

        success = AsyncMock(return_value="ok")
        with pytest.raises(CircuitBreakerError) as exc_info:
            await cb.call(success)
        assert exc_info.value.retry_after <= 5.0
        success.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_successful_probe_closes_circuit(self, cb):
        await _trip(cb)
        cb._opened_at = time.monotonic() - 10.0
        assert cb.state == CircuitState.HALF_OPEN

        assert await cb.call(AsyncMock(return_value="recovered")) == "recovered"
        assert cb.state == CircuitState.CLOSED
        assert cb._failure_count == 0

    @pytest.mark.asyncio
    async def test_failed_probe_reopens_circuit(self, cb):
        func = await _trip(cb)
        cb._opened_at = time.monotonic() - 10.0

        with pytest.raises(ConnectionError):
            await cb.call(func)
        assert cb.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_domain_errors_do_not_count(self, cb):
        func = AsyncMock(
            side_effect=InvalidTransition(InvestmentStatus.DRAFT, InvestmentStatus.ACTIVE)
        )
        for _ in range(3):
            with pytest.raises(InvalidTransition):
                await cb.call(func)
        assert cb._failure_count == 0
        assert cb.state == CircuitState.CLOSED

    def test_status_dict(self):
        status = CircuitBreaker(name="database", failure_threshold=5, recovery_timeout=30.0).get_status()
        assert status == {
            "name": "database",
            "state": "closed",
            "failure_count": 0,
            "failure_threshold": 5,
            "success_count": 0,
            "recovery_timeout_s": 30.0,
        }


# ────────────────────────────────────────────────────────────────────────────
# retry_with_backoff tests
# ────────────────────────────────────────────────────────────────────────────


class TestRetryWithBackoff:
    """Tests for the retry decorator."""

    @pytest.mark.asyncio
    async def test_retries_on_retryable_exception(self):
        call_count = 0

        @retry_with_backoff(
            max_retries=3,
            base_delay=0.001,
            jitter=False,
            retryable_exceptions=(ConnectionError,),
        )
        async def fail_twice():
            nonlocal call_count
            call_count += 1
            if call_count <= 2:
                raise ConnectionError("down")
            return "recovered"

        assert await fail_twice() == "recovered"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_exhausts_retries_then_raises(self):
        call_count = 0

        @retry_with_backoff(
            max_retries=2,
            base_delay=0.001,
            jitter=False,
            retryable_exceptions=(ConnectionError,),
        )
        async def always_fail():
            nonlocal call_count
            call_count += 1
            raise ConnectionError("permanent failure")

        with pytest.raises(ConnectionError, match="permanent failure"):
            await always_fail()
        assert call_count == 3  # 1 initial + 2 retries

    @pytest.mark.asyncio
    async def test_non_retryable_exception_not_retried(self):
        call_count = 0

        @retry_with_backoff(max_retries=3, base_delay=0.001, retryable_exceptions=(ConnectionError,))
        async def raise_value_error():
            nonlocal call_count
            call_count += 1
            raise ValueError("not retryable")

        with pytest.raises(ValueError, match="not retryable"):
            await raise_value_error()
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_delay_doubles_up_to_max_delay(self):
        @retry_with_backoff(
            max_retries=4,
            base_delay=1.0,
            max_delay=2.0,
            jitter=False,
            retryable_exceptions=(ConnectionError,),
        )
        async def fail():
            raise ConnectionError("fail")

        with patch(
            "investment_engine.core.resilience.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            with pytest.raises(ConnectionError):
                await fail()
        delays = [call.args[0] for call in mock_sleep.call_args_list]
        assert delays == [1.0, 2.0, 2.0, 2.0]
