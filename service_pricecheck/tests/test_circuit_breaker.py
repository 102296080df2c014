"""
Unit tests for CircuitBreaker.
"""

import pytest

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException


async def succeed():
    return "ok"


async def fail():
    raise RuntimeError("upstream 500")


class TestCircuitBreaker:
    """Test cases for CircuitBreaker."""

    @pytest.fixture
    def breaker(self, clock):
        return CircuitBreaker(failure_threshold=2, recovery_timeout=30.0, name="test", clock=clock)

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, breaker):
        for _ in range(2):
            with pytest.raises(RuntimeError):
                await breaker.call(fail)

        assert breaker.is_open()
        with pytest.raises(CircuitBreakerOpenException) as exc_info:
            await breaker.call(succeed)
        assert exc_info.value.retry_in_seconds == 30.0

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, breaker):
        with pytest.raises(RuntimeError):
            await breaker.call(fail)

        assert await breaker.call(succeed) == "ok"

        state = breaker.get_state()
        assert state["failure_count"] == 0
        assert state["state"] == "closed"

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self, breaker, clock):
        """A failed probe after the recovery timeout opens the circuit again."""
        for _ in range(2):
            with pytest.raises(RuntimeError):
                await breaker.call(fail)

        clock.advance(30)
        with pytest.raises(RuntimeError):
            await breaker.call(fail)

        assert breaker.is_open()

    @pytest.mark.asyncio
    async def test_half_open_success_closes(self, breaker, clock):
        for _ in range(2):
            with pytest.raises(RuntimeError):
                await breaker.call(fail)

        clock.advance(31)

        assert await breaker.call(succeed) == "ok"
        assert not breaker.is_open()
