"""
Tests for per-operation circuit breaking in the retry executor.
"""
import asyncio

import pytest
from unittest.mock import AsyncMock

from supply_recon.infra.circuit_breaker import CircuitBreakerConfig, CircuitBreakerRegistry
from supply_recon.infra.retry import RetryConfig, RetryHandler


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def _no_sleep(_seconds):
    return None


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def handler(clock):
    breakers = CircuitBreakerRegistry(CircuitBreakerConfig(threshold=5, cooldown_sec=300.0), clock=clock)
    return RetryHandler(RetryConfig(max_attempts=3), breakers=breakers, sleep=_no_sleep)


async def _exhaust(handler, name, times):
    op = AsyncMock(side_effect=Exception("Circuit breaker test"))
    for _ in range(times):
        await handler.execute_with_retry(op, name)
    return op


class TestCircuitBreaker:
    """Fast-fail after repeated exhausted calls."""

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, handler):
        op = await _exhaust(handler, "circuit-test", 5)
        assert op.await_count == 15

        result = await handler.execute_with_retry(op, "circuit-test")

        assert not result.success
        assert result.circuit_open
        assert result.attempts_made == 0
        assert "Circuit breaker open for circuit-test" in result.error
        assert op.await_count == 15

    @pytest.mark.asyncio
    async def test_tripping_call_keeps_its_own_result(self, handler):
        await _exhaust(handler, "trip", 4)
        op = AsyncMock(side_effect=Exception("fifth"))

        result = await handler.execute_with_retry(op, "trip")

        assert not result.circuit_open
        assert result.attempts_made == 3
        assert result.error == "fifth"
        assert handler.get_circuit_breaker_status()["trip"].is_open

    @pytest.mark.asyncio
    async def test_other_operation_unaffected(self, handler):
        await _exhaust(handler, "L1_LATEST_GLOBAL_STATE", 5)
        op = AsyncMock(return_value="ok")

        result = await handler.execute_with_retry(op, "L2_LATEST_SUPPLY")

        assert result.success
        assert result.attempts_made == 1

    @pytest.mark.asyncio
    async def test_resets_after_cooldown(self, handler, clock):
        await _exhaust(handler, "cooldown", 5)
        clock.advance(300.5)
        op = AsyncMock(return_value="back")

        result = await handler.execute_with_retry(op, "cooldown")

        assert result.success
        assert result.attempts_made == 1
        assert "cooldown" not in handler.get_circuit_breaker_status()

    @pytest.mark.asyncio
    async def test_still_open_inside_cooldown(self, handler, clock):
        await _exhaust(handler, "inside", 5)
        clock.advance(299.0)
        op = AsyncMock(return_value="never")

        result = await handler.execute_with_retry(op, "inside")

        assert result.circuit_open
        op.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_status_reports_counts(self, handler, clock):
        await _exhaust(handler, "status-test", 2)

        status = handler.get_circuit_breaker_status()

        assert status["status-test"].count == 2
        assert not status["status-test"].is_open
        assert status["status-test"].to_dict() == {
            "count": 2,
            "lastFailureTime": 1_000_000,
            "isOpen": False,
        }

    @pytest.mark.asyncio
    async def test_concurrent_failures_are_all_counted(self, clock):
        breakers = CircuitBreakerRegistry(CircuitBreakerConfig(threshold=10), clock=clock)
        handler = RetryHandler(
            RetryConfig(max_attempts=2, base_delay_ms=1, max_delay_ms=1),
            breakers=breakers,
            sleep=asyncio.sleep,
        )
        op = AsyncMock(side_effect=Exception("boom"))

        await asyncio.gather(*(handler.execute_with_retry(op, "shared") for _ in range(4)))

        assert handler.get_circuit_breaker_status()["shared"].count == 4


class TestRegistry:
    """Direct registry behaviour."""

    def test_record_failure_flags_the_tripping_call(self, clock):
        reg = CircuitBreakerRegistry(CircuitBreakerConfig(threshold=2), clock=clock)
        assert reg.record_failure("op") is False
        assert reg.record_failure("op") is True
        assert reg.record_failure("op") is False
        assert reg.is_open("op")

    def test_snapshot_does_not_clear_expired_entries(self, clock):
        reg = CircuitBreakerRegistry(CircuitBreakerConfig(threshold=1, cooldown_sec=10), clock=clock)
        reg.record_failure("op")
        clock.advance(11)

        snap = reg.snapshot()

        assert snap["op"].is_open is False
        assert "op" in reg.snapshot()
        assert reg.is_open("op") is False
        assert "op" not in reg.snapshot()

    def test_any_open(self, clock):
        reg = CircuitBreakerRegistry(CircuitBreakerConfig(threshold=1), clock=clock)
        assert not reg.any_open()
        reg.record_failure("op")
        assert reg.any_open()
