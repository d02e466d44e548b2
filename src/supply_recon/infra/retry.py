"""
RetryHandler: bounded retry with capped exponential backoff and a
per-operation circuit breaker.

Flow for execute_with_retry(operation, name):
    1. Breaker open for name -> fail fast, zero attempts.
    2. Attempt up to max_attempts times; sleep
       min(base_delay * multiplier^(attempt-1), max_delay) between attempts.
    3. Success -> clear the breaker for name.
    4. Exhausted -> count one failure against name's breaker.

Failures never raise out of execute_with_retry; they come back as a
RetryResult so the caller can aggregate them.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, Optional, TypeVar, TYPE_CHECKING

from supply_recon.core.errors import CircuitOpenError
from supply_recon.core.utils import elapsed_ms
from supply_recon.infra.circuit_breaker import BreakerStatus, CircuitBreakerRegistry
from supply_recon.infra.logging_cfg import LOGGER_NAME, log_event

if TYPE_CHECKING:
    from supply_recon.monitoring.metrics import ReconciliationMetrics

log = logging.getLogger(LOGGER_NAME)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy. Delays are in milliseconds."""
    max_attempts: int = 3
    base_delay_ms: float = 1000.0
    max_delay_ms: float = 8000.0
    backoff_multiplier: float = 2.0

    def delay_ms(self, attempt: int) -> float:
        """Backoff before the attempt following attempt number `attempt` (1-based)."""
        return min(
            self.base_delay_ms * (self.backoff_multiplier ** (attempt - 1)),
            self.max_delay_ms,
        )


@dataclass
class RetryResult(Generic[T]):
    """Outcome of one execute_with_retry call."""
    success: bool
    attempts_made: int
    total_duration_ms: float
    data: Optional[T] = None
    error: Optional[str] = None
    circuit_open: bool = False


class RetryHandler:
    """
    Retry executor owning its own breaker registry.

    Each instance is isolated: tests and separate services can create their
    own without sharing failure counts. sleep is injectable so tests can
    record backoff delays without waiting.

    Usage:
        handler = RetryHandler(RetryConfig(max_attempts=3))
        result = await handler.execute_with_retry(fetch_latest, "L1_LATEST_GLOBAL_STATE")
        if result.success:
            use(result.data)
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        breakers: Optional[CircuitBreakerRegistry] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        metrics: Optional["ReconciliationMetrics"] = None,
    ) -> None:
        self.config = config or RetryConfig()
        if self.config.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.breakers = breakers or CircuitBreakerRegistry()
        self._sleep = sleep
        self._metrics = metrics

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str,
    ) -> RetryResult[T]:
        start = time.perf_counter()

        if self.breakers.is_open(operation_name):
            err = CircuitOpenError(operation_name)
            log_event(log, "circuit_breaker_open", level=logging.WARNING, operation=operation_name)
            self._record_metrics(operation_name, "circuit_open")
            return RetryResult(
                success=False,
                attempts_made=0,
                total_duration_ms=elapsed_ms(start),
                error=str(err),
                circuit_open=True,
            )

        last_error: Optional[BaseException] = None
        max_attempts = self.config.max_attempts

        for attempt in range(1, max_attempts + 1):
            log_event(
                log, "retry_attempt", level=logging.DEBUG,
                operation=operation_name, attempt=attempt, max_attempts=max_attempts,
            )
            try:
                data = await operation()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                last_error = exc
                log_event(
                    log, "retry_attempt_failed", level=logging.WARNING,
                    operation=operation_name, attempt=attempt, err=str(exc),
                )
                if attempt == max_attempts:
                    break
                delay = self.config.delay_ms(attempt)
                log_event(
                    log, "retry_backoff", level=logging.DEBUG,
                    operation=operation_name, attempt=attempt, delay_ms=delay,
                )
                await self._sleep(delay / 1000.0)
                continue

            self.breakers.record_success(operation_name)
            self._record_metrics(operation_name, "success")
            return RetryResult(
                success=True,
                attempts_made=attempt,
                total_duration_ms=elapsed_ms(start),
                data=data,
            )

        self.breakers.record_failure(operation_name)
        self._record_metrics(operation_name, "failure")
        return RetryResult(
            success=False,
            attempts_made=max_attempts,
            total_duration_ms=elapsed_ms(start),
            error=_error_message(last_error),
        )

    def get_circuit_breaker_status(self) -> Dict[str, BreakerStatus]:
        """Snapshot of every operation name with recorded failures."""
        return self.breakers.snapshot()

    def _record_metrics(self, operation_name: str, outcome: str) -> None:
        if self._metrics is None:
            return
        self._metrics.fetch_attempts.labels(operation=operation_name, outcome=outcome).inc()
        self._metrics.circuit_open.labels(operation=operation_name).set(
            1 if self.breakers.is_open(operation_name) else 0
        )


def _error_message(exc: Optional[BaseException]) -> str:
    if exc is None:
        return "Unknown error"
    return str(exc) or exc.__class__.__name__
