"""
CircuitBreakerRegistry: per-operation-name failure counters.

Each operation name gets its own consecutive-failure count and last-failure
time. Once the count reaches the threshold the name is "open": calls are
refused until the cool-down since the last failure elapses, at which point
the entry is cleared and attempts are permitted again.

The registry is the only state shared between concurrent reconciliations.
All access goes through a threading.Lock; no critical section awaits, so
the lock is safe from both coroutines and worker threads.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from supply_recon.infra.logging_cfg import LOGGER_NAME, log_event

log = logging.getLogger(LOGGER_NAME)


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker behavior."""
    threshold: int = 5  # Exhausted calls before the breaker opens
    cooldown_sec: float = 300.0  # Seconds after the last failure before reset


@dataclass
class BreakerState:
    """Mutable failure record for one operation name."""
    count: int = 0
    last_failure_time: float = 0.0


@dataclass(frozen=True)
class BreakerStatus:
    """Immutable snapshot for health reporting."""
    count: int
    last_failure_time: float
    is_open: bool

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "lastFailureTime": int(self.last_failure_time * 1000),
            "isOpen": self.is_open,
        }


class CircuitBreakerRegistry:
    """
    Thread-safe mapping from operation name to breaker state.

    Usage:
        breakers = CircuitBreakerRegistry(CircuitBreakerConfig(threshold=5))
        if breakers.is_open("L1_LATEST_GLOBAL_STATE"):
            ...
        breakers.record_failure("L1_LATEST_GLOBAL_STATE")
        breakers.record_success("L1_LATEST_GLOBAL_STATE")
    """

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._states: Dict[str, BreakerState] = {}
        self._lock = threading.Lock()

    def _expired(self, state: BreakerState, now: float) -> bool:
        return now - state.last_failure_time > self.config.cooldown_sec

    def is_open(self, name: str) -> bool:
        """
        Check whether calls for name should be refused.

        Clears the entry (and logs a reset) when the cool-down has elapsed.
        """
        with self._lock:
            state = self._states.get(name)
            if state is None:
                return False
            if self._expired(state, self._clock()):
                del self._states[name]
                if state.count >= self.config.threshold:
                    log_event(log, "circuit_breaker_reset", operation=name, count=state.count)
                return False
            return state.count >= self.config.threshold

    def record_failure(self, name: str) -> bool:
        """
        Count one exhausted call for name.

        Returns:
            True if this failure is the one that opened the breaker
        """
        with self._lock:
            state = self._states.setdefault(name, BreakerState())
            state.count += 1
            state.last_failure_time = self._clock()
            tripped = state.count == self.config.threshold
            count = state.count
        if count >= self.config.threshold:
            log_event(
                log,
                "circuit_breaker_tripped",
                level=logging.ERROR,
                operation=name,
                count=count,
                cooldown_sec=self.config.cooldown_sec,
            )
        return tripped

    def record_success(self, name: str) -> None:
        """Forget all failures for name."""
        with self._lock:
            self._states.pop(name, None)

    def snapshot(self) -> Dict[str, BreakerStatus]:
        """
        Atomic copy of every tracked name.

        Read-only: expired entries report is_open=False but are left for
        the next is_open() call to clear.
        """
        with self._lock:
            now = self._clock()
            return {
                name: BreakerStatus(
                    count=state.count,
                    last_failure_time=state.last_failure_time,
                    is_open=state.count >= self.config.threshold and not self._expired(state, now),
                )
                for name, state in self._states.items()
            }

    def any_open(self) -> bool:
        return any(s.is_open for s in self.snapshot().values())
