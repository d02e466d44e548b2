"""
Infrastructure package.

This package contains logging configuration, the per-operation circuit
breaker registry, and the retry executor.
"""

from supply_recon.infra.circuit_breaker import (
    BreakerStatus,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
)
from supply_recon.infra.logging_cfg import build_logger, log_event
from supply_recon.infra.retry import RetryConfig, RetryHandler, RetryResult

__all__ = [
    "BreakerStatus",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "build_logger",
    "log_event",
    "RetryConfig",
    "RetryHandler",
    "RetryResult",
]
