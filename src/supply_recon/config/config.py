"""
Environment-driven configuration with validation.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from decimal import Decimal

from dotenv import load_dotenv

from supply_recon.infra.circuit_breaker import CircuitBreakerConfig
from supply_recon.infra.logging_cfg import LOGGER_NAME
from supply_recon.infra.retry import RetryConfig
from supply_recon.reconciliation.types import ReconciliationConfig
from supply_recon.sources.blocks import DEFAULT_ETHERSCAN_URL
from supply_recon.sources.layer_one import DEFAULT_L1_SUBGRAPH_URL

load_dotenv()

DEFAULT_L2_SUBGRAPH_URL = (
    "https://gateway.thegraph.com/api/subgraphs/id/DZz4kDTdmzWLWsV373w2bSmoar3umKKH9y82SUKr5qmp"
)


def env_bool(key: str, default: bool) -> bool:
    val = os.getenv(key)
    if val is None or val == "":
        return default
    return val.lower() in {"1", "true", "yes", "y"}


def _int_env(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    return int(raw)


def _float_env(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    return float(raw)


@dataclass(frozen=True)
class Settings:
    etherscan_api_key: str
    etherscan_base_url: str
    l1_subgraph_url: str
    l2_subgraph_url: str
    gateway_api_key: str | None
    enable_validation: bool
    tolerance: str
    max_attempts: int
    base_delay_ms: int
    max_delay_ms: int
    backoff_multiplier: float
    circuit_breaker_threshold: int
    circuit_breaker_cooldown_ms: int
    http_timeout: float
    port: int
    log_level: str
    log_file: str | None

    def dump(self) -> dict:
        """Return settings with secrets masked, for logging and /config."""
        data = self.__dict__.copy()
        data["etherscan_api_key"] = bool(self.etherscan_api_key)
        data["gateway_api_key"] = bool(self.gateway_api_key)
        return data

    @classmethod
    def load(cls) -> "Settings":
        cfg = cls(
            etherscan_api_key=os.getenv("ETHERSCAN_API_KEY", ""),
            etherscan_base_url=os.getenv("ETHERSCAN_BASE_URL", DEFAULT_ETHERSCAN_URL),
            l1_subgraph_url=os.getenv("L1_SUBGRAPH_URL", DEFAULT_L1_SUBGRAPH_URL),
            l2_subgraph_url=os.getenv("L2_SUBGRAPH_URL", DEFAULT_L2_SUBGRAPH_URL),
            gateway_api_key=os.getenv("GRAPH_GATEWAY_API_KEY") or None,
            enable_validation=env_bool("ENABLE_SUPPLY_VALIDATION", True),
            tolerance=os.getenv("SUPPLY_TOLERANCE") or "0.001",
            max_attempts=_int_env("RETRY_MAX_ATTEMPTS", 3),
            base_delay_ms=_int_env("RETRY_BASE_DELAY_MS", 1000),
            max_delay_ms=_int_env("RETRY_MAX_DELAY_MS", 8000),
            backoff_multiplier=_float_env("RETRY_BACKOFF_MULTIPLIER", 2.0),
            circuit_breaker_threshold=_int_env("CIRCUIT_BREAKER_THRESHOLD", 5),
            circuit_breaker_cooldown_ms=_int_env("CIRCUIT_BREAKER_COOLDOWN_MS", 300_000),
            http_timeout=_float_env("HTTP_TIMEOUT_SEC", 10.0),
            port=_int_env("PORT", 3000),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_file=os.getenv("LOG_FILE") or None,
        )
        cfg._validate()
        _sanity_check(cfg)
        return cfg

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.max_attempts,
            base_delay_ms=float(self.base_delay_ms),
            max_delay_ms=float(self.max_delay_ms),
            backoff_multiplier=self.backoff_multiplier,
        )

    def circuit_breaker_config(self) -> CircuitBreakerConfig:
        return CircuitBreakerConfig(
            threshold=self.circuit_breaker_threshold,
            cooldown_sec=self.circuit_breaker_cooldown_ms / 1000.0,
        )

    def reconciliation_config(self) -> ReconciliationConfig:
        return ReconciliationConfig(
            l2_endpoint=self.l2_subgraph_url,
            enable_validation=self.enable_validation,
            tolerance=Decimal(self.tolerance),
            etherscan_api_key=self.etherscan_api_key,
        )

    def _validate(self) -> None:
        if not self.etherscan_api_key:
            raise ValueError("ETHERSCAN_API_KEY is required")
        if not self.l2_subgraph_url:
            raise ValueError("L2_SUBGRAPH_URL is required for L1+L2 reconciliation")
        if self.max_attempts < 1:
            raise ValueError("RETRY_MAX_ATTEMPTS must be >= 1")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("Retry delays must be >= 0")
        if self.base_delay_ms > self.max_delay_ms:
            raise ValueError("RETRY_BASE_DELAY_MS must be <= RETRY_MAX_DELAY_MS")
        if self.backoff_multiplier < 1:
            raise ValueError("RETRY_BACKOFF_MULTIPLIER must be >= 1")
        if self.circuit_breaker_threshold < 1:
            raise ValueError("CIRCUIT_BREAKER_THRESHOLD must be >= 1")
        if self.circuit_breaker_cooldown_ms < 0:
            raise ValueError("CIRCUIT_BREAKER_COOLDOWN_MS must be >= 0")
        try:
            tolerance = Decimal(self.tolerance)
        except ArithmeticError as exc:
            raise ValueError(f"SUPPLY_TOLERANCE is not a number: {self.tolerance!r}") from exc
        if not tolerance.is_finite() or not Decimal(0) < tolerance < Decimal(1):
            raise ValueError("SUPPLY_TOLERANCE must be between 0 and 1")
        if self.http_timeout <= 0:
            raise ValueError("HTTP_TIMEOUT_SEC must be > 0")

        if not self.enable_validation:
            logging.getLogger(LOGGER_NAME).warning(
                "WARNING: ENABLE_SUPPLY_VALIDATION is off. "
                "Inconsistent upstream data will be reconciled without checks."
            )


def _sanity_check(cfg: Settings) -> None:
    """
    Log the effective settings once at startup so overrides are obvious.
    """
    logger = logging.getLogger(LOGGER_NAME)
    payload = {
        "event": "config_loaded",
        "l1_subgraph_url": cfg.l1_subgraph_url,
        "l2_subgraph_url": cfg.l2_subgraph_url,
        "max_attempts": cfg.max_attempts,
        "base_delay_ms": cfg.base_delay_ms,
        "validation": cfg.enable_validation,
    }
    logger.info(json.dumps(payload))
