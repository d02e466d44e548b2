"""
SupplyReconciler: orchestrates one reconciliation request.

Pipeline:
    1. Fetch layer one and layer two concurrently, each through the retry
       executor under its own operation name.
    2. Join both fetches (never a race); any failure fails the request and
       reports every failed side, layer one first.
    3. Validate each raw snapshot (when enabled); errors abort, warnings log.
    4. Net the snapshots into one supply view.
    5. Validate the reconciled view (when enabled); errors abort.

The result is all-or-nothing: a failed request never carries figures.

Usage:
    reconciler = SupplyReconciler(
        config=ReconciliationConfig(l2_endpoint=url),
        layer_one=LayerOneSubgraph(gql),
        layer_two=LayerTwoSubgraph(gql),
        block_resolver=EtherscanBlocks(),
        retry_handler=RetryHandler(RetryConfig()),
    )
    result = await reconciler.reconcile_latest()
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional, Tuple, TypeVar, Union, TYPE_CHECKING

from supply_recon.core.utils import elapsed_ms
from supply_recon.infra.circuit_breaker import BreakerStatus
from supply_recon.infra.logging_cfg import LOGGER_NAME, log_event
from supply_recon.infra.retry import RetryHandler, RetryResult
from supply_recon.reconciliation.reconciler import reconcile_supply
from supply_recon.reconciliation.types import (
    LayerOneSupply,
    LayerTwoSupply,
    ReconciliationConfig,
    ReconciliationResult,
    ValidationResult,
)
from supply_recon.reconciliation.validation import (
    validate_layer_one,
    validate_layer_two,
    validate_reconciled,
)

if TYPE_CHECKING:
    from supply_recon.monitoring.metrics import ReconciliationMetrics
    from supply_recon.sources.base import BlockResolver, LayerOneSource, LayerTwoSource

log = logging.getLogger(LOGGER_NAME)

T = TypeVar("T")

L1_LATEST_OPERATION = "L1_LATEST_GLOBAL_STATE"
L2_LATEST_OPERATION = "L2_LATEST_SUPPLY"
L1_BLOCK_OPERATION = "L1_BLOCK_GLOBAL_STATE"
L2_BLOCK_OPERATION = "L2_BLOCK_SUPPLY"


class SupplyReconciler:
    """Reconciles layer-one and layer-two supply into one consistent view."""

    def __init__(
        self,
        config: ReconciliationConfig,
        layer_one: "LayerOneSource",
        layer_two: "LayerTwoSource",
        block_resolver: Optional["BlockResolver"] = None,
        retry_handler: Optional[RetryHandler] = None,
        metrics: Optional["ReconciliationMetrics"] = None,
    ) -> None:
        self.config = config
        self._layer_one = layer_one
        self._layer_two = layer_two
        self._blocks = block_resolver
        self.retry_handler = retry_handler or RetryHandler()
        self._metrics = metrics

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def reconcile_latest(self) -> ReconciliationResult:
        start = time.perf_counter()
        try:
            result = await self._reconcile(
                self._layer_one.fetch_latest, L1_LATEST_OPERATION,
                lambda: self._layer_two.fetch_latest(self.config.l2_endpoint), L2_LATEST_OPERATION,
            )
        except Exception as exc:
            log.exception("reconciliation failed unexpectedly")
            result = ReconciliationResult(success=False, errors=[f"Reconciliation error: {exc}"])
        return self._finish(result, "latest", start)

    async def reconcile_at_timestamp(self, timestamp: int) -> ReconciliationResult:
        """
        Reconcile at the block closest before timestamp (unix seconds).

        Falls back to the latest block when the timestamp cannot be resolved,
        and per layer to latest data when the block has none.
        """
        start = time.perf_counter()
        try:
            block = await self._resolve_block(timestamp)
        except Exception as exc:
            log_event(
                log, "block_resolution_failed", level=logging.ERROR,
                timestamp=timestamp, err=str(exc),
            )
            result = ReconciliationResult(
                success=False,
                errors=[f"Timestamp-based reconciliation error: {exc}"],
            )
            return self._finish(result, "timestamp", start)

        try:
            result = await self._reconcile(
                lambda: self._layer_one_at_block(block), L1_BLOCK_OPERATION,
                lambda: self._layer_two_at_block(block), L2_BLOCK_OPERATION,
            )
        except Exception as exc:
            log.exception("timestamp reconciliation failed unexpectedly")
            result = ReconciliationResult(
                success=False,
                errors=[f"Timestamp-based reconciliation error: {exc}"],
            )
        result.block_number = block
        return self._finish(result, "timestamp", start)

    def get_circuit_breaker_status(self) -> Dict[str, BreakerStatus]:
        return self.retry_handler.get_circuit_breaker_status()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _reconcile(
        self,
        l1_operation: Callable[[], Awaitable[LayerOneSupply]],
        l1_name: str,
        l2_operation: Callable[[], Awaitable[LayerTwoSupply]],
        l2_name: str,
    ) -> ReconciliationResult:
        l1_outcome, l2_outcome = await asyncio.gather(
            self.retry_handler.execute_with_retry(l1_operation, l1_name),
            self.retry_handler.execute_with_retry(l2_operation, l2_name),
            return_exceptions=True,
        )

        l1_data, l1_ms, l1_error, l1_circuit = _settle(l1_outcome)
        l2_data, l2_ms, l2_error, l2_circuit = _settle(l2_outcome)
        self._observe_fetch("l1", l1_ms)
        self._observe_fetch("l2", l2_ms)

        result = ReconciliationResult(
            success=False,
            l1_fetch_duration_ms=l1_ms,
            l2_fetch_duration_ms=l2_ms,
            circuit_open=l1_circuit or l2_circuit,
        )

        if l1_error is not None:
            result.errors.append(f"L1 fetch failed: {l1_error}")
        if l2_error is not None:
            result.errors.append(f"L2 fetch failed: {l2_error}")
        if result.errors:
            log_event(log, "supply_fetch_failed", level=logging.ERROR, errors=result.errors)
            return result

        if self.config.enable_validation:
            l1_check = validate_layer_one(l1_data, self.config.tolerance)
            l2_check = validate_layer_two(l2_data)
            result.errors.extend(f"L1 validation: {e}" for e in l1_check.errors)
            result.errors.extend(f"L2 validation: {e}" for e in l2_check.errors)
            self._report_validation("l1", l1_check)
            self._report_validation("l2", l2_check)
            if result.errors:
                return result

        reconciled = reconcile_supply(l1_data, l2_data)

        if self.config.enable_validation:
            check = validate_reconciled(reconciled, l1_data, l2_data, self.config.tolerance)
            self._report_validation("reconciled", check)
            if check.errors:
                result.errors.extend(f"Reconciliation validation: {e}" for e in check.errors)
                return result

        result.success = True
        result.reconciled = reconciled
        return result

    async def _resolve_block(self, timestamp: int) -> int:
        if self._blocks is None:
            raise RuntimeError("no block resolver configured")
        api_key = self.config.etherscan_api_key
        block = await self._blocks.block_for_timestamp(timestamp, api_key)
        if block is None:
            log_event(log, "block_resolution_fallback", level=logging.WARNING, timestamp=timestamp)
            block = await self._blocks.latest_block(api_key)
        return block

    async def _layer_one_at_block(self, block: int) -> LayerOneSupply:
        data = await self._layer_one.fetch_at_block(block)
        if data is None:
            log_event(log, "l1_block_fallback_latest", level=logging.WARNING, block=block)
            data = await self._layer_one.fetch_latest()
        return data

    async def _layer_two_at_block(self, block: int) -> LayerTwoSupply:
        endpoint = self.config.l2_endpoint
        data = await self._layer_two.fetch_at_block(block, endpoint)
        if data is None:
            log_event(log, "l2_block_fallback_latest", level=logging.WARNING, block=block)
            data = await self._layer_two.fetch_latest(endpoint)
        return data

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _report_validation(self, stage: str, check: ValidationResult) -> None:
        for warning in check.warnings:
            log_event(log, "supply_validation_warning", level=logging.WARNING, stage=stage, warning=warning)
        if check.errors:
            log_event(log, "supply_validation_failed", level=logging.ERROR, stage=stage, errors=check.errors)
        if self._metrics is not None:
            if check.warnings:
                self._metrics.validation_warnings.labels(stage=stage).inc(len(check.warnings))
            if check.errors:
                self._metrics.validation_errors.labels(stage=stage).inc(len(check.errors))

    def _observe_fetch(self, layer: str, duration_ms: float) -> None:
        if self._metrics is not None and duration_ms > 0:
            self._metrics.fetch_duration_ms.labels(layer=layer).observe(duration_ms)

    def _finish(self, result: ReconciliationResult, mode: str, start: float) -> ReconciliationResult:
        result.total_duration_ms = elapsed_ms(start)
        outcome = "success" if result.success else ("circuit_open" if result.circuit_open else "failure")
        if result.success and result.reconciled is not None:
            rec = result.reconciled
            log_event(
                log, "supply_reconciled", mode=mode, block=result.block_number,
                total=str(rec.total_supply), circulating=str(rec.circulating_supply),
                locked=str(rec.locked_supply), duration_ms=round(result.total_duration_ms, 3),
            )
        if self._metrics is not None:
            self._metrics.reconciliations.labels(mode=mode, outcome=outcome).inc()
            self._metrics.reconciliation_duration_ms.labels(mode=mode).observe(result.total_duration_ms)
            if result.success and result.reconciled is not None:
                self._metrics.reconciled_total.set(float(result.reconciled.total_supply))
                self._metrics.reconciled_circulating.set(float(result.reconciled.circulating_supply))
        return result


def _settle(
    outcome: Union[RetryResult, BaseException],
) -> Tuple[Optional[T], float, Optional[str], bool]:
    """
    Unpack one joined fetch into (data, duration_ms, error, circuit_open).

    A failed side reports a duration of 0.
    """
    if isinstance(outcome, BaseException):
        return None, 0.0, str(outcome) or outcome.__class__.__name__, False
    if not outcome.success:
        return None, 0.0, outcome.error or "Unknown error", outcome.circuit_open
    if outcome.data is None:
        return None, 0.0, "source returned no data", False
    return outcome.data, outcome.total_duration_ms, None, False
