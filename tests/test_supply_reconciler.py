"""
Tests for SupplyReconciler orchestration.

Sources are AsyncMocks; the retry executor runs for real with a no-op sleep
so failure paths exhaust instantly.
"""
import asyncio
from decimal import Decimal

import pytest
from unittest.mock import AsyncMock, MagicMock

from supply_recon.core.errors import BlockResolutionError, GraphQLError
from supply_recon.infra.circuit_breaker import CircuitBreakerConfig, CircuitBreakerRegistry
from supply_recon.infra.retry import RetryConfig, RetryHandler
from supply_recon.monitoring.metrics import ReconciliationMetrics
from supply_recon.reconciliation.supply_reconciler import SupplyReconciler
from supply_recon.reconciliation.types import (
    LayerOneSupply,
    LayerTwoSupply,
    ReconciliationConfig,
)

L2_ENDPOINT = "https://l2.example/subgraph"
API_KEY = "test-etherscan-key"


async def _no_sleep(_seconds):
    return None


@pytest.fixture
def layer_one(l1_snapshot):
    source = MagicMock()
    source.fetch_latest = AsyncMock(return_value=l1_snapshot)
    source.fetch_at_block = AsyncMock(return_value=l1_snapshot)
    return source


@pytest.fixture
def layer_two(l2_snapshot):
    source = MagicMock()
    source.fetch_latest = AsyncMock(return_value=l2_snapshot)
    source.fetch_at_block = AsyncMock(return_value=l2_snapshot)
    return source


@pytest.fixture
def blocks():
    resolver = MagicMock()
    resolver.block_for_timestamp = AsyncMock(return_value=18_000_000)
    resolver.latest_block = AsyncMock(return_value=18_500_000)
    return resolver


@pytest.fixture
def metrics():
    return ReconciliationMetrics()


def _make(layer_one, layer_two, blocks=None, metrics=None, breakers=None, **config):
    cfg = ReconciliationConfig(l2_endpoint=L2_ENDPOINT, etherscan_api_key=API_KEY, **config)
    handler = RetryHandler(RetryConfig(max_attempts=3), breakers=breakers, sleep=_no_sleep)
    return SupplyReconciler(
        config=cfg,
        layer_one=layer_one,
        layer_two=layer_two,
        block_resolver=blocks,
        retry_handler=handler,
        metrics=metrics,
    )


class TestReconcileLatest:
    """Happy path and fetch failures."""

    @pytest.mark.asyncio
    async def test_success(self, layer_one, layer_two, l1_snapshot, l2_snapshot):
        reconciler = _make(layer_one, layer_two)

        result = await reconciler.reconcile_latest()

        assert result.success
        assert result.errors == []
        assert result.reconciled.total_supply == Decimal("10114095110.824705840178526722")
        assert result.reconciled.circulating_supply == Decimal("8214095110.824705840178526722")
        assert result.reconciled.layer_one == l1_snapshot
        assert result.reconciled.layer_two == l2_snapshot
        assert result.l1_fetch_duration_ms >= 0
        assert result.l2_fetch_duration_ms >= 0
        assert result.total_duration_ms >= 0
        assert not result.circuit_open
        assert result.block_number is None
        layer_two.fetch_latest.assert_awaited_with(L2_ENDPOINT)

    @pytest.mark.asyncio
    async def test_layer_one_failure(self, layer_one, layer_two):
        layer_one.fetch_latest.side_effect = GraphQLError("L1 subgraph unavailable")
        reconciler = _make(layer_one, layer_two)

        result = await reconciler.reconcile_latest()

        assert not result.success
        assert result.reconciled is None
        assert result.errors == ["L1 fetch failed: L1 subgraph unavailable"]
        assert layer_one.fetch_latest.await_count == 3
        assert result.l1_fetch_duration_ms == 0
        assert result.metadata()["l1FetchDurationMs"] == 0
        assert result.l2_fetch_duration_ms >= 0

    @pytest.mark.asyncio
    async def test_layer_two_failure(self, layer_one, layer_two):
        layer_two.fetch_latest.side_effect = GraphQLError("L2 subgraph unavailable")
        reconciler = _make(layer_one, layer_two)

        result = await reconciler.reconcile_latest()

        assert not result.success
        assert result.errors == ["L2 fetch failed: L2 subgraph unavailable"]

    @pytest.mark.asyncio
    async def test_both_failures_reported_layer_one_first(self, layer_one, layer_two):
        layer_one.fetch_latest.side_effect = GraphQLError("l1 down")
        layer_two.fetch_latest.side_effect = GraphQLError("l2 down")
        reconciler = _make(layer_one, layer_two)

        result = await reconciler.reconcile_latest()

        assert result.errors == ["L1 fetch failed: l1 down", "L2 fetch failed: l2 down"]

    @pytest.mark.asyncio
    async def test_fetches_run_concurrently(self, layer_one, layer_two, l1_snapshot, l2_snapshot):
        l2_started = asyncio.Event()

        async def l1_fetch():
            await asyncio.wait_for(l2_started.wait(), timeout=1.0)
            return l1_snapshot

        async def l2_fetch(_endpoint):
            l2_started.set()
            return l2_snapshot

        layer_one.fetch_latest = l1_fetch
        layer_two.fetch_latest = l2_fetch
        reconciler = _make(layer_one, layer_two)

        result = await reconciler.reconcile_latest()

        assert result.success

    @pytest.mark.asyncio
    async def test_missing_data_is_a_fetch_failure(self, layer_one, layer_two):
        layer_one.fetch_latest.return_value = None
        reconciler = _make(layer_one, layer_two)

        result = await reconciler.reconcile_latest()

        assert not result.success
        assert result.errors[0].startswith("L1 fetch failed: ")


class TestValidationGate:
    """Validation errors abort; warnings do not."""

    @pytest.mark.asyncio
    async def test_raw_validation_error(self, layer_one, layer_two):
        layer_one.fetch_latest.return_value = LayerOneSupply(
            total_supply="1000",
            locked_supply="400",
            locked_supply_genesis="100",
            liquid_supply="600",
            circulating_supply="2000",
        )
        reconciler = _make(layer_one, layer_two)

        result = await reconciler.reconcile_latest()

        assert not result.success
        assert result.reconciled is None
        assert any(e.startswith("L1 validation: ") for e in result.errors)
        assert all(not e.startswith("L2 validation: ") for e in result.errors)

    @pytest.mark.asyncio
    async def test_validation_disabled_skips_checks(self, layer_one, layer_two):
        layer_one.fetch_latest.return_value = LayerOneSupply(
            total_supply="1000",
            locked_supply="400",
            locked_supply_genesis="100",
            liquid_supply="600",
            circulating_supply="2000",
        )
        reconciler = _make(layer_one, layer_two, enable_validation=False)

        result = await reconciler.reconcile_latest()

        assert result.success

    @pytest.mark.asyncio
    async def test_reconciled_validation_error(self, layer_one, layer_two):
        layer_one.fetch_latest.return_value = LayerOneSupply("0", "0", "0", "0", "0")
        layer_two.fetch_latest.return_value = LayerTwoSupply("0", "0", "0")
        reconciler = _make(layer_one, layer_two)

        result = await reconciler.reconcile_latest()

        assert not result.success
        assert result.errors == [
            "Reconciliation validation: Reconciled totalSupply must be positive"
        ]

    @pytest.mark.asyncio
    async def test_malformed_amount_without_validation(self, layer_one, layer_two):
        layer_one.fetch_latest.return_value = LayerOneSupply("abc", "0", "0", "0", "0")
        reconciler = _make(layer_one, layer_two, enable_validation=False)

        result = await reconciler.reconcile_latest()

        assert not result.success
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Reconciliation error: ")


class TestCircuitBreaking:
    """Open breakers fail the request without calling the source."""

    @pytest.mark.asyncio
    async def test_open_layer_one_breaker(self, layer_one, layer_two):
        breakers = CircuitBreakerRegistry(CircuitBreakerConfig(threshold=1))
        breakers.record_failure("L1_LATEST_GLOBAL_STATE")
        reconciler = _make(layer_one, layer_two, breakers=breakers)

        result = await reconciler.reconcile_latest()

        assert not result.success
        assert result.circuit_open
        assert result.errors == [
            "L1 fetch failed: Circuit breaker open for L1_LATEST_GLOBAL_STATE. "
            "Too many recent failures."
        ]
        layer_one.fetch_latest.assert_not_awaited()
        layer_two.fetch_latest.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_repeated_failures_trip_breaker(self, layer_one, layer_two):
        layer_one.fetch_latest.side_effect = GraphQLError("down")
        reconciler = _make(layer_one, layer_two)

        for _ in range(5):
            await reconciler.reconcile_latest()
        result = await reconciler.reconcile_latest()

        assert result.circuit_open
        assert layer_one.fetch_latest.await_count == 15
        status = reconciler.get_circuit_breaker_status()
        assert status["L1_LATEST_GLOBAL_STATE"].is_open
        assert "L2_LATEST_SUPPLY" not in status


class TestReconcileAtTimestamp:
    """Block resolution and per-layer fallbacks."""

    @pytest.mark.asyncio
    async def test_uses_resolved_block(self, layer_one, layer_two, blocks):
        reconciler = _make(layer_one, layer_two, blocks=blocks)

        result = await reconciler.reconcile_at_timestamp(1_700_000_000)

        assert result.success
        assert result.block_number == 18_000_000
        assert result.metadata()["blockNumber"] == 18_000_000
        blocks.block_for_timestamp.assert_awaited_once_with(1_700_000_000, API_KEY)
        layer_one.fetch_at_block.assert_awaited_once_with(18_000_000)
        layer_two.fetch_at_block.assert_awaited_once_with(18_000_000, L2_ENDPOINT)
        blocks.latest_block.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unresolved_timestamp_falls_back_to_latest_block(self, layer_one, layer_two, blocks):
        blocks.block_for_timestamp.return_value = None
        reconciler = _make(layer_one, layer_two, blocks=blocks)

        result = await reconciler.reconcile_at_timestamp(1_700_000_000)

        assert result.success
        assert result.block_number == 18_500_000
        layer_one.fetch_at_block.assert_awaited_once_with(18_500_000)

    @pytest.mark.asyncio
    async def test_empty_block_falls_back_to_latest_data(self, layer_one, layer_two, blocks):
        layer_one.fetch_at_block.return_value = None
        layer_two.fetch_at_block.return_value = None
        reconciler = _make(layer_one, layer_two, blocks=blocks)

        result = await reconciler.reconcile_at_timestamp(1_700_000_000)

        assert result.success
        layer_one.fetch_latest.assert_awaited_once()
        layer_two.fetch_latest.assert_awaited_once_with(L2_ENDPOINT)

    @pytest.mark.asyncio
    async def test_block_resolution_failure(self, layer_one, layer_two, blocks):
        blocks.block_for_timestamp.return_value = None
        blocks.latest_block.side_effect = BlockResolutionError("rate limited")
        reconciler = _make(layer_one, layer_two, blocks=blocks)

        result = await reconciler.reconcile_at_timestamp(1_700_000_000)

        assert not result.success
        assert result.errors == ["Timestamp-based reconciliation error: rate limited"]
        layer_one.fetch_at_block.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_without_resolver(self, layer_one, layer_two):
        reconciler = _make(layer_one, layer_two)

        result = await reconciler.reconcile_at_timestamp(1_700_000_000)

        assert not result.success
        assert result.errors[0].startswith("Timestamp-based reconciliation error: ")

    @pytest.mark.asyncio
    async def test_block_fetch_uses_block_operation_names(self, layer_one, layer_two, blocks):
        layer_two.fetch_at_block.side_effect = GraphQLError("down")
        reconciler = _make(layer_one, layer_two, blocks=blocks)

        result = await reconciler.reconcile_at_timestamp(1_700_000_000)

        assert result.errors == ["L2 fetch failed: down"]
        status = reconciler.get_circuit_breaker_status()
        assert status["L2_BLOCK_SUPPLY"].count == 1
        assert "L2_LATEST_SUPPLY" not in status


class TestMetrics:
    """Outcomes land in the injected registry."""

    @pytest.mark.asyncio
    async def test_success_metrics(self, layer_one, layer_two, metrics):
        reconciler = _make(layer_one, layer_two, metrics=metrics)

        result = await reconciler.reconcile_latest()

        reg = metrics.registry
        assert reg.get_sample_value(
            "supply_reconciliations_total", {"mode": "latest", "outcome": "success"}
        ) == 1.0
        assert reg.get_sample_value("supply_reconciled_total_tokens") == float(
            result.reconciled.total_supply
        )
        assert reg.get_sample_value(
            "supply_validation_warnings_total", {"stage": "reconciled"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_failure_metrics(self, layer_one, layer_two, metrics):
        layer_two.fetch_latest.side_effect = GraphQLError("down")
        reconciler = _make(layer_one, layer_two, metrics=metrics)

        await reconciler.reconcile_latest()

        assert metrics.registry.get_sample_value(
            "supply_reconciliations_total", {"mode": "latest", "outcome": "failure"}
        ) == 1.0
