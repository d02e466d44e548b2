"""
Prometheus metrics for reconciliation observability.

Organized into: reconciliations, fetches, validation, reconciled figures.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest


class ReconciliationMetrics:
    """Collectors for the reconciliation pipeline."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        reg = registry or CollectorRegistry()
        self.registry = reg

        # === Reconciliation Metrics ===
        self.reconciliations = Counter(
            'supply_reconciliations_total',
            'Reconciliation requests by mode and outcome',
            labelnames=['mode', 'outcome'],
            registry=reg
        )
        self.reconciliation_duration_ms = Histogram(
            'supply_reconciliation_duration_ms',
            'End-to-end reconciliation time (milliseconds)',
            labelnames=['mode'],
            buckets=[50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000],
            registry=reg
        )

        # === Fetch Metrics ===
        self.fetch_duration_ms = Histogram(
            'supply_fetch_duration_ms',
            'Per-layer fetch time including retries (milliseconds)',
            labelnames=['layer'],
            buckets=[50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000],
            registry=reg
        )
        self.fetch_attempts = Counter(
            'supply_fetch_attempts_total',
            'Retry executor outcomes per operation',
            labelnames=['operation', 'outcome'],
            registry=reg
        )
        self.circuit_open = Gauge(
            'supply_circuit_breaker_open',
            'Circuit breaker open (1) or closed (0)',
            labelnames=['operation'],
            registry=reg
        )

        # === Validation Metrics ===
        self.validation_warnings = Counter(
            'supply_validation_warnings_total',
            'Non-fatal validation findings',
            labelnames=['stage'],
            registry=reg
        )
        self.validation_errors = Counter(
            'supply_validation_errors_total',
            'Fatal validation findings',
            labelnames=['stage'],
            registry=reg
        )

        # === Reconciled Figures ===
        self.reconciled_total = Gauge(
            'supply_reconciled_total_tokens',
            'Last reconciled total supply (tokens)',
            registry=reg
        )
        self.reconciled_circulating = Gauge(
            'supply_reconciled_circulating_tokens',
            'Last reconciled circulating supply (tokens)',
            registry=reg
        )

    def render(self) -> bytes:
        """Prometheus text exposition of this registry."""
        return generate_latest(self.registry)
