"""
Monitoring package.

This package contains Prometheus metrics for the reconciliation pipeline.
"""

from supply_recon.monitoring.metrics import ReconciliationMetrics

__all__ = ["ReconciliationMetrics"]
