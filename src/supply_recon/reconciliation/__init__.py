"""
Reconciliation package.

This package contains the supply data model, validation engine, the
bridge-flow netting algorithm, and the request orchestrator.
"""

from supply_recon.reconciliation.reconciler import reconcile_supply
from supply_recon.reconciliation.supply_reconciler import SupplyReconciler
from supply_recon.reconciliation.types import (
    LayerOneSupply,
    LayerTwoSupply,
    ReconciledSupply,
    ReconciliationConfig,
    ReconciliationResult,
    ValidationResult,
)
from supply_recon.reconciliation.validation import (
    validate_layer_one,
    validate_layer_two,
    validate_reconciled,
)

__all__ = [
    "reconcile_supply",
    "SupplyReconciler",
    "LayerOneSupply",
    "LayerTwoSupply",
    "ReconciledSupply",
    "ReconciliationConfig",
    "ReconciliationResult",
    "ValidationResult",
    "validate_layer_one",
    "validate_layer_two",
    "validate_reconciled",
]
