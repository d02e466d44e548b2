"""
Bridge-flow netting of layer-one and layer-two supply.

Layer one's total already includes tokens that were bridged to layer two,
so adding layer two's total would count them twice. Only layer two's net
supply (tokens minted there, net of bridge inflow and outflow) is added:

    total       = L1.total + L2.net
    circulating = L1.circulating + L2.net
    locked      = L1.locked           (layer two has no locking primitive)
    liquid      = total - locked
    genesis     = L1.locked_genesis   (unaffected by layer two)

Pure and deterministic: identical snapshots give identical figures.
"""

from __future__ import annotations

from typing import Optional

from supply_recon.core.amounts import add, from_wei, sub
from supply_recon.reconciliation.types import LayerOneSupply, LayerTwoSupply, ReconciledSupply


def reconcile_supply(
    layer_one: LayerOneSupply,
    layer_two: LayerTwoSupply,
    reconciled_at_ms: Optional[int] = None,
) -> ReconciledSupply:
    """
    Combine validated snapshots into one supply view in whole tokens.

    Raises:
        InvalidAmountError: a snapshot field is not a number (only possible
            when validation was skipped)
    """
    l1_total = from_wei(layer_one.total_supply)
    l1_locked = from_wei(layer_one.locked_supply)
    l1_genesis = from_wei(layer_one.locked_supply_genesis)
    l1_circulating = from_wei(layer_one.circulating_supply)
    l2_net = from_wei(layer_two.net_supply)

    total = add(l1_total, l2_net)
    circulating = add(l1_circulating, l2_net)
    liquid = sub(total, l1_locked)

    kwargs = {}
    if reconciled_at_ms is not None:
        kwargs["reconciled_at_ms"] = reconciled_at_ms

    return ReconciledSupply(
        total_supply=total,
        locked_supply=l1_locked,
        locked_supply_genesis=l1_genesis,
        liquid_supply=liquid,
        circulating_supply=circulating,
        layer_one=layer_one,
        layer_two=layer_two,
        **kwargs,
    )
