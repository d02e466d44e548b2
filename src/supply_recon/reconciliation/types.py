"""
Data model for supply reconciliation.

Raw snapshots (LayerOneSupply, LayerTwoSupply) keep the upstream
integer-string wei amounts verbatim. The reconciled view carries whole-token
Decimals plus the raw snapshots it was built from.

Mathematical relationships on ReconciledSupply:
    total_supply = liquid_supply + locked_supply
    circulating_supply <= total_supply
    circulating_supply <= liquid_supply (not guaranteed by upstream data)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from supply_recon.core.amounts import DEFAULT_TOLERANCE, sub, to_decimal, to_float, to_wei_string
from supply_recon.core.utils import now_ms


@dataclass(frozen=True)
class LayerOneSupply:
    """Layer-one global state, amounts in wei."""
    total_supply: str
    locked_supply: str
    locked_supply_genesis: str
    liquid_supply: str
    circulating_supply: str

    FIELDS = (
        "total_supply",
        "locked_supply",
        "locked_supply_genesis",
        "liquid_supply",
        "circulating_supply",
    )

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "LayerOneSupply":
        """Build from a subgraph globalState row (camelCase keys)."""
        return cls(
            total_supply=str(raw.get("totalSupply") or ""),
            locked_supply=str(raw.get("lockedSupply") or ""),
            locked_supply_genesis=str(raw.get("lockedSupplyGenesis") or ""),
            liquid_supply=str(raw.get("liquidSupply") or ""),
            circulating_supply=str(raw.get("circulatingSupply") or ""),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "totalSupply": self.total_supply,
            "lockedSupply": self.locked_supply,
            "lockedSupplyGenesis": self.locked_supply_genesis,
            "liquidSupply": self.liquid_supply,
            "circulatingSupply": self.circulating_supply,
        }


@dataclass(frozen=True)
class LayerTwoSupply:
    """
    Layer-two network totals, amounts in wei.

    net_supply is derived at construction and cannot be passed in:
        net_supply = total_supply - (total_deposited_confirmed - total_withdrawn)

    Withdrawals are the bridge-initiated figure (burned on layer two when the
    withdrawal starts), not the layer-one confirmation after the challenge
    period. Empty raw fields count as zero here; validation reports them.

    Raises:
        InvalidAmountError: a raw field is malformed or the derived net
            supply is not a whole number of wei
    """
    total_supply: str
    total_deposited_confirmed: str
    total_withdrawn: str = "0"
    net_supply: str = field(init=False)

    FIELDS = ("total_supply", "total_deposited_confirmed", "total_withdrawn")

    def __post_init__(self) -> None:
        total = _amount_or_zero(self.total_supply)
        deposited = _amount_or_zero(self.total_deposited_confirmed)
        withdrawn = _amount_or_zero(self.total_withdrawn)
        net = sub(total, sub(deposited, withdrawn))
        object.__setattr__(self, "net_supply", to_wei_string(net))

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "LayerTwoSupply":
        """Build from a subgraph graphNetwork row (camelCase keys)."""
        return cls(
            total_supply=str(raw.get("totalSupply") or ""),
            total_deposited_confirmed=str(raw.get("totalGRTDepositedConfirmed") or ""),
            total_withdrawn=str(raw.get("totalGRTWithdrawn") or "0"),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "totalSupply": self.total_supply,
            "totalGRTDepositedConfirmed": self.total_deposited_confirmed,
            "totalGRTWithdrawn": self.total_withdrawn,
            "netL2Supply": self.net_supply,
        }


def _amount_or_zero(value: str) -> Decimal:
    if value is None or not str(value).strip():
        return Decimal(0)
    return to_decimal(value)


@dataclass(frozen=True)
class ReconciledSupply:
    """Unified supply view in whole tokens."""
    total_supply: Decimal
    locked_supply: Decimal
    locked_supply_genesis: Decimal
    liquid_supply: Decimal
    circulating_supply: Decimal
    layer_one: LayerOneSupply
    layer_two: LayerTwoSupply
    reconciled_at_ms: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalSupply": to_float(self.total_supply),
            "lockedSupply": to_float(self.locked_supply),
            "lockedSupplyGenesis": to_float(self.locked_supply_genesis),
            "liquidSupply": to_float(self.liquid_supply),
            "circulatingSupply": to_float(self.circulating_supply),
            "l1Breakdown": self.layer_one.to_dict(),
            "l2Breakdown": self.layer_two.to_dict(),
            "reconciliationTimestamp": self.reconciled_at_ms,
        }


@dataclass
class ValidationResult:
    """Errors are fatal to the request; warnings are logged only."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class ReconciliationConfig:
    """Options recognised by SupplyReconciler."""
    l2_endpoint: str
    enable_validation: bool = True
    tolerance: Decimal = DEFAULT_TOLERANCE
    etherscan_api_key: str = ""


@dataclass
class ReconciliationResult:
    """Per-request outcome. reconciled is None whenever success is False."""
    success: bool
    reconciled: Optional[ReconciledSupply] = None
    errors: List[str] = field(default_factory=list)
    l1_fetch_duration_ms: float = 0.0
    l2_fetch_duration_ms: float = 0.0
    total_duration_ms: float = 0.0
    circuit_open: bool = False
    block_number: Optional[int] = None

    def metadata(self) -> Dict[str, Any]:
        meta: Dict[str, Any] = {
            "l1FetchDurationMs": round(self.l1_fetch_duration_ms, 3),
            "l2FetchDurationMs": round(self.l2_fetch_duration_ms, 3),
            "totalDurationMs": round(self.total_duration_ms, 3),
        }
        if self.block_number is not None:
            meta["blockNumber"] = self.block_number
        return meta
