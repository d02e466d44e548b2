"""
Validation of raw layer snapshots and the reconciled view.

Each check returns a ValidationResult. Errors abort the reconciliation
(retrying cannot fix bad upstream data); warnings are only logged.

Layer one:
    - every field present, integral and non-negative (errors); zero warns
    - total ~= locked + liquid within tolerance (warning)
    - circulating <= total (error)

Layer two:
    - total and deposited present (error); no field negative or fractional (error)
    - deposited <= total (error)
    - stored net supply matches recomputation (warning)
    - negative net supply (warning)

Reconciled:
    - total > 0, circulating >= 0, circulating <= total (errors)
    - total >= 99% of the layer-one total (warning)
    - liquid + locked ~= total within tolerance (warning)
    - circulating <= liquid (warning)
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Optional

from supply_recon.core.amounts import (
    AMOUNT_CONTEXT,
    DEFAULT_TOLERANCE,
    add,
    from_wei,
    is_integral,
    sub,
    to_decimal,
    within_tolerance,
)
from supply_recon.core.errors import InvalidAmountError
from supply_recon.reconciliation.types import (
    LayerOneSupply,
    LayerTwoSupply,
    ReconciledSupply,
    ValidationResult,
)

# Reconciled total may not fall below this share of the layer-one total
MIN_L1_SHARE = Decimal("0.99")

# Upstream names for layer-two fields in messages
L2_LABELS = {
    "total_supply": "totalSupply",
    "total_deposited_confirmed": "totalGRTDepositedConfirmed",
    "total_withdrawn": "totalGRTWithdrawn",
}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _parse_fields(snapshot, names, prefix: str, result: ValidationResult) -> Dict[str, Decimal]:
    """Parse each named field, recording missing/malformed/negative values as errors."""
    parsed: Dict[str, Decimal] = {}
    for name in names:
        raw = getattr(snapshot, name)
        label = _camel(name)
        if raw is None or not str(raw).strip():
            result.errors.append(f"{prefix} {label} is missing")
            continue
        try:
            value = to_decimal(raw)
        except InvalidAmountError:
            result.errors.append(f"{prefix} {label} is not a number: {raw!r}")
            continue
        if value < 0:
            result.errors.append(f"{prefix} {label} cannot be negative: {raw}")
        if not is_integral(value):
            result.errors.append(f"{prefix} {label} must be an integer wei amount: {raw}")
        parsed[name] = value
    return parsed


def validate_layer_one(
    snapshot: LayerOneSupply,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> ValidationResult:
    result = ValidationResult()
    values = _parse_fields(snapshot, LayerOneSupply.FIELDS, "L1", result)

    for name, value in values.items():
        if value == 0:
            result.warnings.append(f"L1 {_camel(name)} is zero")

    total = values.get("total_supply")
    locked = values.get("locked_supply")
    liquid = values.get("liquid_supply")
    circulating = values.get("circulating_supply")

    if total is not None and locked is not None and liquid is not None:
        expected = add(locked, liquid)
        if not within_tolerance(expected, total, tolerance):
            result.warnings.append(
                f"L1 supply relationship inconsistency: totalSupply ({total}) "
                f"!= lockedSupply + liquidSupply ({expected})"
            )

    if total is not None and circulating is not None and circulating > total:
        result.errors.append(
            f"L1 circulatingSupply ({circulating}) cannot exceed totalSupply ({total})"
        )

    return result


def validate_layer_two(snapshot: LayerTwoSupply) -> ValidationResult:
    result = ValidationResult()

    if not str(snapshot.total_supply).strip() or not str(snapshot.total_deposited_confirmed).strip():
        result.errors.append(
            "L2 data is incomplete: missing totalSupply or totalGRTDepositedConfirmed"
        )

    values: Dict[str, Decimal] = {}
    for name in LayerTwoSupply.FIELDS:
        raw = getattr(snapshot, name)
        if raw is None or not str(raw).strip():
            continue
        try:
            value = to_decimal(raw)
        except InvalidAmountError:
            result.errors.append(f"L2 {L2_LABELS[name]} is not a number: {raw!r}")
            continue
        if value < 0:
            result.errors.append(f"L2 {L2_LABELS[name]} cannot be negative: {raw}")
        if not is_integral(value):
            result.errors.append(f"L2 {L2_LABELS[name]} must be an integer wei amount: {raw}")
        values[name] = value

    total = values.get("total_supply")
    deposited = values.get("total_deposited_confirmed")
    withdrawn = values.get("total_withdrawn", Decimal(0))

    if total is None or deposited is None:
        return result

    if deposited > total:
        result.errors.append(
            f"L2 totalGRTDepositedConfirmed ({deposited}) cannot exceed totalSupply ({total})"
        )

    expected_net = sub(total, sub(deposited, withdrawn))
    stored_net = _optional_decimal(snapshot.net_supply)
    if stored_net is None or stored_net != expected_net:
        result.warnings.append(
            f"L2 netL2Supply ({snapshot.net_supply}) doesn't match calculated value ({expected_net})"
        )

    if expected_net < 0:
        result.warnings.append(
            f"L2 net supply is negative ({expected_net}) - more deposited than total supply"
        )

    return result


def validate_reconciled(
    reconciled: ReconciledSupply,
    layer_one: LayerOneSupply,
    layer_two: LayerTwoSupply,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> ValidationResult:
    result = ValidationResult()
    total = reconciled.total_supply
    circulating = reconciled.circulating_supply

    if total <= 0:
        result.errors.append("Reconciled totalSupply must be positive")
    if circulating < 0:
        result.errors.append("Reconciled circulatingSupply cannot be negative")
    if circulating > total:
        result.errors.append(
            f"Reconciled circulatingSupply ({circulating}) cannot exceed totalSupply ({total})"
        )

    l1_total = _optional_decimal(layer_one.total_supply)
    if l1_total is not None:
        floor = AMOUNT_CONTEXT.multiply(from_wei(l1_total), MIN_L1_SHARE)
        if total < floor:
            result.warnings.append(
                f"Reconciled totalSupply ({total}) appears lower than expected based on L1 data "
                f"(L2 net supply {from_wei(layer_two.net_supply)})"
            )

    supply_sum = add(reconciled.locked_supply, reconciled.liquid_supply)
    if not within_tolerance(supply_sum, total, tolerance):
        result.warnings.append(
            f"Reconciled supply relationship inconsistency: totalSupply ({total}) "
            f"!= lockedSupply + liquidSupply ({supply_sum})"
        )

    if circulating > reconciled.liquid_supply:
        result.warnings.append(
            f"Reconciled circulatingSupply ({circulating}) exceeds liquidSupply "
            f"({reconciled.liquid_supply})"
        )

    return result


def _optional_decimal(raw) -> Optional[Decimal]:
    try:
        return to_decimal(raw)
    except InvalidAmountError:
        return None
