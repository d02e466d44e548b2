"""
Exact decimal helpers for wei-scale token amounts.

Upstream ledgers report amounts as base-10 integer strings in the smallest
unit (10^18 per token). Floats cannot hold 28-digit integers exactly, so all
arithmetic goes through Decimal with a context wide enough that dividing by
10^18 never rounds.

Usage:
    from supply_recon.core.amounts import from_wei

    total = from_wei("10000000000000000000000000000")  # Decimal("10000000000")
"""

from __future__ import annotations

from decimal import Context, Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import Union

from supply_recon.core.errors import InvalidAmountError

AmountLike = Union[str, int, Decimal]

# 60 significant digits: 28-digit wei integers plus 18 fractional digits fit
# with room for sums of several such values.
AMOUNT_CONTEXT = Context(prec=60, rounding=ROUND_HALF_EVEN)

WEI_PER_TOKEN = Decimal(10) ** 18

# Relative tolerance for "approximately equal" supply relationships (0.1%)
DEFAULT_TOLERANCE = Decimal("0.001")


def to_decimal(value: AmountLike) -> Decimal:
    """
    Parse an amount into a Decimal.

    Raises:
        InvalidAmountError: value is None, empty, not a finite number, or
            wider than AMOUNT_CONTEXT precision
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise InvalidAmountError(f"not an amount: {value!r}")
    elif isinstance(value, int):
        result = Decimal(value)
    else:
        raw = str(value).strip()
        if not raw:
            raise InvalidAmountError("empty amount")
        try:
            result = Decimal(raw)
        except InvalidOperation as exc:
            raise InvalidAmountError(f"malformed amount: {value!r}") from exc
    if not result.is_finite():
        raise InvalidAmountError(f"non-finite amount: {value!r}")
    # Wider values would be rounded by AMOUNT_CONTEXT arithmetic
    if len(result.as_tuple().digits) > AMOUNT_CONTEXT.prec or result.adjusted() >= AMOUNT_CONTEXT.prec:
        raise InvalidAmountError(f"amount wider than {AMOUNT_CONTEXT.prec} digits: {value!r}")
    return result


def from_wei(value: AmountLike) -> Decimal:
    """Convert a smallest-unit amount to whole tokens."""
    return AMOUNT_CONTEXT.divide(to_decimal(value), WEI_PER_TOKEN)


def add(*values: Decimal) -> Decimal:
    total = Decimal(0)
    for v in values:
        total = AMOUNT_CONTEXT.add(total, v)
    return total


def sub(a: Decimal, b: Decimal) -> Decimal:
    return AMOUNT_CONTEXT.subtract(a, b)


def within_tolerance(
    actual: Decimal,
    expected: Decimal,
    rel_tol: Union[Decimal, float] = DEFAULT_TOLERANCE,
) -> bool:
    """
    True when |actual - expected| <= |expected| * rel_tol.

    The tolerance is relative to the expected value, so an expected value
    of zero demands exact equality.
    """
    tol = rel_tol if isinstance(rel_tol, Decimal) else Decimal(str(rel_tol))
    diff = AMOUNT_CONTEXT.abs(sub(actual, expected))
    allowed = AMOUNT_CONTEXT.multiply(AMOUNT_CONTEXT.abs(expected), tol)
    return diff <= allowed


def to_float(value: Decimal) -> float:
    """Lossy conversion for JSON output only; never feed the result back into math."""
    return float(value)


def is_integral(value: Decimal) -> bool:
    return value == value.to_integral_value()


def to_wei_string(value: Decimal) -> str:
    """
    Render an integral Decimal as a plain integer string (no exponent).

    Raises:
        InvalidAmountError: value has a fractional part
    """
    if not is_integral(value):
        raise InvalidAmountError(f"not an integer wei amount: {value}")
    return format(value.quantize(Decimal(1), context=AMOUNT_CONTEXT), "f")
