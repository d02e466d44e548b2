"""
Core utilities package.

This package contains exact decimal amount helpers, the error hierarchy,
and common time utilities.
"""

from supply_recon.core.amounts import (
    DEFAULT_TOLERANCE,
    WEI_PER_TOKEN,
    from_wei,
    to_decimal,
    to_float,
    within_tolerance,
)
from supply_recon.core.errors import (
    BlockResolutionError,
    CircuitOpenError,
    GraphQLError,
    InvalidAmountError,
    SourceFetchError,
    SupplyReconError,
)
from supply_recon.core.utils import elapsed_ms, now_ms

__all__ = [
    "DEFAULT_TOLERANCE",
    "WEI_PER_TOKEN",
    "from_wei",
    "to_decimal",
    "to_float",
    "within_tolerance",
    "BlockResolutionError",
    "CircuitOpenError",
    "GraphQLError",
    "InvalidAmountError",
    "SourceFetchError",
    "SupplyReconError",
    "elapsed_ms",
    "now_ms",
]
