"""
Exception hierarchy for supply reconciliation.

Adapters raise SourceFetchError subclasses; the retry boundary turns them
into RetryResult values, so callers of the orchestrator only ever see
aggregated error strings.
"""

from __future__ import annotations


class SupplyReconError(Exception):
    """Base class for all supply_recon errors."""


class InvalidAmountError(SupplyReconError, ValueError):
    """An amount string could not be parsed as a finite decimal."""


class SourceFetchError(SupplyReconError):
    """Transient failure while fetching facts from an upstream source."""


class GraphQLError(SourceFetchError):
    """Subgraph returned a bad status, GraphQL errors, or no data."""


class BlockResolutionError(SourceFetchError):
    """Block explorer could not resolve a block number."""


class CircuitOpenError(SupplyReconError):
    """Raised when an operation is short-circuited by an open breaker."""

    def __init__(self, operation_name: str) -> None:
        self.operation_name = operation_name
        super().__init__(
            f"Circuit breaker open for {operation_name}. Too many recent failures."
        )
