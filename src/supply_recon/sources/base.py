"""
Contracts for the upstream collaborators the orchestrator depends on.

Implementations raise SourceFetchError (or any exception) on transient
failure; "at block" lookups return None when the block has no data so the
orchestrator can fall back to latest.
"""

from __future__ import annotations

from typing import Optional, Protocol

from supply_recon.reconciliation.types import LayerOneSupply, LayerTwoSupply


class LayerOneSource(Protocol):
    async def fetch_latest(self) -> LayerOneSupply: ...

    async def fetch_at_block(self, block_number: int) -> Optional[LayerOneSupply]: ...


class LayerTwoSource(Protocol):
    async def fetch_latest(self, endpoint: str) -> LayerTwoSupply: ...

    async def fetch_at_block(self, block_number: int, endpoint: str) -> Optional[LayerTwoSupply]: ...


class BlockResolver(Protocol):
    async def block_for_timestamp(self, timestamp: int, api_key: str) -> Optional[int]: ...

    async def latest_block(self, api_key: str) -> int: ...
