"""
Layer-two network totals from the layer-two subgraph.

Snapshots are built through LayerTwoSupply so the derived net supply is
always computed from the raw fields, never taken from upstream.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from supply_recon.core.errors import GraphQLError
from supply_recon.infra.logging_cfg import LOGGER_NAME, log_event
from supply_recon.reconciliation.types import LayerTwoSupply
from supply_recon.sources.graphql import GraphQLClient

log = logging.getLogger(LOGGER_NAME)

GRAPH_NETWORKS_QUERY = """
  query l2GraphNetworks($blockFilter: Block_height) {
    graphNetworks(first: 1, block: $blockFilter) {
      totalSupply
      totalGRTDepositedConfirmed
      totalGRTWithdrawn
    }
  }
"""


class LayerTwoSubgraph:
    def __init__(self, client: GraphQLClient) -> None:
        self._client = client

    async def _rows(self, endpoint: str, variables: Dict[str, Any]) -> List[Dict[str, Any]]:
        data = await self._client.query(endpoint, GRAPH_NETWORKS_QUERY, variables)
        return data.get("graphNetworks") or []

    def _snapshot(self, row: Dict[str, Any], block: Optional[int]) -> LayerTwoSupply:
        snapshot = LayerTwoSupply.from_dict(row)
        log_event(
            log, "l2_supply_fetched", level=logging.DEBUG,
            block=block if block is not None else "latest",
            total=snapshot.total_supply,
            deposited=snapshot.total_deposited_confirmed,
            withdrawn=snapshot.total_withdrawn,
        )
        return snapshot

    async def fetch_latest(self, endpoint: str) -> LayerTwoSupply:
        rows = await self._rows(endpoint, {})
        if not rows:
            raise GraphQLError("No L2 GraphNetwork data found")
        return self._snapshot(rows[0], None)

    async def fetch_at_block(self, block_number: int, endpoint: str) -> Optional[LayerTwoSupply]:
        rows = await self._rows(endpoint, {"blockFilter": {"number": block_number}})
        if not rows:
            log_event(log, "l2_block_empty", level=logging.WARNING, block=block_number)
            return None
        return self._snapshot(rows[0], block_number)
