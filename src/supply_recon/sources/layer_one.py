"""
Layer-one global state from the network subgraph.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from supply_recon.core.errors import GraphQLError
from supply_recon.infra.logging_cfg import LOGGER_NAME, log_event
from supply_recon.reconciliation.types import LayerOneSupply
from supply_recon.sources.graphql import GraphQLClient

log = logging.getLogger(LOGGER_NAME)

DEFAULT_L1_SUBGRAPH_URL = (
    "https://gateway.thegraph.com/api/subgraphs/id/6FzQRX4QRVUcAKp6K1DjwnvuQwSYfwhdVG2EhVmHrUwY"
)

GLOBAL_STATES_QUERY = """
  query allGlobalStates(
    $blockFilter: Block_height
    $orderDirection: OrderDirection
  ) {
    globalStates(block: $blockFilter, orderDirection: $orderDirection) {
      totalSupply
      lockedSupply
      lockedSupplyGenesis
      liquidSupply
      circulatingSupply
    }
  }
"""


class LayerOneSubgraph:
    def __init__(self, client: GraphQLClient, url: str = DEFAULT_L1_SUBGRAPH_URL) -> None:
        self._client = client
        self.url = url

    async def _rows(self, variables: Dict[str, Any]) -> List[Dict[str, Any]]:
        data = await self._client.query(self.url, GLOBAL_STATES_QUERY, variables)
        rows = data.get("globalStates")
        if rows is None:
            raise GraphQLError("Failed to fetch global state: no globalStates field")
        return rows

    async def fetch_latest(self) -> LayerOneSupply:
        rows = await self._rows({"orderDirection": "desc"})
        if not rows:
            raise GraphQLError("Failed to fetch latest global state: no rows")
        return LayerOneSupply.from_dict(rows[0])

    async def fetch_at_block(self, block_number: int) -> Optional[LayerOneSupply]:
        rows = await self._rows({"blockFilter": {"number": block_number}})
        if len(rows) > 1:
            raise GraphQLError(f"globalStates.length > 1 at block {block_number}")
        if not rows:
            log_event(log, "l1_block_empty", level=logging.WARNING, block=block_number)
            return None
        return LayerOneSupply.from_dict(rows[0])
