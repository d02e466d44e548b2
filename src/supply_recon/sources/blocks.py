"""
Block number resolution through the Etherscan API.

block_for_timestamp() is best-effort: any failure yields None and the
orchestrator falls back to the latest block. latest_block() raises, since
without it there is nothing to fall back to.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from supply_recon.core.errors import BlockResolutionError
from supply_recon.infra.logging_cfg import LOGGER_NAME, log_event

log = logging.getLogger(LOGGER_NAME)

DEFAULT_ETHERSCAN_URL = "https://api.etherscan.io/api"


class EtherscanBlocks:
    def __init__(
        self,
        base_url: str = DEFAULT_ETHERSCAN_URL,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url
        if client is not None:
            self.client = client
            self._owns_client = False
        else:
            self.client = httpx.AsyncClient(timeout=timeout)
            self._owns_client = True

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def block_for_timestamp(self, timestamp: int, api_key: str) -> Optional[int]:
        params = {
            "module": "block",
            "action": "getblocknobytime",
            "timestamp": str(timestamp),
            "closest": "before",
            "apikey": api_key,
        }
        try:
            resp = await self.client.get(self.base_url, params=params)
        except httpx.HTTPError as exc:
            log_event(log, "block_lookup_failed", level=logging.WARNING, timestamp=timestamp, err=str(exc))
            return None

        if resp.status_code != 200:
            log_event(log, "block_lookup_failed", level=logging.WARNING, timestamp=timestamp, status=resp.status_code)
            return None

        try:
            data = resp.json()
        except ValueError:
            log_event(log, "block_lookup_failed", level=logging.WARNING, timestamp=timestamp, err="invalid json")
            return None

        if not isinstance(data, dict):
            log_event(log, "block_lookup_failed", level=logging.WARNING, timestamp=timestamp, err="unexpected payload")
            return None

        result = data.get("result")
        # Block number arrives either bare or wrapped as {"blockNumber": ...}
        raw = result.get("blockNumber") if isinstance(result, dict) else result
        if data.get("status") != "1" or not isinstance(raw, str) or not raw:
            log_event(
                log, "block_lookup_failed", level=logging.WARNING,
                timestamp=timestamp, message=data.get("message"),
            )
            return None

        try:
            block = int(raw, 10)
        except (TypeError, ValueError):
            log_event(log, "block_lookup_failed", level=logging.WARNING, timestamp=timestamp, result=result)
            return None
        # Etherscan answers 0 when no block precedes the timestamp
        return block or None

    async def latest_block(self, api_key: str) -> int:
        """
        Raises:
            BlockResolutionError: HTTP error, rate limit, or unparseable payload
        """
        params = {"module": "proxy", "action": "eth_blockNumber", "apikey": api_key}
        try:
            resp = await self.client.get(self.base_url, params=params)
        except httpx.HTTPError as exc:
            raise BlockResolutionError(f"Etherscan request failed for latest block: {exc}") from exc

        if resp.status_code != 200:
            raise BlockResolutionError(f"Etherscan API error for latest block: {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise BlockResolutionError("Failed to parse latest block from Etherscan response") from exc

        if not isinstance(data, dict):
            raise BlockResolutionError("Failed to parse latest block from Etherscan response")

        result = data.get("result")
        if isinstance(result, str) and result.startswith("0x"):
            try:
                return int(result, 16)
            except ValueError as exc:
                raise BlockResolutionError(f"Invalid hex block number: {result}") from exc
        if data.get("message") == "NOTOK" and isinstance(result, str) and "Max rate limit reached" in result:
            raise BlockResolutionError("Etherscan API rate limit reached for latest block")
        raise BlockResolutionError("Failed to parse latest block from Etherscan response")
