"""
Minimal async GraphQL client for subgraph endpoints.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from supply_recon.core.errors import GraphQLError

GATEWAY_PREFIX = "https://gateway.thegraph.com/api/subgraphs/id/"


class GraphQLClient:
    def __init__(
        self,
        timeout: float = 10.0,
        gateway_api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._gateway_api_key = gateway_api_key
        # A shared client passed in is not closed by close(); otherwise we own it.
        if client is not None:
            self.client = client
            self._owns_client = False
        else:
            self.client = httpx.AsyncClient(timeout=timeout)
            self._owns_client = True

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def _headers(self, url: str) -> Dict[str, str]:
        headers = {"accept": "*/*", "content-type": "application/json"}
        if self._gateway_api_key and url.startswith(GATEWAY_PREFIX):
            headers["Authorization"] = f"Bearer {self._gateway_api_key}"
        return headers

    async def query(self, url: str, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        POST a query and return its data object.

        Raises:
            GraphQLError: transport failure, non-200 status, GraphQL errors,
                or a response without data
        """
        try:
            resp = await self.client.post(
                url,
                json={"query": query, "variables": variables or {}},
                headers=self._headers(url),
            )
        except httpx.HTTPError as exc:
            raise GraphQLError(f"GraphQL request failed: {exc}") from exc

        if resp.status_code != 200:
            raise GraphQLError(f"Invalid GraphQL status code: {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as exc:
            raise GraphQLError("GraphQL Error: response is not JSON") from exc

        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            messages = ",".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
            raise GraphQLError(f"GraphQL Errors: {messages}")

        data = body.get("data") if isinstance(body, dict) else None
        if not data:
            raise GraphQLError("GraphQL Error: unexpected empty response")
        return data
