"""
Lightweight HTTP server exposing reconciled supply, health, and metrics.

Endpoints:
- GET /token-supply        - reconciled total supply (text/plain)
- GET /circulating-supply  - reconciled circulating supply (text/plain)
- GET /global-state        - full reconciled view (JSON); ?timestamp=<unix s>
- GET /health              - circuit breaker status (503 if any is open)
- GET /ping                - liveness probe
- GET /config              - non-secret configuration summary
- GET /metrics             - Prometheus metrics

Reconciliation failures map to 503 so callers see degraded service rather
than stale or partial figures.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, TYPE_CHECKING
from urllib.parse import parse_qs, urlparse

from supply_recon import __version__
from supply_recon.core.amounts import to_float
from supply_recon.infra.logging_cfg import LOGGER_NAME, log_event

if TYPE_CHECKING:
    from supply_recon.config.config import Settings
    from supply_recon.monitoring.metrics import ReconciliationMetrics
    from supply_recon.reconciliation.supply_reconciler import SupplyReconciler
    from supply_recon.reconciliation.types import ReconciliationResult

log = logging.getLogger(LOGGER_NAME)

Response = Tuple[bytes, str, bytes]

STATUS_LINES = {
    200: b"200 OK",
    400: b"400 Bad Request",
    404: b"404 Not Found",
    405: b"405 Method Not Allowed",
    500: b"500 Internal Server Error",
    503: b"503 Service Unavailable",
}


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json(status: int, payload: Any) -> Response:
    return STATUS_LINES[status], "application/json", json.dumps(payload).encode()


def _text(status: int, body: str) -> Response:
    return STATUS_LINES[status], "text/plain", body.encode()


def _failure(result: "ReconciliationResult") -> Response:
    return _json(503, {
        "error": "Supply reconciliation failed",
        "errors": result.errors,
        "circuitOpen": result.circuit_open,
        "metadata": result.metadata(),
        "timestamp": _iso_now(),
    })


class SupplyApi:
    """Routes parsed requests to the reconciler. Transport-free for testing."""

    def __init__(
        self,
        reconciler: "SupplyReconciler",
        settings: Optional["Settings"] = None,
        metrics: Optional["ReconciliationMetrics"] = None,
    ) -> None:
        self._reconciler = reconciler
        self._settings = settings
        self._metrics = metrics

    async def dispatch(self, method: str, target: str) -> Response:
        parsed = urlparse(target)
        path = parsed.path.rstrip("/") or "/"
        query = parse_qs(parsed.query)

        if method != "GET":
            return _json(405, {"error": f"Method {method} not allowed"})

        if path == "/token-supply":
            result = await self._reconciler.reconcile_latest()
            if not result.success:
                return _failure(result)
            return _text(200, str(to_float(result.reconciled.total_supply)))

        if path == "/circulating-supply":
            result = await self._reconciler.reconcile_latest()
            if not result.success:
                return _failure(result)
            return _text(200, str(to_float(result.reconciled.circulating_supply)))

        if path == "/global-state":
            raw_ts = query.get("timestamp", [""])[0]
            if raw_ts:
                try:
                    timestamp = int(raw_ts)
                except ValueError:
                    return _json(400, {"error": f"Invalid timestamp: {raw_ts}"})
                if timestamp <= 0:
                    return _json(400, {"error": f"Invalid timestamp: {raw_ts}"})
                result = await self._reconciler.reconcile_at_timestamp(timestamp)
            else:
                result = await self._reconciler.reconcile_latest()
            if not result.success:
                return _failure(result)
            body: Dict[str, Any] = result.reconciled.to_dict()
            body["metadata"] = result.metadata()
            return _json(200, body)

        if path == "/health":
            status = self._reconciler.get_circuit_breaker_status()
            healthy = not any(s.is_open for s in status.values())
            return _json(200 if healthy else 503, {
                "healthy": healthy,
                "circuitBreakers": {name: s.to_dict() for name, s in status.items()},
                "timestamp": _iso_now(),
            })

        if path == "/ping":
            return _json(200, {
                "status": "healthy",
                "timestamp": _iso_now(),
                "version": f"L1+L2-reconciliation/{__version__}",
            })

        if path == "/config":
            payload: Dict[str, Any] = {"timestamp": _iso_now()}
            if self._settings is not None:
                s = self._settings
                payload.update({
                    "l2SubgraphConfigured": bool(s.l2_subgraph_url),
                    "etherscanConfigured": bool(s.etherscan_api_key),
                    "retryConfig": {
                        "maxAttempts": s.max_attempts,
                        "baseDelayMs": s.base_delay_ms,
                        "maxDelayMs": s.max_delay_ms,
                        "backoffMultiplier": s.backoff_multiplier,
                    },
                    "circuitBreaker": {
                        "threshold": s.circuit_breaker_threshold,
                        "cooldownMs": s.circuit_breaker_cooldown_ms,
                    },
                    "validationEnabled": s.enable_validation,
                })
            return _json(200, payload)

        if path == "/metrics":
            if self._metrics is None:
                return _text(404, "metrics disabled")
            return STATUS_LINES[200], "text/plain; version=0.0.4", self._metrics.render()

        return _json(404, {"error": f"Endpoint {parsed.path} not found."})


async def start_api_server(
    api: SupplyApi,
    port: int,
    host: str = "0.0.0.0",
) -> asyncio.AbstractServer:
    """Start the HTTP server; port 0 binds an ephemeral port."""

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        req = await reader.read(4096)
        method, target = "GET", "/"
        first_line = req.split(b"\r\n", 1)[0]
        parts = first_line.split(b" ")
        if len(parts) >= 2:
            method = parts[0].decode("ascii", errors="ignore").upper()
            target = parts[1].decode("utf-8", errors="ignore")

        try:
            status, content_type, body = await api.dispatch(method, target)
        except Exception as exc:
            log.exception("request handling failed")
            status, content_type, body = _json(500, {
                "error": "Internal Server Error",
                "message": str(exc),
                "timestamp": _iso_now(),
            })

        log_event(log, "api_request", level=logging.DEBUG, method=method, target=target, status=status.decode())
        resp = (
            b"HTTP/1.1 " + status + b"\r\n"
            b"Content-Type: " + content_type.encode() + b"\r\n"
            b"Content-Length: " + str(len(body)).encode() + b"\r\n"
            b"Connection: close\r\n\r\n"
            + body
        )
        writer.write(resp)
        await writer.drain()
        writer.close()

    return await asyncio.start_server(handle, host, port)
