"""
Entry point wiring all components.
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys

import httpx

from supply_recon.api.server import SupplyApi, start_api_server
from supply_recon.config.config import Settings
from supply_recon.infra.circuit_breaker import CircuitBreakerRegistry
from supply_recon.infra.logging_cfg import LOGGER_NAME, build_logger
from supply_recon.infra.retry import RetryHandler
from supply_recon.monitoring.metrics import ReconciliationMetrics
from supply_recon.reconciliation.supply_reconciler import SupplyReconciler
from supply_recon.sources.blocks import EtherscanBlocks
from supply_recon.sources.graphql import GraphQLClient
from supply_recon.sources.layer_one import LayerOneSubgraph
from supply_recon.sources.layer_two import LayerTwoSubgraph

log = build_logger(LOGGER_NAME)


async def main() -> None:
    try:
        cfg = Settings.load()
    except ValueError as exc:
        log.error(json.dumps({"event": "config_invalid", "err": str(exc)}))
        sys.exit(1)

    build_logger(LOGGER_NAME, level=logging.getLevelName(cfg.log_level), file_path=cfg.log_file)

    # One shared HTTP client for every upstream; adapters do not own it.
    shared_client = httpx.AsyncClient(timeout=cfg.http_timeout)
    gql = GraphQLClient(gateway_api_key=cfg.gateway_api_key, client=shared_client)
    blocks = EtherscanBlocks(base_url=cfg.etherscan_base_url, client=shared_client)

    metrics = ReconciliationMetrics()
    retry_handler = RetryHandler(
        cfg.retry_config(),
        breakers=CircuitBreakerRegistry(cfg.circuit_breaker_config()),
        metrics=metrics,
    )
    reconciler = SupplyReconciler(
        config=cfg.reconciliation_config(),
        layer_one=LayerOneSubgraph(gql, url=cfg.l1_subgraph_url),
        layer_two=LayerTwoSubgraph(gql),
        block_resolver=blocks,
        retry_handler=retry_handler,
        metrics=metrics,
    )

    srv = await start_api_server(SupplyApi(reconciler, settings=cfg, metrics=metrics), cfg.port)
    log.info(json.dumps({"event": "startup", "port": cfg.port, "validation": cfg.enable_validation}))

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    # Windows doesn't support add_signal_handler, so rely on KeyboardInterrupt handling
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    try:
        await stop.wait()
        log.info("Shutdown signal received, cleaning up...")
    finally:
        srv.close()
        await srv.wait_closed()
        await shared_client.aclose()
        log.info(json.dumps({"event": "shutdown"}))


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nSupply service stopped by user")
    sys.exit(0)


if __name__ == "__main__":
    run()
