"""Entry point for the pulse creator dashboard service.

Wires the reconciliation and economics components together and serves the
JSON API with uvicorn. Components share a single asyncio event loop; the
FastAPI lifespan closes network clients and cancels convergence watches on
shutdown.

Component wiring order (in _build_components):
1. TokenRegistry (whitelisted tokens per chain)
2. SubgraphIndexerClient (indexer over GraphQL)
3. Web3LedgerClient (ledger over JSON-RPC)
4. PollStateReconciler (dual-source merge)
5. ConvergenceWatcher (post-transaction indexer catch-up)
6. QuadraticCostEngine (vote pricing)
7. FundingOrchestrator (funding planning)
8. FundingPreflight (balance/allowance reads + planning)
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from pulse.config import AppSettings
from pulse.funding.orchestrator import FundingOrchestrator
from pulse.funding.preflight import FundingPreflight
from pulse.logging import get_logger, setup_logging
from pulse.reconcile.convergence import ConvergenceWatcher
from pulse.reconcile.reconciler import PollStateReconciler
from pulse.sources.subgraph_client import SubgraphIndexerClient
from pulse.sources.web3_client import Web3LedgerClient
from pulse.tokens.registry import TokenRegistry
from pulse.voting.quadratic import QuadraticCostEngine


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all service components from settings.

    Network clients connect lazily on first use, so nothing here does I/O.

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    registry = TokenRegistry()

    indexer = SubgraphIndexerClient(
        settings.indexer,
        registry,
        page_size=settings.reconciler.indexer_page_size,
    )
    ledger = Web3LedgerClient(settings.ledger, registry)

    reconciler = PollStateReconciler(indexer, ledger, settings.reconciler)
    convergence_watcher = ConvergenceWatcher(
        indexer,
        settings.convergence,
        indexer_limit=settings.reconciler.indexer_limit,
    )

    cost_engine = QuadraticCostEngine(settings.voting.max_votes_per_voter)
    orchestrator = FundingOrchestrator(settings.funding, registry)
    preflight = FundingPreflight(orchestrator, ledger)

    return {
        "registry": registry,
        "indexer": indexer,
        "ledger": ledger,
        "reconciler": reconciler,
        "convergence_watcher": convergence_watcher,
        "cost_engine": cost_engine,
        "funding_orchestrator": orchestrator,
        "preflight": preflight,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Expose components on app.state and tear them down on shutdown.

    On shutdown: cancels pending convergence watches, then closes the
    indexer and ledger clients.
    """
    logger = get_logger("pulse.main")
    settings = app.state.settings
    components = app.state.components

    # Store components on app.state for route handler access
    for name in (
        "registry",
        "reconciler",
        "convergence_watcher",
        "cost_engine",
        "funding_orchestrator",
        "preflight",
    ):
        setattr(app.state, name, components[name])

    logger.info(
        "lifespan_started",
        default_chain_id=settings.default_chain_id,
        indexer_chains=sorted(settings.indexer.urls),
        ledger_chains=sorted(settings.ledger.polls_contracts),
    )

    yield

    await components["convergence_watcher"].close()
    await components["indexer"].close()
    await components["ledger"].close()

    logger.info("pulse_stopped")


async def run() -> None:
    """Run the creator dashboard API server."""
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("pulse.main")

    components = _build_components(settings)

    if not settings.api.enabled:
        logger.warning("api_disabled", note="nothing to serve; set API_ENABLED=true")
        await components["indexer"].close()
        await components["ledger"].close()
        return

    from pulse.dashboard.app import create_dashboard_app

    app = create_dashboard_app(lifespan=lifespan)
    app.state.settings = settings
    app.state.components = components

    logger.info(
        "starting_api",
        host=settings.api.host,
        port=settings.api.port,
    )

    config = uvicorn.Config(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level="warning",  # Suppress uvicorn access logs
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
