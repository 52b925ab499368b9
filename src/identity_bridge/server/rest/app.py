"""FastAPI application factory."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from identity_bridge import __version__
from identity_bridge.correlation.engine import CorrelationEngine
from identity_bridge.ingest.types import TransportClient
from identity_bridge.server.config import ServerConfig
from identity_bridge.server.errors import EXCEPTION_HANDLERS
from identity_bridge.server.rest.middleware import RequestLoggingMiddleware
from identity_bridge.server.rest.routers import health, observations, resolver
from identity_bridge.server.workers import FlushWorker, SweepWorker

logger = logging.getLogger(__name__)


def create_app(
    config: ServerConfig,
    transport: TransportClient | None = None,
    engine: CorrelationEngine | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    *engine* is built from *config* when not given; *transport* feeds
    group snapshot fetches for backfill.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Startup
        app.state.config = config
        app.state.start_time = time.monotonic()

        bridge = engine or CorrelationEngine(
            config=config.correlation,
            cache_config=config.cache,
            snapshot_path=config.snapshot_path,
            transport=transport,
        )
        bridge.load()
        app.state.engine = bridge
        logger.info("Correlation engine ready (%d mappings)", len(bridge.store))

        workers = []
        if config.enable_workers:
            workers = [
                FlushWorker(bridge, config.flush_interval),
                SweepWorker(bridge, config.sweep_interval),
            ]
            for worker in workers:
                await worker.start()
        app.state.workers = workers

        if config.monitored_groups and bridge.cache.transport is not None:
            await bridge.backfill(config.monitored_groups, timeout=config.backfill_timeout)

        logger.info("Identity bridge server started")
        yield

        # Shutdown
        for worker in app.state.workers:
            await worker.stop()
        bridge.flush()
        logger.info("Identity bridge server stopped")

    app = FastAPI(
        title="Identity Bridge",
        description="Pseudonymous participant id resolution and contact correlation",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request logging
    app.add_middleware(RequestLoggingMiddleware)

    # Exception handlers
    for exc_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exc_class, handler)

    # Routers
    prefix = "/api/v1"
    app.include_router(health.router, prefix=prefix, tags=["health"])
    app.include_router(resolver.router, prefix=prefix, tags=["resolver"])
    app.include_router(observations.router, prefix=prefix, tags=["observations"])

    return app
