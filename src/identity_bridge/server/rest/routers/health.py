"""Health endpoint."""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends, Request

from identity_bridge import __version__
from identity_bridge.correlation.engine import CorrelationEngine
from identity_bridge.server.dependencies import get_engine
from identity_bridge.server.schemas import HealthResponse

router = APIRouter()


@router.get("/health")
async def health(
    request: Request,
    engine: CorrelationEngine = Depends(get_engine),
) -> HealthResponse:
    elapsed = time.monotonic() - request.app.state.start_time
    return HealthResponse(
        status="ok",
        version=__version__,
        uptime_seconds=round(elapsed, 1),
        mappings=engine.stats()["mappings"],
    )
