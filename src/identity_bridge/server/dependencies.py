"""Dependency injection: engine from app state."""

from __future__ import annotations

from fastapi import Request

from identity_bridge.correlation.engine import CorrelationEngine
from identity_bridge.server.errors import EngineUnavailableError


def get_engine(request: Request) -> CorrelationEngine:
    """Get the CorrelationEngine from app state."""
    engine: CorrelationEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise EngineUnavailableError("Correlation engine not initialized")
    return engine
