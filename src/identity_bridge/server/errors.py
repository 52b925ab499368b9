"""Error types and exception-to-HTTP mapping for the server."""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from identity_bridge.core.exceptions import InvalidIdentifierError


class EngineUnavailableError(Exception):
    """The correlation engine has not been initialized."""


async def invalid_identifier_handler(request: Request, exc: InvalidIdentifierError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "error": "invalid_identifier",
            "detail": str(exc),
            "value": str(exc.value),
        },
    )


async def engine_unavailable_handler(request: Request, exc: EngineUnavailableError) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"error": "service_unavailable", "detail": str(exc)},
    )


EXCEPTION_HANDLERS = {
    InvalidIdentifierError: invalid_identifier_handler,
    EngineUnavailableError: engine_unavailable_handler,
}
