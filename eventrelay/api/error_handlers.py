"""Exception handlers for the FastAPI app."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from eventrelay.api.identity import OriginNotAllowedError, SessionTokenError
from eventrelay.pipeline.errors import (
    EventValidationError,
    IntegrationLoadError,
    IntegrationNotConnectedError,
    LedgerError,
)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: WPS430
        return _error(400, "invalid JSON body")

    @app.exception_handler(EventValidationError)
    async def event_validation_handler(request: Request, exc: EventValidationError) -> JSONResponse:  # noqa: WPS430
        return _error(400, str(exc))

    @app.exception_handler(SessionTokenError)
    async def session_token_handler(request: Request, exc: SessionTokenError) -> JSONResponse:  # noqa: WPS430
        return _error(401, str(exc))

    @app.exception_handler(OriginNotAllowedError)
    async def origin_handler(request: Request, exc: OriginNotAllowedError) -> JSONResponse:  # noqa: WPS430
        return _error(403, str(exc))

    @app.exception_handler(IntegrationNotConnectedError)
    async def not_connected_handler(request: Request, exc: IntegrationNotConnectedError) -> JSONResponse:  # noqa: WPS430
        return _error(409, str(exc))

    @app.exception_handler(IntegrationLoadError)
    async def integration_load_handler(request: Request, exc: IntegrationLoadError) -> JSONResponse:  # noqa: WPS430
        return _error(500, "failed to load integration")

    @app.exception_handler(LedgerError)
    async def ledger_handler(request: Request, exc: LedgerError) -> JSONResponse:  # noqa: WPS430
        return _error(500, "failed to process dedupe state")
