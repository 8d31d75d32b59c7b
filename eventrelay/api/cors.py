"""Per-request CORS headers for storefront origins."""

from __future__ import annotations

from typing import Dict, Optional

from fastapi import FastAPI, Request

ALLOWED_METHODS = "POST, OPTIONS"
ALLOWED_HEADERS = "Content-Type, Authorization"


def cors_headers(allowed_origin: Optional[str]) -> Dict[str, str]:
    """Headers attached to every response; the origin is echoed only when allowed."""

    headers = {
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        "Vary": "Origin",
    }
    if allowed_origin:
        headers["Access-Control-Allow-Origin"] = allowed_origin
    return headers


def register_cors(app: FastAPI) -> None:
    # Origins are checked per request against the session verifier.
    @app.middleware("http")
    async def storefront_cors(request: Request, call_next):  # noqa: WPS430
        origin = request.headers.get("origin")
        verifier = request.app.state.session_verifier
        allowed_origin = origin if origin and verifier.is_allowed_origin(origin) else None

        response = await call_next(request)
        for name, value in cors_headers(allowed_origin).items():
            response.headers[name] = value
        return response
