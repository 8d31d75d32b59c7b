"""Storefront event forwarding endpoint."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Header, Request
from fastapi.responses import JSONResponse

from eventrelay.api.dependencies import get_event_pipeline, get_tenant_context
from eventrelay.api.identity import TenantContext
from eventrelay.pipeline import EventPipeline

router = APIRouter()


@router.options("/events", summary="CORS preflight for storefront origins")
def preflight_event(request: Request, origin: Optional[str] = Header(default=None)) -> JSONResponse:
    if not request.app.state.session_verifier.is_allowed_origin(origin):
        return JSONResponse(status_code=403, content={"success": False, "error": "origin not allowed"})
    return JSONResponse(status_code=200, content={"ok": True})


@router.post("/events", summary="Forward a storefront event upstream")
def forward_event(
    body: Any = Body(default=None),
    tenant: TenantContext = Depends(get_tenant_context),
    pipeline: EventPipeline = Depends(get_event_pipeline),
) -> JSONResponse:
    result = pipeline.handle(tenant.tenant_id, body)
    return JSONResponse(status_code=result.status_code, content=result.body)
