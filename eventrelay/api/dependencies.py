"""Dependency injection helpers for FastAPI routes."""

from __future__ import annotations

from typing import Iterator, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from eventrelay.api.identity import TenantContext, resolve_tenant
from eventrelay.core.database import session_generator
from eventrelay.pipeline import EventPipeline


def get_db_session(request: Request) -> Iterator[Session]:
    yield from session_generator(request.app.state.session_factory)


def get_tenant_context(
    request: Request,
    origin: Optional[str] = Header(default=None),
    authorization: Optional[str] = Header(default=None),
) -> TenantContext:
    return resolve_tenant(
        request.app.state.session_verifier,
        origin=origin,
        authorization=authorization,
    )


def get_event_pipeline(request: Request, session: Session = Depends(get_db_session)) -> EventPipeline:
    return EventPipeline(session, delivery_client=request.app.state.delivery_client)
