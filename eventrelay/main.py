"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from eventrelay.api.cors import register_cors
from eventrelay.api.error_handlers import register_exception_handlers
from eventrelay.api.identity import SessionVerifier, StorefrontSessionVerifier
from eventrelay.api.routers import get_api_router
from eventrelay.core.config import AppSettings, get_settings
from eventrelay.core.database import build_session_factory, create_db_engine
from eventrelay.core.logging import configure_logging
from eventrelay.pipeline import DeliveryClient


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: D401
    """Release the upstream and database pools on shutdown."""

    yield

    app.state.delivery_client.close()
    app.state.engine.dispose()


def create_app(
    settings: AppSettings | None = None,
    *,
    delivery_client: Optional[DeliveryClient] = None,
    session_verifier: Optional[SessionVerifier] = None,
) -> FastAPI:
    """Application factory; owns the shared engine, upstream client and verifier."""

    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="Storefront Event Relay",
        version="1.0.0",
        lifespan=lifespan,
    )

    engine = create_db_engine(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.delivery_client = delivery_client or DeliveryClient.from_settings(settings)
    app.state.session_verifier = session_verifier or StorefrontSessionVerifier.from_settings(settings)

    register_exception_handlers(app)
    register_cors(app)
    app.include_router(get_api_router())
    return app


app = create_app()
