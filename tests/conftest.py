import os
import sys
from pathlib import Path
from typing import Callable, List

import httpx
import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("EVR_ENVIRONMENT", "test")
os.environ.setdefault("EVR_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("EVR_LOG_JSON", "false")

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from eventrelay.core.config import AppSettings, get_settings  # noqa: E402

get_settings.cache_clear()

from eventrelay.api.identity import StorefrontSessionVerifier  # noqa: E402
from eventrelay.core.database import session_scope  # noqa: E402
from eventrelay.main import create_app  # noqa: E402
from eventrelay.models import Base, IntegrationRecord, IntegrationStatus  # noqa: E402
from eventrelay.pipeline import DeliveryClient  # noqa: E402

STOREFRONT_ORIGIN = "https://shop.example.com"
UPSTREAM_URL = "https://upstream.test/v5/events"
TENANT_ID = "merchant-1"


class FakeUpstream:
    """Scripted upstream API; replays queued responses, then the fallback."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.queue: List[Callable[[httpx.Request], httpx.Response]] = []
        self.fallback: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json={"eventID": "accepted"}
        )

    def respond(self, status_code: int, **kwargs) -> None:
        self.queue.append(lambda request: httpx.Response(status_code, **kwargs))

    def fail_with(self, exc: Exception) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise exc

        self.queue.append(_raise)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.queue.pop(0) if self.queue else self.fallback
        return handler(request)


@pytest.fixture()
def settings() -> AppSettings:
    return AppSettings(
        environment="test",
        database_url="sqlite:///:memory:",
        log_json=False,
        upstream_events_url=UPSTREAM_URL,
        storefront_session_secret="test-secret",
        allowed_origin_hosts=["shop.example.com"],
    )


@pytest.fixture()
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture()
def sleeps() -> List[float]:
    return []


@pytest.fixture()
def delivery_client(settings: AppSettings, upstream: FakeUpstream, sleeps: List[float]) -> DeliveryClient:
    return DeliveryClient.from_settings(
        settings,
        http_client=httpx.Client(transport=httpx.MockTransport(upstream)),
        sleep=sleeps.append,
    )


@pytest.fixture()
def app(settings: AppSettings, delivery_client: DeliveryClient):
    application = create_app(settings, delivery_client=delivery_client)
    Base.metadata.create_all(bind=application.state.engine)
    yield application
    Base.metadata.drop_all(bind=application.state.engine)


@pytest.fixture()
def client(app) -> TestClient:  # noqa: ANN001
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def session_factory(app):
    return app.state.session_factory


@pytest.fixture()
def connected_tenant(session_factory) -> str:
    with session_scope(session_factory) as session:
        session.add(
            IntegrationRecord(
                tenant_id=TENANT_ID,
                status=IntegrationStatus.CONNECTED,
                credential="tenant-api-key",
            )
        )
    return TENANT_ID


@pytest.fixture()
def auth_headers(settings: AppSettings) -> dict:
    verifier = StorefrontSessionVerifier.from_settings(settings)
    token = verifier.issue(TENANT_ID, origin=STOREFRONT_ORIGIN)
    return {"Authorization": f"Bearer {token}", "Origin": STOREFRONT_ORIGIN}
