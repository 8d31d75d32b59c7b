from __future__ import annotations

import json
import random
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import List

import httpx
import pytest

from eventrelay.pipeline.delivery import DeliveryClient, parse_retry_after_ms
from eventrelay.pipeline.errors import TransportError

ENDPOINT = "https://upstream.test/v5/events"
PAYLOAD = {"eventName": "placed order", "eventID": "order-1", "contact": {"email": "a@b.co"}}


def build_client(handler, sleeps: List[float]) -> DeliveryClient:  # noqa: ANN001
    return DeliveryClient(
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        endpoint=ENDPOINT,
        sleep=sleeps.append,
        rng=random.Random(7),
    )


def scripted(*responses: httpx.Response):
    calls: List[httpx.Request] = []
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return queue.pop(0) if len(queue) > 1 else queue[0]

    return handler, calls


def test_success_is_sent_once_with_credential_header() -> None:
    handler, calls = scripted(httpx.Response(202, json={"id": "evt"}))
    sleeps: List[float] = []

    result = build_client(handler, sleeps).send("secret-key", PAYLOAD)

    assert result.status_code == 202
    assert result.ok
    assert result.body == {"id": "evt"}
    assert result.attempts == 1
    assert sleeps == []
    assert len(calls) == 1
    assert calls[0].headers["X-API-KEY"] == "secret-key"
    assert calls[0].method == "POST"
    assert json.loads(calls[0].content) == PAYLOAD


def test_always_failing_upstream_is_called_exactly_twice() -> None:
    handler, calls = scripted(httpx.Response(500, json={"error": "boom"}))
    sleeps: List[float] = []

    result = build_client(handler, sleeps).send("key", PAYLOAD)

    assert len(calls) == 2
    assert result.status_code == 500
    assert result.attempts == 2
    assert len(sleeps) == 1
    assert 0.3 <= sleeps[0] <= 0.8


def test_server_error_then_success_returns_second_response() -> None:
    handler, calls = scripted(httpx.Response(503), httpx.Response(200, json={"ok": True}))
    sleeps: List[float] = []

    result = build_client(handler, sleeps).send("key", PAYLOAD)

    assert len(calls) == 2
    assert result.ok
    assert result.body == {"ok": True}


def test_rate_limit_honours_retry_after_with_cap() -> None:
    handler, calls = scripted(
        httpx.Response(429, headers={"Retry-After": "1"}),
        httpx.Response(200),
    )
    sleeps: List[float] = []
    build_client(handler, sleeps).send("key", PAYLOAD)
    assert sleeps == [1.0]

    handler, calls = scripted(httpx.Response(429, headers={"Retry-After": "30"}), httpx.Response(429))
    sleeps = []
    result = build_client(handler, sleeps).send("key", PAYLOAD)
    assert sleeps == [2.0]
    assert len(calls) == 2
    assert result.status_code == 429


def test_rate_limit_without_retry_after_uses_default_delay() -> None:
    handler, _ = scripted(httpx.Response(429), httpx.Response(200))
    sleeps: List[float] = []
    build_client(handler, sleeps).send("key", PAYLOAD)
    assert sleeps == [1.0]


@pytest.mark.parametrize("status_code", [400, 401, 403, 404, 422])
def test_client_errors_are_not_retried(status_code: int) -> None:
    handler, calls = scripted(httpx.Response(status_code, text="nope"))
    sleeps: List[float] = []

    result = build_client(handler, sleeps).send("key", PAYLOAD)

    assert len(calls) == 1
    assert sleeps == []
    assert result.body == {"raw": "nope"}


def test_transport_errors_are_raised_without_retry() -> None:
    calls: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(TransportError, match="timed out"):
        build_client(handler, []).send("key", PAYLOAD)
    assert len(calls) == 1


def test_transport_error_on_retry_is_raised() -> None:
    calls: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(502)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError):
        build_client(handler, []).send("key", PAYLOAD)
    assert len(calls) == 2


def test_parse_retry_after_seconds_and_dates() -> None:
    now = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    assert parse_retry_after_ms("3") == 3000
    assert parse_retry_after_ms(" 0 ") == 0
    assert parse_retry_after_ms(format_datetime(now + timedelta(seconds=5), usegmt=True), now=now) == 5000
    assert parse_retry_after_ms(format_datetime(now - timedelta(seconds=5), usegmt=True), now=now) is None
    assert parse_retry_after_ms("-1") is None
    assert parse_retry_after_ms("soon") is None
    assert parse_retry_after_ms(None) is None
