"""HTTP client that forwards events to the marketing-automation API."""

from __future__ import annotations

import json
import logging
import math
import random
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, Mapping, Optional

import httpx

from eventrelay.core.config import AppSettings
from eventrelay.pipeline.errors import TransportError

LOGGER = logging.getLogger("eventrelay.pipeline.delivery")


def parse_retry_after_ms(value: Optional[str], *, now: Optional[datetime] = None) -> Optional[int]:
    """Convert a ``Retry-After`` header (seconds or HTTP-date) to milliseconds."""

    if not value:
        return None
    value = value.strip()

    try:
        seconds = int(value)
    except ValueError:
        try:
            retry_at = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if retry_at is None:
            return None
        if retry_at.tzinfo is None:
            retry_at = retry_at.replace(tzinfo=timezone.utc)
        current = now or datetime.now(timezone.utc)
        seconds = math.ceil((retry_at - current).total_seconds())

    if seconds < 0:
        return None
    return seconds * 1000


@dataclass(frozen=True)
class DeliveryResponse:
    """Final upstream answer after the retry policy has run."""

    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (401, 403)


def _parse_body(response: httpx.Response) -> Dict[str, Any]:
    text = response.text
    if not text:
        return {}
    try:
        parsed = json.loads(text)
    except ValueError:
        return {"raw": text}
    if isinstance(parsed, dict):
        return parsed
    return {"data": parsed}


class DeliveryClient:
    """Sends one event upstream with at most one retry.

    A 429 on the first attempt waits for ``Retry-After`` (capped), a 5xx waits
    a random jitter; anything else is final. The second attempt is always
    final. Transport failures are raised as :class:`TransportError` and never
    retried here.
    """

    def __init__(
        self,
        *,
        http_client: httpx.Client,
        endpoint: str,
        api_key_header: str = "X-API-KEY",
        retry_after_default_ms: int = 1000,
        retry_after_cap_ms: int = 2000,
        jitter_min_ms: int = 300,
        jitter_max_ms: int = 800,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._http = http_client
        self._endpoint = endpoint
        self._api_key_header = api_key_header
        self._retry_after_default_ms = retry_after_default_ms
        self._retry_after_cap_ms = retry_after_cap_ms
        self._jitter_min_ms = jitter_min_ms
        self._jitter_max_ms = jitter_max_ms
        self._sleep = sleep
        self._rng = rng or random.Random()

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        *,
        http_client: Optional[httpx.Client] = None,
        **overrides: Any,
    ) -> "DeliveryClient":
        client = http_client or httpx.Client(timeout=settings.upstream_timeout_seconds)
        return cls(
            http_client=client,
            endpoint=settings.upstream_events_url,
            api_key_header=settings.upstream_api_key_header,
            retry_after_default_ms=settings.retry_after_default_ms,
            retry_after_cap_ms=settings.retry_after_cap_ms,
            jitter_min_ms=settings.retry_jitter_min_ms,
            jitter_max_ms=settings.retry_jitter_max_ms,
            **overrides,
        )

    def close(self) -> None:
        self._http.close()

    def send(self, credential: str, payload: Mapping[str, Any]) -> DeliveryResponse:
        response = self._post(credential, payload)
        delay_ms = self._retry_delay_ms(response)
        if delay_ms is None:
            return DeliveryResponse(status_code=response.status_code, body=_parse_body(response), attempts=1)

        LOGGER.warning(
            "upstream_delivery_retry",
            extra={
                "event_id": payload.get("eventID"),
                "status_code": response.status_code,
                "delay_ms": delay_ms,
            },
        )
        self._sleep(delay_ms / 1000.0)

        response = self._post(credential, payload)
        return DeliveryResponse(status_code=response.status_code, body=_parse_body(response), attempts=2)

    def _retry_delay_ms(self, response: httpx.Response) -> Optional[int]:
        if response.status_code == 429:
            retry_after_ms = parse_retry_after_ms(response.headers.get("retry-after"))
            if retry_after_ms is None:
                retry_after_ms = self._retry_after_default_ms
            return min(retry_after_ms, self._retry_after_cap_ms)
        if response.status_code >= 500:
            return self._rng.randint(self._jitter_min_ms, self._jitter_max_ms)
        return None

    def _post(self, credential: str, payload: Mapping[str, Any]) -> httpx.Response:
        try:
            return self._http.post(
                self._endpoint,
                json=dict(payload),
                headers={self._api_key_header: credential},
            )
        except httpx.RequestError as exc:
            LOGGER.error(
                "upstream_delivery_request_error",
                extra={"event_id": payload.get("eventID"), "error": str(exc)},
            )
            raise TransportError(str(exc) or exc.__class__.__name__) from exc
