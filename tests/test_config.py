from __future__ import annotations

import json
import logging

import pytest
from pydantic import ValidationError

from eventrelay.core.config import AppSettings
from eventrelay.core.logging import JsonFormatter


def test_origin_hosts_parse_from_comma_separated_env(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setenv("EVR_ALLOWED_ORIGIN_HOSTS", " Shop.Example.com, ,admin.example.com")
    settings = AppSettings()
    assert settings.allowed_origin_hosts == ["shop.example.com", "admin.example.com"]


def test_upstream_defaults() -> None:
    settings = AppSettings(storefront_session_secret="")
    assert settings.storefront_session_secret is None
    assert settings.upstream_api_key_header == "X-API-KEY"
    assert settings.upstream_timeout_seconds > 0
    assert settings.retry_after_cap_ms == 2000
    assert (settings.retry_jitter_min_ms, settings.retry_jitter_max_ms) == (300, 800)


def test_jitter_window_must_be_ordered() -> None:
    with pytest.raises(ValidationError):
        AppSettings(retry_jitter_min_ms=900, retry_jitter_max_ms=100)


def test_json_formatter_includes_extra_fields() -> None:
    record = logging.makeLogRecord(
        {"name": "eventrelay.test", "levelname": "INFO", "msg": "event_delivered", "tenant_id": "m-1"}
    )
    entry = json.loads(JsonFormatter("event-relay").format(record))

    assert entry["message"] == "event_delivered"
    assert entry["service"] == "event-relay"
    assert entry["extra"] == {"tenant_id": "m-1"}
