"""Turn loosely-shaped storefront event bodies into canonical upstream payloads."""

from __future__ import annotations

import hashlib
import json
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from eventrelay.pipeline.errors import EventValidationError

EVENT_ALIASES: Dict[str, str] = {
    "added_to_cart": "added product to cart",
    "add_to_cart": "added product to cart",
    "added_product_to_cart": "added product to cart",
    "checkout_started": "started checkout",
    "started_checkout": "started checkout",
    "order_placed": "placed order",
    "placed_order": "placed order",
    "order_paid": "paid for order",
    "paid_for_order": "paid for order",
    "order_refunded": "order refunded",
    "order_fulfilled": "order fulfilled",
    "order_canceled": "order canceled",
    "product_viewed": "viewed product",
    "viewed_product": "viewed product",
}

ORDER_EVENT_NAMES = frozenset(
    {
        "placed order",
        "paid for order",
        "order refunded",
        "order fulfilled",
        "order canceled",
    }
)
ORDER_EVENT_VERSION = "v2"

LEGACY_ID_PREFIX = "legacy"
LEGACY_ID_HASH_LENGTH = 24

# Storage columns are String(255); the name limit leaves room for the legacy id.
MAX_EVENT_ID_LENGTH = 255
MAX_EVENT_NAME_LENGTH = 200

IDENTITY_FIELDS = ("id", "email", "phone")

# Canonical contact field -> top-level field accepted from older storefront scripts.
# The nested ``contact.<field>`` value wins when present.
LEGACY_CONTACT_FIELDS = (
    ("id", "contactId"),
    ("email", "email"),
    ("phone", "phone"),
    ("firstName", "firstName"),
    ("lastName", "lastName"),
)

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class NormalizedEvent:
    """Canonical event payload plus the pipeline's view of it."""

    payload: Dict[str, Any]
    skipped_missing_identity: bool = False

    @property
    def event_name(self) -> str:
        return self.payload["eventName"]

    @property
    def event_id(self) -> str:
        return self.payload["eventID"]


def clean_value(value: Any) -> Any:
    """Recursively drop empty values; returns None when nothing is left.

    Strings are trimmed and dropped when blank, containers are dropped when all
    their members were dropped. Numbers and booleans are kept as-is.
    """

    if value is None:
        return None

    if isinstance(value, Mapping):
        cleaned = {}
        for key, entry in value.items():
            normalized = clean_value(entry)
            if normalized is not None:
                cleaned[key] = normalized
        return cleaned or None

    if isinstance(value, (list, tuple)):
        items = [item for item in (clean_value(entry) for entry in value) if item is not None]
        return items or None

    if isinstance(value, str):
        trimmed = value.strip()
        return trimmed or None

    return value


def normalize_event_name(name: Any) -> Optional[str]:
    if not isinstance(name, str):
        return None
    trimmed = name.strip()
    if not trimmed:
        return None
    alias_key = _WHITESPACE.sub("_", trimmed.lower())
    return EVENT_ALIASES.get(alias_key, trimmed)


def extract_contact(body: Mapping[str, Any]) -> Dict[str, Any]:
    """Collapse the accepted legacy contact shapes into one contact object."""

    nested = body.get("contact")
    if not isinstance(nested, Mapping):
        nested = {}

    contact: Dict[str, Any] = {}
    for field, legacy_field in LEGACY_CONTACT_FIELDS:
        value = clean_value(nested.get(field))
        if value is None:
            value = clean_value(body.get(legacy_field))
        if value is not None:
            contact[field] = value
    return contact


def has_identity(contact: Mapping[str, Any]) -> bool:
    return any(contact.get(field) for field in IDENTITY_FIELDS)


def derive_event_id(event_name: str, contact: Mapping[str, Any], properties: Mapping[str, Any]) -> str:
    """Stable id for callers that do not send one; same inputs give the same id."""

    seed = json.dumps(
        {
            "eventName": event_name,
            "contact": {field: contact.get(field) for field in IDENTITY_FIELDS},
            "properties": properties,
        },
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    digest = hashlib.sha256(seed.encode("utf-8")).hexdigest()[:LEGACY_ID_HASH_LENGTH]
    return f"{LEGACY_ID_PREFIX}:{event_name}:{digest}"


def _receipt_time() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _event_time(value: Any) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        return _receipt_time()
    if not isinstance(value, str):
        raise EventValidationError("eventTime must be an ISO-8601 string")
    trimmed = value.strip()
    try:
        datetime.fromisoformat(trimmed.replace("Z", "+00:00"))
    except ValueError as exc:
        raise EventValidationError("eventTime must be an ISO-8601 string") from exc
    return trimmed


def _caller_event_id(body: Mapping[str, Any]) -> Optional[str]:
    for key in ("eventID", "eventId"):
        value = body.get(key)
        if isinstance(value, bool) or value is None:
            continue
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _require_finite(value: Any) -> None:
    """JSON parsing accepts NaN and Infinity; the upstream encoder does not."""

    if isinstance(value, float) and not math.isfinite(value):
        raise EventValidationError("event contains a non-finite number")
    if isinstance(value, Mapping):
        for entry in value.values():
            _require_finite(entry)
    elif isinstance(value, (list, tuple)):
        for entry in value:
            _require_finite(entry)


def normalize_event(body: Any) -> NormalizedEvent:
    """Build the upstream payload for one inbound event body.

    Raises ``EventValidationError`` for anything the upstream or the ledger
    could not take, so rejection happens before any side effect.
    """

    if not isinstance(body, Mapping):
        raise EventValidationError("event body must be a JSON object")

    event_name = normalize_event_name(body.get("name")) or normalize_event_name(body.get("eventName"))
    if not event_name:
        raise EventValidationError("missing event name")
    if len(event_name) > MAX_EVENT_NAME_LENGTH:
        raise EventValidationError(f"event name exceeds {MAX_EVENT_NAME_LENGTH} characters")

    contact = extract_contact(body)
    properties = clean_value(body.get("properties"))
    if properties is None:
        properties = {}
    elif not isinstance(properties, dict):
        raise EventValidationError("properties must be a JSON object")

    event_id = _caller_event_id(body)
    if event_id is None:
        event_id = derive_event_id(event_name, contact, properties)
    elif len(event_id.strip()) > MAX_EVENT_ID_LENGTH:
        raise EventValidationError(f"eventID exceeds {MAX_EVENT_ID_LENGTH} characters")

    event_version = body.get("eventVersion")
    if event_version is None and event_name in ORDER_EVENT_NAMES:
        event_version = ORDER_EVENT_VERSION

    payload = clean_value(
        {
            "eventName": event_name,
            "eventID": event_id,
            "eventTime": _event_time(body.get("eventTime")),
            "origin": body.get("origin") or "api",
            "eventVersion": event_version,
            "contact": contact,
            "properties": properties,
        }
    )
    _require_finite(payload)
    return NormalizedEvent(payload=payload, skipped_missing_identity=not has_identity(contact))
