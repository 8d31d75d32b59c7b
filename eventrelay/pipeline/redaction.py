"""Mask personal identifiers before event payloads are persisted."""

from __future__ import annotations

import hashlib
import re
from typing import Any, Dict, Mapping

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")
_NON_DIGITS = re.compile(r"\D")

PHONE_MIN_DIGITS = 7
HASH_PREFIX_LENGTH = 16
MASK = "***"


def hash_value(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:HASH_PREFIX_LENGTH]


def _safe_mask(masked: str, raw: str) -> str:
    # A short or asterisk-heavy raw value can survive masking intact.
    if raw and raw.strip().lower() in masked.lower():
        return MASK
    return masked


def mask_email(value: str) -> str:
    email = value.strip().lower()
    local_part, _, domain = email.partition("@")
    if not domain:
        return _safe_mask(f"{email[:2]}{MASK}", value)
    return _safe_mask(f"{local_part[:2]}{MASK}@{domain}", value)


def mask_phone(value: str) -> str:
    digits = _NON_DIGITS.sub("", value)
    return _safe_mask(f"{MASK}{digits[-4:]}", value)


def looks_like_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.search(value))


def looks_like_phone(value: str) -> bool:
    return len(_NON_DIGITS.sub("", value)) >= PHONE_MIN_DIGITS


def _redact_email(value: str) -> Dict[str, str]:
    return {"masked": mask_email(value), "hash": hash_value(value)}


def _redact_phone(value: str) -> Dict[str, str]:
    return {"masked": mask_phone(value)}


def _redact_leaf(value: Any, key: str) -> Any:
    lower_key = key.lower()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # Phone numbers and ids sometimes arrive as bare numbers.
        if "email" in lower_key or "phone" in lower_key:
            value = str(value)
        else:
            return value

    if not isinstance(value, str):
        return value

    if "email" in lower_key:
        return _redact_email(value)
    if "phone" in lower_key:
        return _redact_phone(value)
    if looks_like_email(value):
        return _redact_email(value)
    if looks_like_phone(value):
        return _redact_phone(value)
    return value


def redact(value: Any, key: str = "") -> Any:
    """Return a copy of ``value`` with email- and phone-like leaves masked.

    Every string leaf is checked against its own key name (list items use the
    key of the list) and then against value heuristics, so an email address
    stored under an unrelated key such as ``note`` is still masked.
    """

    if isinstance(value, Mapping):
        return {name: redact(entry, str(name)) for name, entry in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(item, key) for item in value]
    return _redact_leaf(value, key)
