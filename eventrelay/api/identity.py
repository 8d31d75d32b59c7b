"""Storefront session verification (caller identity and origin allow-list)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional, Protocol
from urllib.parse import urlparse

import jwt

from eventrelay.core.config import AppSettings

LOGGER = logging.getLogger("eventrelay.api.identity")

TOKEN_ALGORITHM = "HS256"


class SessionTokenError(Exception):
    """Caller credential is missing or invalid (401)."""


class OriginNotAllowedError(Exception):
    """Request origin is not an allowed storefront (403)."""


@dataclass(frozen=True)
class TenantContext:
    """Verified caller identity handed to the pipeline."""

    tenant_id: str
    origin: Optional[str]


class SessionVerifier(Protocol):
    def is_allowed_origin(self, origin: Optional[str]) -> bool:
        ...

    def verify(self, token: str) -> Dict[str, Any]:
        ...


def get_bearer_token(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    scheme, _, token = value.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _origin_host(origin: Optional[str]) -> Optional[str]:
    if not origin:
        return None
    try:
        hostname = urlparse(origin).hostname
    except ValueError:
        return None
    return hostname.lower() if hostname else None


class StorefrontSessionVerifier:
    """Issues and verifies HS256 storefront session tokens."""

    def __init__(
        self,
        *,
        secret: Optional[str],
        issuer: str,
        audience: str,
        allowed_origin_hosts: Iterable[str] = (),
    ) -> None:
        self._secret = secret
        self._issuer = issuer
        self._audience = audience
        self._allowed_hosts = frozenset(host.lower() for host in allowed_origin_hosts)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "StorefrontSessionVerifier":
        return cls(
            secret=settings.storefront_session_secret,
            issuer=settings.storefront_token_issuer,
            audience=settings.storefront_token_audience,
            allowed_origin_hosts=settings.allowed_origin_hosts,
        )

    def is_allowed_origin(self, origin: Optional[str]) -> bool:
        host = _origin_host(origin)
        return host is not None and host in self._allowed_hosts

    def issue(self, tenant_id: str, *, origin: Optional[str] = None, expires_in: int = 3600) -> str:
        if not self._secret:
            raise SessionTokenError("storefront session secret is not configured")
        now = datetime.now(timezone.utc)
        claims: Dict[str, Any] = {
            "iss": self._issuer,
            "aud": self._audience,
            "sub": tenant_id,
            "merchant_id": tenant_id,
            "iat": now,
            "exp": now + timedelta(seconds=expires_in),
        }
        if origin:
            claims["origin"] = origin
        return jwt.encode(claims, self._secret, algorithm=TOKEN_ALGORITHM)

    def verify(self, token: str) -> Dict[str, Any]:
        if not self._secret:
            raise SessionTokenError("storefront session secret is not configured")
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[TOKEN_ALGORITHM],
                audience=self._audience,
                issuer=self._issuer,
                options={"require": ["exp", "iss", "aud"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise SessionTokenError("token expired") from exc
        except jwt.InvalidTokenError as exc:
            LOGGER.info("storefront_token_rejected", extra={"reason": exc.__class__.__name__})
            raise SessionTokenError("invalid storefront token") from exc

        if not claims.get("merchant_id"):
            raise SessionTokenError("missing merchant claim")
        return claims


def resolve_tenant(
    verifier: SessionVerifier,
    *,
    origin: Optional[str],
    authorization: Optional[str],
) -> TenantContext:
    """Apply the origin and token checks in the order the storefront expects."""

    if not verifier.is_allowed_origin(origin):
        raise OriginNotAllowedError("origin not allowed")

    token = get_bearer_token(authorization)
    if not token:
        raise SessionTokenError("missing storefront session token")

    claims = verifier.verify(token)
    token_origin = claims.get("origin")
    if token_origin and token_origin != origin:
        raise SessionTokenError("token origin mismatch")

    return TenantContext(tenant_id=str(claims["merchant_id"]), origin=origin)
