from __future__ import annotations

import pytest

from eventrelay.api.identity import (
    OriginNotAllowedError,
    SessionTokenError,
    StorefrontSessionVerifier,
    get_bearer_token,
    resolve_tenant,
)

ORIGIN = "https://shop.example.com"


@pytest.fixture()
def verifier() -> StorefrontSessionVerifier:
    return StorefrontSessionVerifier(
        secret="s3cret",
        issuer="event-relay",
        audience="storefront",
        allowed_origin_hosts=["shop.example.com"],
    )


def test_issued_token_resolves_tenant(verifier: StorefrontSessionVerifier) -> None:
    token = verifier.issue("merchant-7", origin=ORIGIN)

    context = resolve_tenant(verifier, origin=ORIGIN, authorization=f"Bearer {token}")

    assert context.tenant_id == "merchant-7"
    assert context.origin == ORIGIN


def test_origin_allow_list_uses_hostname(verifier: StorefrontSessionVerifier) -> None:
    assert verifier.is_allowed_origin("https://SHOP.example.com:8443")
    assert not verifier.is_allowed_origin("https://other.example.com")
    assert not verifier.is_allowed_origin(None)
    assert not verifier.is_allowed_origin("not a url")


def test_disallowed_origin_is_checked_first(verifier: StorefrontSessionVerifier) -> None:
    with pytest.raises(OriginNotAllowedError):
        resolve_tenant(verifier, origin="https://other.example.com", authorization=None)


def test_token_origin_must_match_request_origin() -> None:
    verifier = StorefrontSessionVerifier(
        secret="s3cret",
        issuer="event-relay",
        audience="storefront",
        allowed_origin_hosts=["shop.example.com", "admin.example.com"],
    )
    token = verifier.issue("merchant-7", origin="https://admin.example.com")

    with pytest.raises(SessionTokenError, match="origin mismatch"):
        resolve_tenant(verifier, origin=ORIGIN, authorization=f"Bearer {token}")


def test_expired_and_foreign_tokens_are_rejected(verifier: StorefrontSessionVerifier) -> None:
    expired = verifier.issue("merchant-7", expires_in=-10)
    with pytest.raises(SessionTokenError, match="expired"):
        verifier.verify(expired)

    foreign = StorefrontSessionVerifier(secret="other", issuer="event-relay", audience="storefront").issue("m")
    with pytest.raises(SessionTokenError):
        verifier.verify(foreign)


def test_unconfigured_secret_rejects_everything() -> None:
    verifier = StorefrontSessionVerifier(secret=None, issuer="i", audience="a")
    with pytest.raises(SessionTokenError):
        verifier.verify("a.b.c")


@pytest.mark.parametrize(
    ("header", "expected"),
    [("Bearer abc", "abc"), ("bearer  abc ", "abc"), ("Basic abc", None), ("Bearer", None), (None, None)],
)
def test_get_bearer_token(header, expected) -> None:  # noqa: ANN001
    assert get_bearer_token(header) == expected
