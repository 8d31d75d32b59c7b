"""Idempotency ledger backed by a unique ``(tenant_id, event_id)`` constraint."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from eventrelay.models.event_claim import EventClaim
from eventrelay.pipeline.errors import LedgerError

LOGGER = logging.getLogger("eventrelay.pipeline.ledger")

UNIQUE_VIOLATION_SQLSTATE = "23505"
CLAIM_CONSTRAINT = "uq_event_claims_tenant_event"


@dataclass(frozen=True)
class ClaimResult:
    claimed: bool


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when the driver reports a duplicate key rather than another integrity failure."""

    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate:
        return sqlstate == UNIQUE_VIOLATION_SQLSTATE
    message = str(orig)
    return "UNIQUE constraint failed" in message or CLAIM_CONSTRAINT in message


class IdempotencyLedger:
    """Reserves event identifiers so each one is delivered at most once.

    The insert is committed before returning so that concurrent requests, in
    this process or another, observe the claim through the unique constraint.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def claim(self, tenant_id: str, event_id: str, event_name: str) -> ClaimResult:
        self._session.add(EventClaim(tenant_id=tenant_id, event_id=event_id, event_name=event_name))
        try:
            self._session.commit()
        except IntegrityError as exc:
            self._session.rollback()
            if not is_unique_violation(exc):
                LOGGER.exception(
                    "event_claim_failed",
                    extra={"tenant_id": tenant_id, "event_id": event_id},
                )
                raise LedgerError("failed to process dedupe state") from exc
            LOGGER.info(
                "event_claim_exists",
                extra={"tenant_id": tenant_id, "event_id": event_id, "event_name": event_name},
            )
            return ClaimResult(claimed=False)
        except SQLAlchemyError as exc:
            self._session.rollback()
            LOGGER.exception(
                "event_claim_failed",
                extra={"tenant_id": tenant_id, "event_id": event_id},
            )
            raise LedgerError("failed to process dedupe state") from exc

        return ClaimResult(claimed=True)
