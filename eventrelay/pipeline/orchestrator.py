"""Per-request event pipeline: normalize, gate, claim, deliver, record."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.orm import Session

from eventrelay.pipeline.audit import DeliveryAuditLogger
from eventrelay.pipeline.delivery import DeliveryClient
from eventrelay.pipeline.errors import AuditLogError, TransportError
from eventrelay.pipeline.ledger import IdempotencyLedger
from eventrelay.pipeline.normalizer import normalize_event
from eventrelay.pipeline.state import IntegrationStateTracker

LOGGER = logging.getLogger("eventrelay.pipeline.orchestrator")

DEDUPED_STATUS = 208
SKIPPED_REASON = "skipped_missing_identity"


class PipelineOutcome(str, Enum):
    SKIPPED = "skipped"
    DEDUPED = "deduped"
    DELIVERED = "delivered"
    REJECTED = "rejected"
    AUTH_REJECTED = "auth_rejected"
    TRANSPORT_FAILED = "transport_failed"


@dataclass(frozen=True)
class PipelineResult:
    """HTTP-shaped answer for the caller."""

    outcome: PipelineOutcome
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)


class EventPipeline:
    """Runs one inbound event through the delivery state machine.

    Validation, integration gating and ledger failures are raised before any
    side effect. Every outcome after a successful claim updates the tenant's
    integration record and attempts an audit log write.
    """

    def __init__(
        self,
        session: Session,
        *,
        delivery_client: DeliveryClient,
        ledger: Optional[IdempotencyLedger] = None,
        state: Optional[IntegrationStateTracker] = None,
        audit: Optional[DeliveryAuditLogger] = None,
    ) -> None:
        self._delivery = delivery_client
        self._ledger = ledger or IdempotencyLedger(session)
        self._state = state or IntegrationStateTracker(session)
        self._audit = audit or DeliveryAuditLogger(session)

    def handle(self, tenant_id: str, body: Any) -> PipelineResult:
        event = normalize_event(body)
        payload = event.payload

        if event.skipped_missing_identity:
            self._log(tenant_id, payload, 202, {"skipped": True, "reason": "missing_identity"})
            LOGGER.info(
                "event_skipped_missing_identity",
                extra={"tenant_id": tenant_id, "event_name": event.event_name},
            )
            return PipelineResult(
                outcome=PipelineOutcome.SKIPPED,
                status_code=202,
                body={"success": True, "skipped": True, "reason": SKIPPED_REASON},
            )

        credential = self._state.require_connected(tenant_id)

        claim = self._ledger.claim(tenant_id, event.event_id, event.event_name)
        if not claim.claimed:
            self._log(tenant_id, payload, DEDUPED_STATUS, {"deduped": True})
            return PipelineResult(
                outcome=PipelineOutcome.DEDUPED,
                status_code=200,
                body={"success": True, "deduped": True, "eventID": event.event_id},
            )

        try:
            response = self._delivery.send(credential, payload)
        except TransportError as exc:
            return self._transport_failed(tenant_id, payload, str(exc))
        except Exception as exc:
            # Claim is committed; the outcome must still be recorded.
            LOGGER.exception(
                "upstream_delivery_crashed",
                extra={"tenant_id": tenant_id, "event_id": event.event_id},
            )
            return self._transport_failed(tenant_id, payload, f"{exc.__class__.__name__}: {exc}")

        extra = {
            "tenant_id": tenant_id,
            "event_id": event.event_id,
            "event_name": event.event_name,
            "status_code": response.status_code,
            "attempts": response.attempts,
        }

        if response.ok:
            self._state.record_success(tenant_id)
            self._log(tenant_id, payload, response.status_code, response.body)
            LOGGER.info("event_delivered", extra=extra)
            return PipelineResult(
                outcome=PipelineOutcome.DELIVERED,
                status_code=200,
                body={"success": True, "status": response.status_code, "response": response.body},
            )

        if response.is_auth_error:
            self._state.record_auth_failure(tenant_id)
            outcome = PipelineOutcome.AUTH_REJECTED
        else:
            self._state.record_http_failure(tenant_id, response.status_code)
            outcome = PipelineOutcome.REJECTED

        self._log(tenant_id, payload, response.status_code, response.body)
        LOGGER.warning("event_rejected_upstream", extra=extra)
        return PipelineResult(
            outcome=outcome,
            status_code=502,
            body={"success": False, "status": response.status_code, "error": response.body},
        )

    def _log(
        self,
        tenant_id: str,
        payload: Mapping[str, Any],
        status_code: int,
        response: Mapping[str, Any],
    ) -> None:
        try:
            self._audit.write(
                tenant_id=tenant_id,
                name=payload.get("eventName"),
                status_code=status_code,
                request_payload=payload,
                response_payload=response,
            )
        except AuditLogError:
            LOGGER.exception(
                "delivery_log_write_failed",
                extra={"tenant_id": tenant_id, "event_id": payload.get("eventID")},
            )

    def _transport_failed(self, tenant_id: str, payload: Mapping[str, Any], message: str) -> PipelineResult:
        self._state.record_transport_failure(tenant_id, message)
        self._log(tenant_id, payload, 500, {"error": message})
        return PipelineResult(
            outcome=PipelineOutcome.TRANSPORT_FAILED,
            status_code=500,
            body={"success": False, "error": "failed to forward event"},
        )
