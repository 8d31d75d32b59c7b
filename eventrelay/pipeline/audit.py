"""Redacted delivery audit log."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventrelay.models.delivery_log import DeliveryLog
from eventrelay.pipeline.errors import AuditLogError
from eventrelay.pipeline.normalizer import clean_value
from eventrelay.pipeline.redaction import redact


class DeliveryAuditLogger:
    """Persists redacted delivery log rows and mirrors them to structured logs."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self._logger = logging.getLogger("eventrelay.audit")

    def write(
        self,
        *,
        tenant_id: str,
        name: Optional[str],
        status_code: Optional[int],
        request_payload: Mapping[str, Any],
        response_payload: Optional[Mapping[str, Any]] = None,
    ) -> DeliveryLog:
        """Insert one log row; raises :class:`AuditLogError` when storage fails."""

        response = clean_value(response_payload) if response_payload is not None else None
        entry = DeliveryLog(
            tenant_id=tenant_id,
            direction="outbound",
            kind="event",
            name=name,
            status_code=status_code,
            request=redact(request_payload or {}),
            response=redact(response) if response is not None else None,
        )

        try:
            self._session.add(entry)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise AuditLogError(f"failed to write delivery log for {name!r}") from exc

        self._logger.info(
            "delivery_logged",
            extra={
                "tenant_id": tenant_id,
                "event_name": name,
                "status_code": status_code,
            },
        )
        return entry
