"""Per-tenant integration health tracking."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventrelay.models.integration import IntegrationRecord, IntegrationStatus
from eventrelay.pipeline.errors import IntegrationLoadError, IntegrationNotConnectedError

LOGGER = logging.getLogger("eventrelay.pipeline.state")

AUTH_ERROR = "AUTH"


class IntegrationStateTracker:
    """Reads the tenant's integration gate and records delivery outcomes.

    Outcome updates are plain last-writer-wins writes without locking; a
    failed write is logged and rolled back, never raised.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def load(self, tenant_id: str) -> Optional[IntegrationRecord]:
        try:
            return self._session.scalar(
                select(IntegrationRecord).where(IntegrationRecord.tenant_id == tenant_id)
            )
        except SQLAlchemyError as exc:
            self._session.rollback()
            LOGGER.exception("integration_load_failed", extra={"tenant_id": tenant_id})
            raise IntegrationLoadError("failed to load integration") from exc

    def require_connected(self, tenant_id: str) -> str:
        """Return the tenant's credential, or raise if it must not be used."""

        record = self.load(tenant_id)
        if record is None or record.status != IntegrationStatus.CONNECTED:
            raise IntegrationNotConnectedError("integration not connected")

        credential = (record.credential or "").strip()
        if not credential:
            raise IntegrationNotConnectedError("integration credential missing")
        return credential

    def record_success(self, tenant_id: str) -> None:
        self._apply(
            tenant_id,
            status=IntegrationStatus.CONNECTED,
            last_error=None,
            last_error_at=None,
            last_event_at=_now(),
        )

    def record_auth_failure(self, tenant_id: str) -> None:
        self._apply(
            tenant_id,
            status=IntegrationStatus.ERROR,
            last_error=AUTH_ERROR,
            last_error_at=_now(),
        )

    def record_http_failure(self, tenant_id: str, status_code: int) -> None:
        self._apply(
            tenant_id,
            status=IntegrationStatus.CONNECTED,
            last_error=f"HTTP {status_code}",
            last_error_at=_now(),
        )

    def record_transport_failure(self, tenant_id: str, message: str) -> None:
        self._apply(
            tenant_id,
            status=IntegrationStatus.CONNECTED,
            last_error=message[:1024],
            last_error_at=_now(),
        )

    def _apply(self, tenant_id: str, **values: Any) -> None:
        stmt = (
            update(IntegrationRecord)
            .where(IntegrationRecord.tenant_id == tenant_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            self._session.execute(stmt)
            self._session.commit()
        except SQLAlchemyError:
            self._session.rollback()
            LOGGER.exception(
                "integration_state_update_failed",
                extra={"tenant_id": tenant_id, "status": str(values.get("status"))},
            )
            return

        LOGGER.info(
            "integration_state_updated",
            extra={
                "tenant_id": tenant_id,
                "status": values["status"].value,
                "last_error": values.get("last_error"),
            },
        )


def _now() -> datetime:
    return datetime.now(timezone.utc)
