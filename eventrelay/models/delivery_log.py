"""Redacted audit trail of forwarded events."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from eventrelay.models.base import Base, CreatedAtMixin
from eventrelay.models.types import GUID, JSONType


class DeliveryLog(CreatedAtMixin, Base):
    """Append-only record of one inbound event and its outcome."""

    __tablename__ = "delivery_logs"
    __table_args__ = (
        Index("ix_delivery_logs_tenant_created", "tenant_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(length=128), nullable=False)
    direction: Mapped[str] = mapped_column(String(length=16), nullable=False, default="outbound")
    kind: Mapped[str] = mapped_column(String(length=32), nullable=False, default="event")
    name: Mapped[Optional[str]] = mapped_column(String(length=255), nullable=True)
    status_code: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    request: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    response: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
