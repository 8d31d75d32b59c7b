"""Idempotency ledger rows."""

from __future__ import annotations

import uuid

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from eventrelay.models.base import Base, CreatedAtMixin
from eventrelay.models.types import GUID


class EventClaim(CreatedAtMixin, Base):
    """A reserved ``(tenant, eventID)`` pair; inserted at most once."""

    __tablename__ = "event_claims"
    __table_args__ = (
        UniqueConstraint("tenant_id", "event_id", name="uq_event_claims_tenant_event"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(length=128), nullable=False)
    event_id: Mapped[str] = mapped_column(String(length=255), nullable=False)
    event_name: Mapped[str] = mapped_column(String(length=255), nullable=False)
