"""Per-tenant upstream integration record."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy import Enum as SqlEnum
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from eventrelay.models.base import Base, TimestampMixin
from eventrelay.models.types import GUID


class IntegrationStatus(str, Enum):
    """Connection health of a tenant's upstream integration."""

    DISABLED = "disabled"
    CONNECTED = "connected"
    ERROR = "error"


class IntegrationRecord(TimestampMixin, Base):
    """Upstream credential and delivery health for one tenant."""

    __tablename__ = "integrations"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(length=128), unique=True, nullable=False)
    status: Mapped[IntegrationStatus] = mapped_column(
        SqlEnum(IntegrationStatus, name="integration_status", native_enum=False),
        nullable=False,
        default=IntegrationStatus.DISABLED,
    )
    credential: Mapped[Optional[str]] = mapped_column(String(length=512), nullable=True)
    last_event_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(String(length=1024), nullable=True)
    last_error_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
