"""SQLAlchemy ORM models for the relay service."""

from eventrelay.models.base import Base  # noqa: F401
from eventrelay.models.delivery_log import DeliveryLog  # noqa: F401
from eventrelay.models.event_claim import EventClaim  # noqa: F401
from eventrelay.models.integration import IntegrationRecord, IntegrationStatus  # noqa: F401
