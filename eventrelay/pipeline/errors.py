"""Error taxonomy for the delivery pipeline."""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base class for event pipeline errors."""


class EventValidationError(PipelineError, ValueError):
    """Inbound event is malformed or incomplete."""


class IntegrationNotConnectedError(PipelineError):
    """Tenant integration is disabled, errored, or has no credential."""


class IntegrationLoadError(PipelineError):
    """The integration record could not be read."""


class LedgerError(PipelineError):
    """The idempotency claim could not be resolved."""


class TransportError(PipelineError):
    """The upstream API could not be reached (DNS, refused, timeout)."""


class AuditLogError(PipelineError):
    """A delivery log row could not be written."""
