"""Event delivery pipeline: normalization, redaction, dedupe, delivery, health."""

from .delivery import DeliveryClient, DeliveryResponse  # noqa: F401
from .orchestrator import EventPipeline, PipelineOutcome, PipelineResult  # noqa: F401
