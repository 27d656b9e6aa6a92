"""Observability package for logging and metrics."""

from pulse_core.observability.logging import (
    JsonFormatter,
    RequestContext,
    StructuredLogger,
    configure_logging,
    get_logger,
)
from pulse_core.observability.metrics import (
    MetricsCollector,
    get_collector,
)

__all__ = [
    "JsonFormatter",
    "RequestContext",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
    "MetricsCollector",
    "get_collector",
]
