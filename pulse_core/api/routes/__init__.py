"""API routes."""

from pulse_core.api.routes import metrics, monitoring, providers

__all__ = ["metrics", "monitoring", "providers"]
