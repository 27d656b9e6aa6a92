"""API schemas."""

from pulse_core.api.schemas.monitoring import (
    EngineCheckResponse,
    MonitoringCheckRequest,
    MonitoringCheckResponse,
    ProvidersResponse,
    ProviderStatusResponse,
    TextAnalysisRequest,
    TextAnalysisResponse,
)

__all__ = [
    # Monitoring schemas
    "EngineCheckResponse",
    "MonitoringCheckRequest",
    "MonitoringCheckResponse",
    # Analysis schemas
    "TextAnalysisRequest",
    "TextAnalysisResponse",
    # Provider schemas
    "ProvidersResponse",
    "ProviderStatusResponse",
]
