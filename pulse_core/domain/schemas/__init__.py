"""Pydantic schemas for the monitoring domain."""

from pulse_core.domain.schemas.alerts import (
    AlertChannel,
    AlertCondition,
    AlertEvent,
    AlertRule,
    AlertType,
)
from pulse_core.domain.schemas.analysis import (
    AnalysisOutput,
    CompetitorMention,
    HallucinationFlag,
    HallucinationReport,
    HallucinationSeverity,
    HallucinationType,
    MentionType,
    SentimentLabel,
    SentimentReport,
)
from pulse_core.domain.schemas.monitoring import (
    ALL_ENGINES,
    Brand,
    BrandHealthScore,
    MonitoringEngine,
    MonitoringResult,
    Prompt,
    SimulationRequest,
)

__all__ = [
    "ALL_ENGINES",
    "AlertChannel",
    "AlertCondition",
    "AlertEvent",
    "AlertRule",
    "AlertType",
    "AnalysisOutput",
    "Brand",
    "BrandHealthScore",
    "CompetitorMention",
    "HallucinationFlag",
    "HallucinationReport",
    "HallucinationSeverity",
    "HallucinationType",
    "MentionType",
    "MonitoringEngine",
    "MonitoringResult",
    "Prompt",
    "SentimentLabel",
    "SentimentReport",
    "SimulationRequest",
]
