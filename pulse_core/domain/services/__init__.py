"""Domain services for AIO Pulse."""

from pulse_core.domain.services.alert_dispatch import AlertDispatcher
from pulse_core.domain.services.alert_rules import AlertTriggerContext, build_event, should_fire
from pulse_core.domain.services.check_runner import CheckRunner, MonitoringStore
from pulse_core.domain.services.monitoring import (
    MonitoringService,
    calculate_health_score,
    summarize_health,
)
from pulse_core.domain.services.router import AllProvidersFailedError, ChainStep, ProviderRouter
from pulse_core.domain.services.validation import AnalysisValidationError, parse_analysis_output

__all__ = [
    "AlertDispatcher",
    "AlertTriggerContext",
    "AllProvidersFailedError",
    "AnalysisValidationError",
    "ChainStep",
    "CheckRunner",
    "MonitoringService",
    "MonitoringStore",
    "ProviderRouter",
    "build_event",
    "calculate_health_score",
    "parse_analysis_output",
    "should_fire",
    "summarize_health",
]
