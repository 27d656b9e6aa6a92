"""Monitoring and analysis API schemas."""

from typing import Annotated, Literal, Optional

from pydantic import BaseModel, Field

from pulse_core.domain.schemas.analysis import HallucinationReport, SentimentReport
from pulse_core.domain.schemas.monitoring import (
    Brand,
    BrandHealthScore,
    MonitoringEngine,
    MonitoringResult,
    Prompt,
)


class MonitoringCheckRequest(BaseModel):
    """Request schema for an ad-hoc monitoring check."""

    prompt: Prompt
    brand: Brand
    engines: Optional[list[MonitoringEngine]] = Field(
        default=None,
        description="Engines to run; defaults to the prompt's engines",
    )


class EngineCheckResponse(BaseModel):
    """Outcome for one engine."""

    engine: MonitoringEngine
    result: Optional[MonitoringResult] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None


class MonitoringCheckResponse(BaseModel):
    engines_run: int
    results: list[EngineCheckResponse]
    health_score: Optional[BrandHealthScore] = None


class TextAnalysisRequest(BaseModel):
    """Request schema for standalone sentiment / hallucination analysis."""

    text: str = Field(..., min_length=10, max_length=10_000)
    brand_name: str = Field(..., min_length=1, max_length=200)
    mode: Literal["sentiment", "hallucination", "both"] = "both"
    known_facts: list[Annotated[str, Field(max_length=500)]] = Field(
        default_factory=list,
        max_length=20,
    )


class TextAnalysisResponse(BaseModel):
    sentiment: Optional[SentimentReport] = None
    hallucination: Optional[HallucinationReport] = None


class ProviderStatusResponse(BaseModel):
    configured: bool
    free_limit: str
    best_for: str
    signup_url: str


class ProvidersResponse(BaseModel):
    providers: dict[str, ProviderStatusResponse]
    configured_count: int
    total_count: int
    recommendation: str
