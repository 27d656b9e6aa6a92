"""Schemas for brands, prompts and monitoring results.

These are the records the core reads from, and hands back to, the
persistence collaborator. Ids are opaque strings.
"""

from datetime import date as date_type, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from pulse_core.domain.schemas.analysis import (
    AnalysisOutput,
    CompetitorMention,
    HallucinationFlag,
    MentionType,
    SentimentLabel,
)


class MonitoringEngine(str, Enum):
    """AI search engines whose answers are simulated."""

    CHATGPT = "chatgpt"
    GEMINI = "gemini"
    PERPLEXITY = "perplexity"


ALL_ENGINES: tuple[MonitoringEngine, ...] = tuple(MonitoringEngine)


class Brand(BaseModel):
    """A monitored brand."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    aliases: list[str] = Field(default_factory=list)
    domain: Optional[str] = None
    competitors: list[str] = Field(default_factory=list)
    color: str = "#6366f1"


class Prompt(BaseModel):
    """A question asked to every configured engine."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    brand_id: str
    text: str
    engines: list[MonitoringEngine] = Field(default_factory=lambda: list(ALL_ENGINES))


class SimulationRequest(BaseModel):
    """One simulated engine question."""

    model_config = ConfigDict(frozen=True)

    prompt_text: str
    engine: MonitoringEngine


class MonitoringResult(BaseModel):
    """Snapshot of one prompt run on one engine.

    ``id`` and ``created_at`` are assigned by persistence; a freshly
    built payload leaves them unset.
    """

    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    prompt_id: str
    brand_id: str
    user_id: Optional[str] = None
    engine: MonitoringEngine
    prompt_text: str
    response_text: str

    brand_mentioned: bool
    mention_position: Optional[int] = None
    mention_count: int = 0
    mention_type: MentionType = MentionType.NONE
    visibility_score: float = 0.0
    sentiment: Optional[SentimentLabel] = SentimentLabel.NEUTRAL
    sentiment_score: Optional[float] = 0.0
    cited_urls: list[str] = Field(default_factory=list)
    competitor_mentions: list[CompetitorMention] = Field(default_factory=list)
    has_hallucination: bool = False
    hallucination_flags: list[HallucinationFlag] = Field(default_factory=list)

    created_at: Optional[datetime] = None

    @classmethod
    def from_analysis(
        cls,
        *,
        prompt: "Prompt",
        brand: Brand,
        engine: MonitoringEngine,
        response_text: str,
        analysis: AnalysisOutput,
        user_id: Optional[str] = None,
    ) -> "MonitoringResult":
        """Flatten a validated analysis into a result payload."""
        return cls(
            prompt_id=prompt.id,
            brand_id=brand.id,
            user_id=user_id,
            engine=engine,
            prompt_text=prompt.text,
            response_text=response_text,
            brand_mentioned=analysis.brand_mentioned,
            mention_position=analysis.mention_position,
            mention_count=analysis.mention_count,
            mention_type=analysis.mention_type,
            visibility_score=analysis.visibility_score,
            sentiment=analysis.sentiment,
            sentiment_score=analysis.sentiment_score,
            cited_urls=list(analysis.cited_urls),
            competitor_mentions=list(analysis.competitor_mentions),
            has_hallucination=analysis.has_hallucination,
            hallucination_flags=list(analysis.hallucination_flags),
        )


class BrandHealthScore(BaseModel):
    """Daily brand rollup across a batch of results."""

    brand_id: str
    date: date_type
    visibility_score: float
    sentiment_score: float
    hallucination_rate: float
    mention_count: int
    health_score: int
