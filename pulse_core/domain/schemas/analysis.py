"""Pydantic schemas for model-produced brand analysis.

The input is whatever a language model wrote, so every optional field is
normalized rather than trusted: nulls and unknown enum values fall back
to defaults, malformed list entries are dropped and scores are clamped.
Only ``brand_mentioned`` and ``visibility_score`` are required and type
checked strictly.
"""

import math
from enum import Enum
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)


# ============================================================================
# Enums
# ============================================================================


class SentimentLabel(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class MentionType(str, Enum):
    DIRECT = "direct"
    INDIRECT = "indirect"
    NONE = "none"


class HallucinationSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class HallucinationType(str, Enum):
    FACTUAL_ERROR = "factual_error"
    ATTRIBUTION_ERROR = "attribution_error"
    FABRICATION = "fabrication"
    DATE_ERROR = "date_error"


# ============================================================================
# Coercion helpers
# ============================================================================


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_int(value: Any) -> Optional[int]:
    """Best-effort integer, ``None`` when the value is not integral-ish."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def _finite_float(value: Any) -> Optional[float]:
    """``float(value)`` for finite numbers, ``None`` otherwise.

    JSON integers are unbounded; one too large for a float is treated as
    not a number rather than raising ``OverflowError``.
    """
    if not _is_number(value):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def _as_float(value: Any, default: float) -> float:
    number = _finite_float(value)
    return default if number is None else number


def _enum_value(value: Any, enum_cls: type[Enum], default: Enum) -> Enum:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            pass
    return default


def _valid_items(value: Any, model: type[BaseModel]) -> list[BaseModel]:
    """Validate each list entry against ``model``, dropping the bad ones."""
    if not isinstance(value, list):
        return []
    items = []
    for raw in value:
        if not isinstance(raw, dict):
            continue
        try:
            items.append(model.model_validate(raw))
        except ValidationError:
            continue
    return items


def _aliases(name: str, camel: str) -> AliasChoices:
    return AliasChoices(name, camel)


# ============================================================================
# Nested entries
# ============================================================================


class CompetitorMention(BaseModel):
    """A competitor named in the simulated response."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    position: Optional[int] = Field(
        default=None,
        description="1-based position of the first mention; None when unranked",
    )
    count: int = Field(default=1, ge=0)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("position", mode="before")
    @classmethod
    def _position(cls, v: Any) -> Optional[int]:
        position = _as_int(v)
        return position if position is not None and position >= 1 else None

    @field_validator("count", mode="before")
    @classmethod
    def _count(cls, v: Any) -> int:
        count = _as_int(v)
        return max(0, count) if count is not None else 1


class HallucinationFlag(BaseModel):
    """A claim in the response that is likely false."""

    model_config = ConfigDict(extra="ignore")

    text: str = Field(min_length=1)
    severity: HallucinationSeverity
    type: HallucinationType

    @field_validator("severity", "type", mode="before")
    @classmethod
    def _lowercase(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


class SentimentAspect(BaseModel):
    model_config = ConfigDict(extra="ignore")

    aspect: str = Field(min_length=1)
    sentiment: SentimentLabel = SentimentLabel.NEUTRAL
    explanation: str = ""

    @field_validator("sentiment", mode="before")
    @classmethod
    def _sentiment(cls, v: Any) -> SentimentLabel:
        return _enum_value(v, SentimentLabel, SentimentLabel.NEUTRAL)

    @field_validator("explanation", mode="before")
    @classmethod
    def _explanation(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""


# ============================================================================
# Brand analysis output
# ============================================================================


class AnalysisOutput(BaseModel):
    """Validated brand signals extracted from one simulated response."""

    model_config = ConfigDict(extra="ignore")

    brand_mentioned: bool = Field(
        validation_alias=_aliases("brand_mentioned", "brandMentioned"),
    )
    mention_position: Optional[int] = Field(
        default=None,
        validation_alias=_aliases("mention_position", "mentionPosition"),
    )
    mention_count: int = Field(
        default=0,
        validation_alias=_aliases("mention_count", "mentionCount"),
    )
    mention_type: MentionType = Field(
        default=MentionType.NONE,
        validation_alias=_aliases("mention_type", "mentionType"),
    )
    visibility_score: float = Field(
        validation_alias=_aliases("visibility_score", "visibilityScore"),
        description="How prominently the brand is featured, 0-100",
    )
    sentiment: SentimentLabel = SentimentLabel.NEUTRAL
    sentiment_score: float = Field(
        default=0.0,
        validation_alias=_aliases("sentiment_score", "sentimentScore"),
    )
    sentiment_reasoning: str = Field(
        default="",
        validation_alias=_aliases("sentiment_reasoning", "sentimentReasoning"),
    )
    cited_urls: list[str] = Field(
        default_factory=list,
        validation_alias=_aliases("cited_urls", "citedUrls"),
    )
    competitor_mentions: list[CompetitorMention] = Field(
        default_factory=list,
        validation_alias=_aliases("competitor_mentions", "competitorMentions"),
    )
    has_hallucination: bool = Field(
        default=False,
        validation_alias=_aliases("has_hallucination", "hasHallucination"),
    )
    hallucination_flags: list[HallucinationFlag] = Field(
        default_factory=list,
        validation_alias=_aliases("hallucination_flags", "hallucinationFlags"),
    )

    # -- required fields: strict ------------------------------------------------

    @field_validator("brand_mentioned", mode="before")
    @classmethod
    def _require_bool(cls, v: Any) -> bool:
        if not isinstance(v, bool):
            raise ValueError(f"must be a boolean, got {type(v).__name__}")
        return v

    @field_validator("visibility_score", mode="before")
    @classmethod
    def _require_number(cls, v: Any) -> float:
        number = _finite_float(v)
        if number is None:
            raise ValueError(f"must be a finite number, got {type(v).__name__}")
        return number

    @field_validator("visibility_score", mode="after")
    @classmethod
    def _clamp_visibility(cls, v: float) -> float:
        return clamp(v, 0.0, 100.0)

    # -- optional fields: normalized --------------------------------------------

    @field_validator("mention_position", mode="before")
    @classmethod
    def _position(cls, v: Any) -> Optional[int]:
        position = _as_int(v)
        return position if position is not None and position >= 1 else None

    @field_validator("mention_count", mode="before")
    @classmethod
    def _count(cls, v: Any) -> int:
        count = _as_int(v)
        return max(0, count) if count is not None else 0

    @field_validator("mention_type", mode="before")
    @classmethod
    def _mention_type(cls, v: Any) -> MentionType:
        return _enum_value(v, MentionType, MentionType.NONE)

    @field_validator("sentiment", mode="before")
    @classmethod
    def _sentiment(cls, v: Any) -> SentimentLabel:
        return _enum_value(v, SentimentLabel, SentimentLabel.NEUTRAL)

    @field_validator("sentiment_score", mode="before")
    @classmethod
    def _sentiment_score(cls, v: Any) -> float:
        return clamp(_as_float(v, 0.0), -1.0, 1.0)

    @field_validator("sentiment_reasoning", mode="before")
    @classmethod
    def _reasoning(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("cited_urls", mode="before")
    @classmethod
    def _urls(cls, v: Any) -> list[str]:
        if not isinstance(v, list):
            return []
        return [u.strip() for u in v if isinstance(u, str) and u.strip()]

    @field_validator("competitor_mentions", mode="before")
    @classmethod
    def _competitors(cls, v: Any) -> list[CompetitorMention]:
        seen: set[str] = set()
        unique = []
        for mention in _valid_items(v, CompetitorMention):
            key = mention.name.lower()
            if key not in seen:
                seen.add(key)
                unique.append(mention)
        return unique

    @field_validator("has_hallucination", mode="before")
    @classmethod
    def _has_hallucination(cls, v: Any) -> bool:
        return v if isinstance(v, bool) else False

    @field_validator("hallucination_flags", mode="before")
    @classmethod
    def _flags(cls, v: Any) -> list[HallucinationFlag]:
        return _valid_items(v, HallucinationFlag)

    @model_validator(mode="after")
    def _position_requires_mention(self) -> "AnalysisOutput":
        if not self.brand_mentioned:
            self.mention_position = None
        return self


# ============================================================================
# Standalone sentiment / hallucination reports
# ============================================================================


class SentimentReport(BaseModel):
    """Sentiment toward a brand in an arbitrary text."""

    model_config = ConfigDict(extra="ignore")

    sentiment: SentimentLabel
    score: float = 0.0
    confidence: float = Field(default=0.0, description="0-100")
    reasoning: str = ""
    aspects: list[SentimentAspect] = Field(default_factory=list)

    @field_validator("sentiment", mode="before")
    @classmethod
    def _sentiment(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("score", mode="before")
    @classmethod
    def _score(cls, v: Any) -> float:
        return clamp(_as_float(v, 0.0), -1.0, 1.0)

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v: Any) -> float:
        return clamp(_as_float(v, 0.0), 0.0, 100.0)

    @field_validator("reasoning", mode="before")
    @classmethod
    def _reasoning(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("aspects", mode="before")
    @classmethod
    def _aspects(cls, v: Any) -> list[SentimentAspect]:
        return _valid_items(v, SentimentAspect)


class HallucinationReport(BaseModel):
    """Fact-check verdict for a text about a brand."""

    model_config = ConfigDict(extra="ignore")

    has_hallucination: bool = Field(
        validation_alias=_aliases("has_hallucination", "hasHallucination"),
    )
    confidence: float = Field(default=0.0, description="0-100")
    flags: list[HallucinationFlag] = Field(default_factory=list)
    summary: str = ""

    @field_validator("has_hallucination", mode="before")
    @classmethod
    def _require_bool(cls, v: Any) -> bool:
        if not isinstance(v, bool):
            raise ValueError(f"must be a boolean, got {type(v).__name__}")
        return v

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v: Any) -> float:
        return clamp(_as_float(v, 0.0), 0.0, 100.0)

    @field_validator("flags", mode="before")
    @classmethod
    def _flags(cls, v: Any) -> list[HallucinationFlag]:
        return _valid_items(v, HallucinationFlag)

    @field_validator("summary", mode="before")
    @classmethod
    def _summary(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""
