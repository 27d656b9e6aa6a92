"""Schemas for alert rules and the events they fire."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from pulse_core.domain.schemas.analysis import SentimentLabel


class AlertType(str, Enum):
    MENTION_NEW = "mention_new"
    MENTION_LOST = "mention_lost"
    SENTIMENT_DROP = "sentiment_drop"
    SENTIMENT_SPIKE = "sentiment_spike"
    COMPETITOR_AHEAD = "competitor_ahead"
    HALLUCINATION = "hallucination"
    VISIBILITY_CHANGE = "visibility_change"


class AlertChannel(str, Enum):
    EMAIL = "email"
    WEBHOOK = "webhook"


class AlertCondition(BaseModel):
    """Rule parameters; which ones matter depends on the rule type."""

    threshold: Optional[float] = None
    operator: Optional[str] = None  # gt | lt | gte | lte | eq
    engine: Optional[str] = None  # a MonitoringEngine value or "all"
    competitor: Optional[str] = None
    sentiment: Optional[SentimentLabel] = None


class AlertRule(BaseModel):
    """A user-defined condition watched on every monitoring run.

    ``type`` is kept as a plain string: rules of a type this version does
    not know about are loaded and simply never fire.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    brand_id: str
    user_id: Optional[str] = None
    name: str = ""
    type: str
    condition: AlertCondition = Field(default_factory=AlertCondition)
    channels: list[str] = Field(default_factory=list)
    email: Optional[str] = None
    webhook_url: Optional[str] = None
    is_active: bool = True
    last_fired_at: Optional[datetime] = None


class AlertEvent(BaseModel):
    """One firing of a rule, as shown in the dashboard and notifications."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    alert_rule_id: str
    brand_id: str
    user_id: Optional[str] = None
    type: str
    title: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    channels_sent: list[str] = Field(default_factory=list)
    is_read: bool = False
    created_at: Optional[datetime] = None
