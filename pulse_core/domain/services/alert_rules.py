"""Alert rule evaluation and event building.

Both functions are pure: no I/O, no clock, no mutation of their inputs.
Rules of a type this module does not know never fire.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from pulse_core.domain.schemas.alerts import AlertEvent, AlertRule, AlertType
from pulse_core.domain.schemas.analysis import HallucinationSeverity
from pulse_core.domain.schemas.monitoring import Brand, MonitoringResult

logger = logging.getLogger(__name__)

DEFAULT_SENTIMENT_THRESHOLD = 0.3
DEFAULT_VISIBILITY_THRESHOLD = 20.0

# Position used for an unranked brand or competitor
UNRANKED_POSITION = 999

SERIOUS_SEVERITIES = (HallucinationSeverity.MEDIUM, HallucinationSeverity.HIGH)


@dataclass(frozen=True)
class AlertTriggerContext:
    """The new result, the previous one for the same prompt and engine, and the brand."""

    result: MonitoringResult
    brand: Brand
    previous_result: Optional[MonitoringResult] = None


# =============================================================================
# CONDITIONS
# =============================================================================


def _mention_new(rule: AlertRule, ctx: AlertTriggerContext) -> bool:
    previous = ctx.previous_result
    return ctx.result.brand_mentioned and (previous is None or not previous.brand_mentioned)


def _mention_lost(rule: AlertRule, ctx: AlertTriggerContext) -> bool:
    previous = ctx.previous_result
    return not ctx.result.brand_mentioned and previous is not None and previous.brand_mentioned


def _sentiment_scores(ctx: AlertTriggerContext) -> Optional[tuple[float, float]]:
    """(previous, current) scores, or None unless both are present."""
    previous = ctx.previous_result
    if previous is None or previous.sentiment_score is None or ctx.result.sentiment_score is None:
        return None
    return previous.sentiment_score, ctx.result.sentiment_score


def _threshold(rule: AlertRule, default: float) -> float:
    threshold = rule.condition.threshold
    return default if threshold is None else threshold


def _sentiment_drop(rule: AlertRule, ctx: AlertTriggerContext) -> bool:
    scores = _sentiment_scores(ctx)
    if scores is None:
        return False
    previous, current = scores
    return previous - current >= _threshold(rule, DEFAULT_SENTIMENT_THRESHOLD)


def _sentiment_spike(rule: AlertRule, ctx: AlertTriggerContext) -> bool:
    scores = _sentiment_scores(ctx)
    if scores is None:
        return False
    previous, current = scores
    return current - previous >= _threshold(rule, DEFAULT_SENTIMENT_THRESHOLD)


def _competitor_ahead(rule: AlertRule, ctx: AlertTriggerContext) -> bool:
    name = (rule.condition.competitor or "").strip().lower()
    if not name:
        return False

    competitor = next(
        (c for c in ctx.result.competitor_mentions if c.name.lower() == name),
        None,
    )
    brand_position = ctx.result.mention_position or UNRANKED_POSITION
    competitor_position = (
        competitor.position if competitor is not None and competitor.position else UNRANKED_POSITION
    )
    return competitor_position < brand_position


def _hallucination(rule: AlertRule, ctx: AlertTriggerContext) -> bool:
    if not ctx.result.has_hallucination:
        return False
    if rule.condition.threshold is None:
        return len(ctx.result.hallucination_flags) > 0
    return any(flag.severity in SERIOUS_SEVERITIES for flag in ctx.result.hallucination_flags)


def _visibility_change(rule: AlertRule, ctx: AlertTriggerContext) -> bool:
    previous = ctx.previous_result
    if previous is None:
        return False
    change = abs(ctx.result.visibility_score - previous.visibility_score)
    return change >= _threshold(rule, DEFAULT_VISIBILITY_THRESHOLD)


_CONDITIONS: dict[str, Callable[[AlertRule, AlertTriggerContext], bool]] = {
    AlertType.MENTION_NEW.value: _mention_new,
    AlertType.MENTION_LOST.value: _mention_lost,
    AlertType.SENTIMENT_DROP.value: _sentiment_drop,
    AlertType.SENTIMENT_SPIKE.value: _sentiment_spike,
    AlertType.COMPETITOR_AHEAD.value: _competitor_ahead,
    AlertType.HALLUCINATION.value: _hallucination,
    AlertType.VISIBILITY_CHANGE.value: _visibility_change,
}


def should_fire(rule: AlertRule, context: AlertTriggerContext) -> bool:
    """Whether ``rule`` fires for the new result in ``context``."""
    condition = _CONDITIONS.get(rule.type)
    if condition is None:
        logger.debug(f"Alert rule {rule.id} has unknown type {rule.type!r}; not firing")
        return False
    return condition(rule, context)


# =============================================================================
# EVENTS
# =============================================================================


def _event_text(rule: AlertRule, result: MonitoringResult, brand: Brand) -> tuple[str, str]:
    name = brand.name
    engine = result.engine.value
    visibility = f"{result.visibility_score:g}"

    if rule.type == AlertType.MENTION_NEW:
        position = result.mention_position if result.mention_position is not None else "unknown"
        return (
            f"{name} mentioned on {engine}",
            f"Your brand was mentioned in an AI response on {engine} "
            f"(position #{position}). Visibility score: {visibility}/100.",
        )
    if rule.type == AlertType.MENTION_LOST:
        return (
            f"{name} no longer mentioned on {engine}",
            f"Your brand is no longer appearing in AI responses for this prompt on {engine}. "
            "Consider updating your content strategy.",
        )
    if rule.type == AlertType.SENTIMENT_DROP:
        score = f"{result.sentiment_score:.2f}" if result.sentiment_score is not None else "n/a"
        sentiment = result.sentiment.value if result.sentiment is not None else "unknown"
        return (
            f"Sentiment dropped for {name} on {engine}",
            f"The sentiment toward {name} has dropped significantly. "
            f"Current sentiment: {sentiment} (score: {score}).",
        )
    if rule.type == AlertType.SENTIMENT_SPIKE:
        return (
            f"Positive sentiment spike for {name}",
            f"The sentiment toward {name} has improved significantly on {engine}.",
        )
    if rule.type == AlertType.COMPETITOR_AHEAD:
        return (
            f"Competitor leading {name} on {engine}",
            f"A competitor is now being cited more prominently than {name} "
            f"in AI responses on {engine}.",
        )
    if rule.type == AlertType.HALLUCINATION:
        return (
            f"Hallucination detected for {name} on {engine}",
            f"An AI system may be spreading false information about {name}. "
            f"{len(result.hallucination_flags)} potential issue(s) flagged.",
        )
    if rule.type == AlertType.VISIBILITY_CHANGE:
        return (
            f"Visibility change detected for {name}",
            f"The visibility score for {name} on {engine} has changed significantly. "
            f"Current score: {visibility}/100.",
        )
    return rule.name or "Alert triggered", f"Alert triggered for {name}."


def build_event(rule: AlertRule, result: MonitoringResult, brand: Brand) -> AlertEvent:
    """Pre-insert event payload for a rule that fired on ``result``."""
    title, message = _event_text(rule, result, brand)
    return AlertEvent(
        alert_rule_id=rule.id,
        brand_id=brand.id,
        user_id=rule.user_id,
        type=rule.type,
        title=title,
        message=message,
        data={
            "result_id": result.id,
            "engine": result.engine.value,
            "score": result.visibility_score,
        },
        channels_sent=[],
        is_read=False,
    )
