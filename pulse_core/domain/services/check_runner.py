"""Runs a prompt on several engines and acts on the results.

For each engine, concurrently: run the monitoring check, persist the
result, evaluate the brand's active alert rules against the previous
result for the same prompt and engine, then record and dispatch every
event that fires. A failing engine is reported in its outcome and does
not affect the others. After all engines finish the daily health score
is rolled up from the results that were saved.

Storage is a collaborator described by :class:`MonitoringStore`.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol, Sequence, Union

from pulse_core.domain.schemas.alerts import AlertEvent, AlertRule
from pulse_core.domain.schemas.monitoring import (
    Brand,
    BrandHealthScore,
    MonitoringEngine,
    MonitoringResult,
    Prompt,
)
from pulse_core.domain.services.alert_dispatch import AlertDispatcher
from pulse_core.domain.services.alert_rules import (
    AlertTriggerContext,
    build_event,
    should_fire,
)
from pulse_core.domain.services.monitoring import MonitoringService, summarize_health
from pulse_core.domain.services.router import AllProvidersFailedError
from pulse_core.domain.services.validation import AnalysisValidationError
from pulse_core.observability.logging import StructuredLogger, get_logger
from pulse_core.observability.metrics import ALERTS_FIRED, MetricsCollector, get_collector

logger = get_logger(__name__)

ERROR_PROVIDERS_FAILED = "providers_failed"
ERROR_INVALID_OUTPUT = "invalid_output"
ERROR_UNEXPECTED = "unexpected"
ERROR_ALERTS_FAILED = "alerts_failed"

ALL_ENGINES_CONDITION = "all"


class MonitoringStore(Protocol):
    """Persistence operations the runner needs."""

    async def get_previous_result(
        self, prompt_id: str, engine: MonitoringEngine
    ) -> Optional[MonitoringResult]: ...

    async def save_result(self, result: MonitoringResult) -> MonitoringResult: ...

    async def list_active_rules(self, brand_id: str) -> list[AlertRule]: ...

    async def save_event(self, event: AlertEvent) -> AlertEvent: ...

    async def update_event_channels(self, event_id: str, channels: list[str]) -> None: ...

    async def mark_rule_fired(self, rule_id: str, fired_at: datetime) -> None: ...

    async def save_health_score(self, score: BrandHealthScore) -> None: ...


@dataclass
class EngineCheckOutcome:
    """What happened for one engine.

    ``error_kind`` separates "no provider answered" from "a provider
    answered with unusable output"; it is ``None`` on success.
    """

    engine: MonitoringEngine
    result: Optional[MonitoringResult] = None
    events: list[AlertEvent] = field(default_factory=list)
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PromptRunSummary:
    prompt_id: str
    outcomes: list[EngineCheckOutcome]
    health_score: Optional[BrandHealthScore] = None

    @property
    def results(self) -> list[MonitoringResult]:
        return [o.result for o in self.outcomes if o.result is not None]

    @property
    def events(self) -> list[AlertEvent]:
        return [event for o in self.outcomes for event in o.events]

    @property
    def failed_engines(self) -> list[MonitoringEngine]:
        return [o.engine for o in self.outcomes if not o.ok]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def rule_applies_to_engine(rule: AlertRule, engine: MonitoringEngine) -> bool:
    """Rules scoped to one engine are only evaluated for that engine."""
    scope = rule.condition.engine
    return not scope or scope == ALL_ENGINES_CONDITION or scope == engine.value


class CheckRunner:
    """Fans a prompt out over engines and handles alerts for each result."""

    def __init__(
        self,
        monitoring: MonitoringService,
        store: MonitoringStore,
        dispatcher: AlertDispatcher,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.monitoring = monitoring
        self.store = store
        self.dispatcher = dispatcher
        self.metrics = metrics or get_collector()
        self._clock = clock

    async def run_prompt(
        self,
        prompt: Prompt,
        brand: Brand,
        engines: Optional[Sequence[Union[MonitoringEngine, str]]] = None,
        user_id: Optional[str] = None,
    ) -> PromptRunSummary:
        """Run ``prompt`` on ``engines`` (default: the prompt's engines).

        Unknown engine names are ignored, duplicates run once.
        """
        selected = select_engines(engines if engines is not None else prompt.engines)

        outcomes = await asyncio.gather(
            *(self._run_engine(prompt, brand, engine, user_id) for engine in selected)
        )

        summary = PromptRunSummary(prompt_id=prompt.id, outcomes=list(outcomes))
        summary.health_score = summarize_health(brand.id, summary.results, self._clock().date())
        if summary.health_score is not None:
            try:
                await self.store.save_health_score(summary.health_score)
            except Exception as e:
                logger.error(
                    f"Saving health score for brand {brand.id} failed: {e}",
                    exc_info=True,
                    brand_id=brand.id,
                    prompt_id=prompt.id,
                )

        logger.info(
            f"Monitoring complete for prompt {prompt.id}: "
            f"{len(summary.results)}/{len(selected)} engines processed, "
            f"{len(summary.events)} alerts fired"
        )
        return summary

    async def _run_engine(
        self,
        prompt: Prompt,
        brand: Brand,
        engine: MonitoringEngine,
        user_id: Optional[str],
    ) -> EngineCheckOutcome:
        outcome = EngineCheckOutcome(engine=engine)
        log = logger.bind(brand_id=brand.id, prompt_id=prompt.id, engine=engine.value)

        try:
            previous = await self.store.get_previous_result(prompt.id, engine)
            payload = await self.monitoring.run_check(prompt, brand, engine, user_id=user_id)
            saved = await self.store.save_result(payload)
        except AllProvidersFailedError as e:
            log.error(f"Engine {engine.value} failed: {e}")
            outcome.error, outcome.error_kind = str(e), ERROR_PROVIDERS_FAILED
            return outcome
        except AnalysisValidationError as e:
            log.error(f"Engine {engine.value} returned unusable analysis: {e}")
            outcome.error, outcome.error_kind = str(e), ERROR_INVALID_OUTPUT
            return outcome
        except Exception as e:
            log.error(f"Engine {engine.value} crashed: {e}", exc_info=True)
            outcome.error, outcome.error_kind = str(e) or type(e).__name__, ERROR_UNEXPECTED
            return outcome

        outcome.result = saved
        try:
            outcome.events, errors = await self._process_alerts(saved, previous, brand, engine, log)
        except Exception as e:
            log.error(f"Alert processing failed on {engine.value}: {e}", exc_info=True)
            errors = [str(e) or type(e).__name__]
        if errors:
            outcome.error, outcome.error_kind = "; ".join(errors), ERROR_ALERTS_FAILED
        return outcome

    async def _process_alerts(
        self,
        result: MonitoringResult,
        previous: Optional[MonitoringResult],
        brand: Brand,
        engine: MonitoringEngine,
        log: StructuredLogger,
    ) -> tuple[list[AlertEvent], list[str]]:
        """Evaluate every applicable rule; returns fired events and per-rule errors.

        A rule whose store or dispatch call fails does not stop the others.
        """
        rules = await self.store.list_active_rules(brand.id)
        trigger = AlertTriggerContext(result=result, previous_result=previous, brand=brand)
        fired: list[AlertEvent] = []
        errors: list[str] = []

        for rule in rules:
            if not rule.is_active or not rule_applies_to_engine(rule, engine):
                continue
            try:
                if not should_fire(rule, trigger):
                    continue
                fired.append(await self._fire_rule(rule, result, brand, log))
            except Exception as e:
                log.error(f"Alert rule {rule.id} failed: {e}", exc_info=True, rule_id=rule.id)
                errors.append(f"rule {rule.id}: {str(e) or type(e).__name__}")

        return fired, errors

    async def _fire_rule(
        self,
        rule: AlertRule,
        result: MonitoringResult,
        brand: Brand,
        log: StructuredLogger,
    ) -> AlertEvent:
        event = await self.store.save_event(build_event(rule, result, brand))
        self.metrics.increment(ALERTS_FIRED, labels={"type": rule.type})

        channels = sorted(await self.dispatcher.dispatch(event, rule, brand))
        event = event.model_copy(update={"channels_sent": [*event.channels_sent, *channels]})
        if event.id is not None:
            await self.store.update_event_channels(event.id, event.channels_sent)
        await self.store.mark_rule_fired(rule.id, self._clock())

        log.info(f"Alert rule {rule.id} ({rule.type}) fired", channels_sent=channels)
        return event


def select_engines(
    engines: Sequence[Union[MonitoringEngine, str]],
) -> list[MonitoringEngine]:
    selected: list[MonitoringEngine] = []
    for engine in engines:
        try:
            value = MonitoringEngine(engine)
        except ValueError:
            logger.warning(f"Ignoring unknown engine {engine!r}")
            continue
        if value not in selected:
            selected.append(value)
    return selected
