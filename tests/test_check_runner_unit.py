"""Unit tests for running a prompt across engines with alerting."""

import logging
from datetime import datetime, timezone
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from pulse_core.domain.schemas.alerts import AlertCondition, AlertEvent, AlertRule
from pulse_core.domain.schemas.monitoring import MonitoringEngine, MonitoringResult
from pulse_core.domain.services.check_runner import (
    ERROR_ALERTS_FAILED,
    ERROR_INVALID_OUTPUT,
    ERROR_PROVIDERS_FAILED,
    ERROR_UNEXPECTED,
    CheckRunner,
    rule_applies_to_engine,
    select_engines,
)
from pulse_core.domain.services.router import AllProvidersFailedError, ProviderAttempt
from pulse_core.domain.services.validation import AnalysisValidationError
from pulse_core.observability.metrics import ALERTS_FIRED

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class InMemoryStore:
    """Dict-backed store implementing the runner's persistence calls."""

    def __init__(self, rules: Optional[list[AlertRule]] = None):
        self.results: list[MonitoringResult] = []
        self.previous: dict[tuple[str, MonitoringEngine], MonitoringResult] = {}
        self.rules = list(rules or [])
        self.events: dict[str, AlertEvent] = {}
        self.fired: list[tuple[str, datetime]] = []
        self.health_scores = []

    async def get_previous_result(self, prompt_id, engine):
        return self.previous.get((prompt_id, engine))

    async def save_result(self, result):
        saved = result.model_copy(update={"id": f"result-{len(self.results) + 1}", "created_at": FIXED_NOW})
        self.results.append(saved)
        return saved

    async def list_active_rules(self, brand_id):
        return [r for r in self.rules if r.brand_id == brand_id]

    async def save_event(self, event):
        saved = event.model_copy(update={"id": f"event-{len(self.events) + 1}"})
        self.events[saved.id] = saved
        return saved

    async def update_event_channels(self, event_id, channels):
        self.events[event_id] = self.events[event_id].model_copy(update={"channels_sent": list(channels)})

    async def mark_rule_fired(self, rule_id, fired_at):
        self.fired.append((rule_id, fired_at))

    async def save_health_score(self, score):
        self.health_scores.append(score)


def mention_rule(rule_id: str = "rule-1", engine: Optional[str] = None, **fields) -> AlertRule:
    return AlertRule(
        id=rule_id,
        brand_id="brand-1",
        user_id="user-1",
        type="mention_new",
        condition=AlertCondition(engine=engine),
        channels=["email"],
        email="owner@acme.example",
        **fields,
    )


@pytest.fixture
def monitoring(make_result):
    """MonitoringService double returning a mentioned result per engine."""
    service = MagicMock()

    async def run_check(prompt, brand, engine, user_id=None):
        return make_result(id=None, engine=engine, user_id=user_id)

    service.run_check = AsyncMock(side_effect=run_check)
    return service


@pytest.fixture
def dispatcher():
    mock = MagicMock()
    mock.dispatch = AsyncMock(return_value={"email"})
    return mock


def make_runner(monitoring, store, dispatcher, metrics) -> CheckRunner:
    return CheckRunner(monitoring, store, dispatcher, metrics=metrics, clock=lambda: FIXED_NOW)


# =============================================================================
# ENGINE SELECTION
# =============================================================================


class TestEngineSelection:
    """Tests for engine filtering helpers."""

    def test_unknown_and_duplicate_engines(self):
        assert select_engines(["chatgpt", "bing", MonitoringEngine.CHATGPT, "gemini"]) == [
            MonitoringEngine.CHATGPT,
            MonitoringEngine.GEMINI,
        ]

    @pytest.mark.parametrize(
        "scope,engine,applies",
        [
            (None, MonitoringEngine.GEMINI, True),
            ("all", MonitoringEngine.GEMINI, True),
            ("gemini", MonitoringEngine.GEMINI, True),
            ("chatgpt", MonitoringEngine.GEMINI, False),
        ],
    )
    def test_rule_scope(self, scope, engine, applies):
        assert rule_applies_to_engine(mention_rule(engine=scope), engine) is applies


# =============================================================================
# RUN PROMPT
# =============================================================================


class TestRunPrompt:
    """Tests for CheckRunner.run_prompt."""

    @pytest.mark.asyncio
    async def test_runs_every_prompt_engine(
        self, monitoring, dispatcher, metrics, sample_prompt, sample_brand
    ):
        store = InMemoryStore()
        runner = make_runner(monitoring, store, dispatcher, metrics)

        summary = await runner.run_prompt(sample_prompt, sample_brand, user_id="user-1")

        assert [o.engine for o in summary.outcomes] == list(MonitoringEngine)
        assert all(o.ok for o in summary.outcomes)
        assert len(store.results) == 3
        assert all(r.id is not None for r in summary.results)
        assert all(r.user_id == "user-1" for r in summary.results)

    @pytest.mark.asyncio
    async def test_health_score_saved(self, monitoring, dispatcher, metrics, sample_prompt, sample_brand):
        store = InMemoryStore()
        runner = make_runner(monitoring, store, dispatcher, metrics)

        summary = await runner.run_prompt(sample_prompt, sample_brand, engines=["chatgpt"])

        assert store.health_scores == [summary.health_score]
        assert summary.health_score.date == FIXED_NOW.date()
        assert summary.health_score.mention_count == 1

    @pytest.mark.asyncio
    async def test_no_results_no_health_score(
        self, monitoring, dispatcher, metrics, sample_prompt, sample_brand
    ):
        store = InMemoryStore()
        runner = make_runner(monitoring, store, dispatcher, metrics)

        summary = await runner.run_prompt(sample_prompt, sample_brand, engines=["bing"])

        assert summary.outcomes == []
        assert summary.health_score is None
        assert store.health_scores == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,kind",
        [
            (AllProvidersFailedError("analyze", [ProviderAttempt("Groq", "not configured")]), ERROR_PROVIDERS_FAILED),
            (AnalysisValidationError("invalid JSON", "groq", "nope"), ERROR_INVALID_OUTPUT),
            (KeyError("boom"), ERROR_UNEXPECTED),
        ],
    )
    async def test_failing_engine_is_isolated(
        self, monitoring, dispatcher, metrics, make_result, sample_prompt, sample_brand, error, kind
    ):
        async def run_check(prompt, brand, engine, user_id=None):
            if engine == MonitoringEngine.GEMINI:
                raise error
            return make_result(id=None, engine=engine)

        monitoring.run_check = AsyncMock(side_effect=run_check)
        store = InMemoryStore()
        runner = make_runner(monitoring, store, dispatcher, metrics)

        summary = await runner.run_prompt(sample_prompt, sample_brand)

        failed = [o for o in summary.outcomes if not o.ok]
        assert [o.engine for o in failed] == [MonitoringEngine.GEMINI]
        assert failed[0].error_kind == kind
        assert failed[0].result is None
        assert summary.failed_engines == [MonitoringEngine.GEMINI]
        assert len(store.results) == 2
        assert summary.health_score is not None


# =============================================================================
# ALERTS
# =============================================================================


class TestAlerts:
    """Tests for rule evaluation and event handling inside a run."""

    @pytest.mark.asyncio
    async def test_fired_rule_is_recorded_and_dispatched(
        self, monitoring, dispatcher, metrics, sample_prompt, sample_brand
    ):
        store = InMemoryStore(rules=[mention_rule()])
        runner = make_runner(monitoring, store, dispatcher, metrics)

        summary = await runner.run_prompt(sample_prompt, sample_brand, engines=["chatgpt"])

        assert len(summary.events) == 1
        event = summary.events[0]
        assert event.id == "event-1"
        assert event.channels_sent == ["email"]
        assert event.data["result_id"] == "result-1"
        assert store.events["event-1"].channels_sent == ["email"]
        assert store.fired == [("rule-1", FIXED_NOW)]
        assert metrics.get(ALERTS_FIRED, {"type": "mention_new"}) == 1
        dispatcher.dispatch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_previous_result_is_compared(
        self, monitoring, dispatcher, metrics, make_result, sample_prompt, sample_brand
    ):
        store = InMemoryStore(rules=[mention_rule()])
        store.previous[(sample_prompt.id, MonitoringEngine.CHATGPT)] = make_result(id="old")
        runner = make_runner(monitoring, store, dispatcher, metrics)

        summary = await runner.run_prompt(sample_prompt, sample_brand, engines=["chatgpt"])

        assert summary.events == []
        assert store.fired == []
        dispatcher.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_engine_scoped_rule_only_fires_on_its_engine(
        self, monitoring, dispatcher, metrics, sample_prompt, sample_brand
    ):
        store = InMemoryStore(rules=[mention_rule(engine="perplexity")])
        runner = make_runner(monitoring, store, dispatcher, metrics)

        summary = await runner.run_prompt(sample_prompt, sample_brand)

        assert [e.data["engine"] for e in summary.events] == ["perplexity"]

    @pytest.mark.asyncio
    async def test_inactive_rule_is_skipped(self, monitoring, dispatcher, metrics, sample_prompt, sample_brand):
        store = InMemoryStore(rules=[mention_rule(is_active=False)])
        runner = make_runner(monitoring, store, dispatcher, metrics)

        summary = await runner.run_prompt(sample_prompt, sample_brand, engines=["chatgpt"])

        assert summary.events == []

    @pytest.mark.asyncio
    async def test_failed_delivery_keeps_event(self, monitoring, metrics, sample_prompt, sample_brand):
        dispatcher = MagicMock()
        dispatcher.dispatch = AsyncMock(return_value=set())
        store = InMemoryStore(rules=[mention_rule()])
        runner = make_runner(monitoring, store, dispatcher, metrics)

        summary = await runner.run_prompt(sample_prompt, sample_brand, engines=["chatgpt"])

        assert summary.events[0].channels_sent == []
        assert store.fired == [("rule-1", FIXED_NOW)]

    @pytest.mark.asyncio
    async def test_alert_storage_failure_keeps_result(
        self, monitoring, dispatcher, metrics, sample_prompt, sample_brand
    ):
        store = InMemoryStore(rules=[mention_rule()])
        store.save_event = AsyncMock(side_effect=RuntimeError("database is locked"))
        runner = make_runner(monitoring, store, dispatcher, metrics)

        summary = await runner.run_prompt(sample_prompt, sample_brand, engines=["chatgpt"])

        outcome = summary.outcomes[0]
        assert outcome.result is not None
        assert outcome.error_kind == ERROR_ALERTS_FAILED
        assert "database is locked" in outcome.error

    @pytest.mark.asyncio
    async def test_failing_rule_does_not_stop_others(
        self, monitoring, dispatcher, metrics, sample_prompt, sample_brand
    ):
        store = InMemoryStore(rules=[mention_rule("rule-1"), mention_rule("rule-2"), mention_rule("rule-3")])
        save_event = store.save_event
        calls = []

        async def flaky_save_event(event):
            calls.append(event.alert_rule_id)
            if len(calls) == 2:
                raise RuntimeError("disk full")
            return await save_event(event)

        store.save_event = flaky_save_event
        runner = make_runner(monitoring, store, dispatcher, metrics)

        summary = await runner.run_prompt(sample_prompt, sample_brand, engines=["chatgpt"])

        outcome = summary.outcomes[0]
        assert calls == ["rule-1", "rule-2", "rule-3"]
        assert [e.alert_rule_id for e in summary.events] == ["rule-1", "rule-3"]
        assert store.fired == [("rule-1", FIXED_NOW), ("rule-3", FIXED_NOW)]
        assert dispatcher.dispatch.await_count == 2
        assert outcome.result is not None
        assert outcome.error_kind == ERROR_ALERTS_FAILED
        assert outcome.error == "rule rule-2: disk full"

    @pytest.mark.asyncio
    async def test_health_score_storage_failure_keeps_summary(
        self, monitoring, dispatcher, metrics, sample_prompt, sample_brand
    ):
        store = InMemoryStore(rules=[mention_rule()])
        store.save_health_score = AsyncMock(side_effect=RuntimeError("db down"))
        runner = make_runner(monitoring, store, dispatcher, metrics)

        summary = await runner.run_prompt(sample_prompt, sample_brand)

        assert len(summary.results) == 3
        assert len(summary.events) == 3
        assert summary.health_score is not None
        assert summary.health_score.mention_count == 3
        store.save_health_score.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_alert_errors_logged_with_run_fields(
        self, monitoring, dispatcher, metrics, sample_prompt, sample_brand, caplog
    ):
        store = InMemoryStore(rules=[mention_rule()])
        store.save_event = AsyncMock(side_effect=RuntimeError("database is locked"))
        runner = make_runner(monitoring, store, dispatcher, metrics)

        with caplog.at_level(logging.ERROR, logger="pulse_core.domain.services.check_runner"):
            await runner.run_prompt(sample_prompt, sample_brand, engines=["gemini"])

        record = caplog.records[-1]
        assert record.brand_id == "brand-1"
        assert record.prompt_id == "prompt-1"
        assert record.engine == "gemini"
        assert record.rule_id == "rule-1"
