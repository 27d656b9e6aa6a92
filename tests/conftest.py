"""Pytest configuration and fixtures for AIO Pulse Core tests.

This module provides fixtures for:
- Settings: test settings with every provider key set
- Providers: scripted fake providers for router tests
- Domain records: brand, prompt and monitoring result samples
- HTTP client: AsyncClient for FastAPI testing
"""

import json
from collections.abc import AsyncGenerator
from typing import Any, Optional

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from pulse_core.config import Settings
from pulse_core.domain.schemas.monitoring import (
    Brand,
    MonitoringEngine,
    MonitoringResult,
    Prompt,
)
from pulse_core.observability.metrics import MetricsCollector
from pulse_core.providers.base import GenerateOptions, ProviderResponseError


# -----------------------------------------------------------------------------
# Test Settings
# -----------------------------------------------------------------------------


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings with every credential set and no .env file."""
    return Settings(
        _env_file=None,
        openrouter_api_key="test-openrouter-key",
        groq_api_key="test-groq-key",
        cerebras_api_key="test-cerebras-key",
        gemini_api_key="test-gemini-key",
        resend_api_key="test-resend-key",
        resend_from_email="alerts@test.local",
        app_url="https://pulse.test",
        rate_limit_requests=2,
        rate_limit_window_ms=60_000,
        log_json=False,
    )


@pytest.fixture
def metrics() -> MetricsCollector:
    """A private metrics collector so tests do not share counters."""
    return MetricsCollector()


# -----------------------------------------------------------------------------
# Fake providers
# -----------------------------------------------------------------------------


class FakeProvider:
    """Provider double that replays scripted answers or errors.

    Each call pops the next item of ``script``; an exception instance is
    raised, anything else is returned as text. The last item repeats.
    """

    def __init__(self, name: str, script: Optional[list[Any]] = None, configured: bool = True):
        self.name = name
        self.script = list(script or ["ok"])
        self.configured = configured
        self.calls: list[tuple[str, Optional[GenerateOptions]]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def generate(self, prompt: str, options: Optional[GenerateOptions] = None) -> str:
        self.calls.append((prompt, options))
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def make_provider():
    """Factory for FakeProvider instances."""

    def _make(name: str, *script: Any, configured: bool = True) -> FakeProvider:
        return FakeProvider(name, list(script) if script else None, configured)

    return _make


@pytest.fixture
def failing_provider(make_provider):
    return make_provider("broken", ProviderResponseError("Broken API error 500: boom"))


# -----------------------------------------------------------------------------
# Domain samples
# -----------------------------------------------------------------------------


@pytest.fixture
def sample_brand() -> Brand:
    return Brand(
        id="brand-1",
        name="Acme CRM",
        aliases=["Acme", "AcmeCRM"],
        domain="acme.example",
        competitors=["Globex", "Initech"],
        color="#ff5500",
    )


@pytest.fixture
def sample_prompt(sample_brand) -> Prompt:
    return Prompt(id="prompt-1", brand_id=sample_brand.id, text="What is the best CRM for startups?")


@pytest.fixture
def analysis_payload() -> dict[str, Any]:
    """A complete, valid analysis answer."""
    return {
        "brand_mentioned": True,
        "mention_position": 2,
        "mention_count": 3,
        "mention_type": "direct",
        "visibility_score": 72,
        "sentiment": "positive",
        "sentiment_score": 0.6,
        "sentiment_reasoning": "Praised for ease of use",
        "cited_urls": ["https://acme.example/pricing"],
        "competitor_mentions": [
            {"name": "Globex", "position": 1, "count": 2},
        ],
        "has_hallucination": False,
        "hallucination_flags": [],
    }


@pytest.fixture
def analysis_json(analysis_payload) -> str:
    return json.dumps(analysis_payload)


@pytest.fixture
def make_result(sample_brand, sample_prompt):
    """Factory for MonitoringResult records with overridable fields."""

    def _make(**overrides: Any) -> MonitoringResult:
        data: dict[str, Any] = {
            "id": "result-1",
            "prompt_id": sample_prompt.id,
            "brand_id": sample_brand.id,
            "engine": MonitoringEngine.CHATGPT,
            "prompt_text": sample_prompt.text,
            "response_text": "Acme CRM and Globex are popular choices.",
            "brand_mentioned": True,
            "mention_position": 2,
            "mention_count": 1,
            "visibility_score": 60.0,
            "sentiment_score": 0.5,
        }
        data.update(overrides)
        return MonitoringResult(**data)

    return _make


# -----------------------------------------------------------------------------
# HTTP client
# -----------------------------------------------------------------------------


@pytest.fixture
def test_app(test_settings) -> FastAPI:
    """The FastAPI app with test collaborators placed on ``app.state``.

    ASGITransport does not run the lifespan, so state is set here. Tests
    replace ``app.state.monitoring`` or ``app.state.provider_router`` as
    needed.
    """
    from pulse_core.domain.services.alert_dispatch import AlertDispatcher
    from pulse_core.domain.services.monitoring import MonitoringService
    from pulse_core.domain.services.router import ProviderRouter
    from pulse_core.infrastructure.rate_limiter import FixedWindowRateLimiter
    from pulse_core.main import app

    provider_router = ProviderRouter.from_settings(test_settings, metrics=MetricsCollector())
    app.state.settings = test_settings
    app.state.provider_router = provider_router
    app.state.monitoring = MonitoringService(provider_router, test_settings)
    app.state.alert_dispatcher = AlertDispatcher(test_settings)
    app.state.rate_limiter = FixedWindowRateLimiter()

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac
