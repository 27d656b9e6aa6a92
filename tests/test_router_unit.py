"""Unit tests for the provider router's ordered fallback."""

import json

import httpx
import pytest

from pulse_core.domain.schemas.monitoring import MonitoringEngine
from pulse_core.domain.services.router import (
    NOT_CONFIGURED,
    AllProvidersFailedError,
    ChainStep,
    ProviderRouter,
)
from pulse_core.domain.services.simulation import (
    ENGINE_PERSONAS,
    build_simulation_prompt,
    simulate_engine_response,
)
from pulse_core.observability.metrics import PROVIDER_CALLS
from pulse_core.providers.base import GenerateOptions, ProviderRateLimitError, ProviderTimeoutError


def router_for(steps, metrics, providers=None) -> ProviderRouter:
    """Router whose both chains are ``steps``."""
    return ProviderRouter(
        simulate_chain=lambda engine: steps,
        analyze_chain=lambda: steps,
        providers=providers,
        metrics=metrics,
    )


# =============================================================================
# FALLBACK ORDER
# =============================================================================


class TestFallback:
    """Tests for sequential provider fallback."""

    @pytest.mark.asyncio
    async def test_first_success_wins(self, make_provider, metrics):
        first = make_provider("cerebras", "from cerebras")
        second = make_provider("groq", "from groq")
        router = router_for(
            [
                ChainStep("Cerebras", first, provider_id="cerebras:llama-3.3-70b"),
                ChainStep("Groq", second, provider_id="groq:llama-3.3-70b"),
            ],
            metrics,
        )

        result = await router.analyze("analyze this")

        assert result.text == "from cerebras"
        assert result.provider_id == "cerebras:llama-3.3-70b"
        assert second.calls == []

    @pytest.mark.asyncio
    async def test_falls_through_to_third_provider(self, make_provider, metrics):
        """Two configured-but-failing providers, the third succeeds."""
        first = make_provider("openrouter", ProviderRateLimitError("OpenRouter rate limit reached (429)."))
        second = make_provider("groq", ProviderTimeoutError("Groq timed out after 30s"))
        third = make_provider("gemini", "simulated answer")
        router = router_for(
            [
                ChainStep("OpenRouter", first, provider_id="openrouter:chatgpt"),
                ChainStep("Groq", second, provider_id="groq:llama-3.3-70b"),
                ChainStep("Gemini", third, provider_id="gemini:flash-1.5"),
            ],
            metrics,
        )

        result = await router.simulate("prompt", MonitoringEngine.CHATGPT)

        assert result.text == "simulated answer"
        assert result.provider_id == "gemini:flash-1.5"
        assert len(first.calls) == len(second.calls) == len(third.calls) == 1

    @pytest.mark.asyncio
    async def test_unconfigured_provider_is_skipped(self, make_provider, metrics):
        skipped = make_provider("cerebras", "never", configured=False)
        backup = make_provider("groq", "backup answer")
        router = router_for(
            [ChainStep("Cerebras", skipped), ChainStep("Groq", backup, provider_id="groq:x")],
            metrics,
        )

        result = await router.analyze("p")

        assert result.text == "backup answer"
        assert skipped.calls == []
        assert metrics.get(
            PROVIDER_CALLS, {"provider": "cerebras", "operation": "analyze", "outcome": "skipped"}
        ) == 1

    @pytest.mark.asyncio
    async def test_step_options_are_passed(self, make_provider, metrics):
        provider = make_provider("groq", "ok")
        options = GenerateOptions(temperature=0.1, max_tokens=1024)
        router = router_for([ChainStep("Groq", provider, options=options)], metrics)

        await router.analyze("p")

        assert provider.calls == [("p", options)]


# =============================================================================
# AGGREGATE ERROR
# =============================================================================


class TestAllProvidersFailed:
    """Tests for the aggregate failure."""

    @pytest.mark.asyncio
    async def test_lists_every_provider_in_order(self, make_provider, metrics):
        router = router_for(
            [
                ChainStep("OpenRouter", make_provider("openrouter", configured=False)),
                ChainStep("Groq", make_provider("groq", ProviderRateLimitError("Groq rate limit reached (429)."))),
                ChainStep("Gemini", make_provider("gemini", RuntimeError("Gemini API error 503"))),
            ],
            metrics,
        )

        with pytest.raises(AllProvidersFailedError) as exc_info:
            await router.simulate("p", MonitoringEngine.PERPLEXITY)

        err = exc_info.value
        lines = str(err).splitlines()
        assert "perplexity" in lines[0]
        assert lines[1:] == [
            f"  1. OpenRouter: {NOT_CONFIGURED}",
            "  2. Groq: Groq rate limit reached (429).",
            "  3. Gemini: Gemini API error 503",
        ]
        assert [a.label for a in err.attempts] == ["OpenRouter", "Groq", "Gemini"]

    @pytest.mark.asyncio
    async def test_all_unconfigured(self, make_provider, metrics):
        router = router_for(
            [ChainStep(label, make_provider(label.lower(), configured=False)) for label in ("A", "B", "C")],
            metrics,
        )

        with pytest.raises(AllProvidersFailedError) as exc_info:
            await router.analyze("p")

        assert len(exc_info.value.attempts) == 3
        assert all(a.reason == NOT_CONFIGURED for a in exc_info.value.attempts)

    @pytest.mark.asyncio
    async def test_failures_are_counted(self, make_provider, metrics, failing_provider):
        router = router_for([ChainStep("Broken", failing_provider)], metrics)

        with pytest.raises(AllProvidersFailedError):
            await router.analyze("p")

        assert metrics.get(
            PROVIDER_CALLS, {"provider": "broken", "operation": "analyze", "outcome": "error"}
        ) == 1
        assert metrics.get_histogram_stats("provider_latency_ms", {"provider": "broken"})["count"] == 1


# =============================================================================
# DEFAULT CHAINS
# =============================================================================


class TestDefaultChains:
    """Tests for the chains built from settings, over a mock transport."""

    @pytest.mark.asyncio
    async def test_simulate_uses_engine_model_on_openrouter(self, test_settings, metrics):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.url.host, json.loads(request.content)["model"]))
            return httpx.Response(200, json={"choices": [{"message": {"content": "answer"}}]})

        router = ProviderRouter.from_settings(test_settings, httpx.MockTransport(handler), metrics)
        result = await router.simulate("p", MonitoringEngine.PERPLEXITY)
        await router.aclose()

        assert result.provider_id == "openrouter:perplexity"
        assert seen == [("openrouter.ai", "perplexity/llama-3.1-sonar-small-128k-online")]

    @pytest.mark.asyncio
    async def test_analyze_starts_with_cerebras_then_groq(self, test_settings, metrics):
        hosts = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            if request.url.host == "api.cerebras.ai":
                return httpx.Response(503, text="unavailable")
            body = json.loads(request.content)
            assert body["temperature"] == 0.1
            assert body["max_tokens"] == 1024
            return httpx.Response(200, json={"choices": [{"message": {"content": "{}"}}]})

        router = ProviderRouter.from_settings(test_settings, httpx.MockTransport(handler), metrics)
        result = await router.analyze("analysis prompt")

        assert hosts == ["api.cerebras.ai", "api.groq.com"]
        assert result.provider_id == "groq:llama-3.3-70b"

    @pytest.mark.asyncio
    async def test_groq_simulation_uses_persona_as_system_prompt(self, test_settings, metrics):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "openrouter.ai":
                return httpx.Response(429)
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"choices": [{"message": {"content": "answer"}}]})

        router = ProviderRouter.from_settings(test_settings, httpx.MockTransport(handler), metrics)
        result = await router.simulate("p", MonitoringEngine.GEMINI)

        assert result.provider_id == "groq:llama-3.3-70b"
        assert bodies[0]["messages"][0] == {"role": "system", "content": ENGINE_PERSONAS["gemini"]}
        assert bodies[0]["temperature"] == 0.3


# =============================================================================
# PROVIDER STATUS
# =============================================================================


class TestProviderStatus:
    """Tests for get_provider_status."""

    def test_reports_every_known_provider(self, test_settings, metrics):
        test_settings.cerebras_api_key = None
        router = ProviderRouter.from_settings(test_settings, metrics=metrics)

        status = router.get_provider_status()

        assert list(status) == ["openrouter", "groq", "cerebras", "gemini"]
        assert status["cerebras"].configured is False
        assert status["groq"].configured is True
        assert status["groq"].signup_url == "https://console.groq.com"

    def test_no_network_calls(self, test_settings, metrics):
        def handler(request):
            raise AssertionError("status must not call providers")

        router = ProviderRouter.from_settings(test_settings, httpx.MockTransport(handler), metrics)

        assert all(s.configured for s in router.get_provider_status().values())

    def test_unknown_providers_report_unconfigured(self, metrics):
        router = router_for([], metrics, providers={})

        assert not any(s.configured for s in router.get_provider_status().values())


# =============================================================================
# SIMULATION STEP
# =============================================================================


class TestSimulation:
    """Tests for the engine role-play prompt."""

    def test_prompt_has_persona_question_and_length(self):
        prompt = build_simulation_prompt("best CRM?", MonitoringEngine.CHATGPT)

        assert prompt.startswith(ENGINE_PERSONAS["chatgpt"])
        assert 'User question: "best CRM?"' in prompt
        assert prompt.endswith("(150-300 words).")

    def test_unknown_engine_rejected(self):
        with pytest.raises(ValueError):
            build_simulation_prompt("q", "bing")

    @pytest.mark.asyncio
    async def test_simulate_engine_response_returns_free_text(self, make_provider, metrics):
        provider = make_provider("groq", "Not JSON at all, and that is fine.")
        router = router_for([ChainStep("Groq", provider, provider_id="groq:x")], metrics)

        result = await simulate_engine_response(router, "best CRM?", "perplexity")

        assert result.text == "Not JSON at all, and that is fine."
        assert ENGINE_PERSONAS["perplexity"] in provider.calls[0][0]
