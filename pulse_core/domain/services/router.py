"""Ordered provider fallback for the two text-generation operations.

Two chains are configured:

    simulate: OpenRouter (real model per engine) -> Groq -> Gemini
    analyze:  Cerebras -> Groq -> Gemini

Each chain is a plain list of :class:`ChainStep` values. Steps are tried
one at a time in order; unconfigured providers are skipped and every
failure is recorded, so that when the whole chain fails the caller gets
one error listing each provider and why it failed.

Usage:
    router = ProviderRouter.from_settings(get_settings())
    call = await router.simulate("best crm for startups", MonitoringEngine.CHATGPT)
    print(call.provider_id, call.text)
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional, Sequence, Union

import httpx

from pulse_core.config import Settings
from pulse_core.domain.schemas.monitoring import MonitoringEngine
from pulse_core.domain.services.simulation import ENGINE_PERSONAS
from pulse_core.observability.metrics import (
    PROVIDER_CALLS,
    PROVIDER_LATENCY_MS,
    MetricsCollector,
    get_collector,
)
from pulse_core.providers import catalog
from pulse_core.providers.base import (
    GenerateOptions,
    ProviderCallResult,
    ProviderStatus,
    TextProvider,
)

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "not configured"

SIMULATE = "simulate"
ANALYZE = "analyze"

EngineLike = Union[MonitoringEngine, str]


# =============================================================================
# CHAIN CONFIGURATION
# =============================================================================


@dataclass(frozen=True)
class ChainStep:
    """One provider attempt in a fallback chain.

    Attributes:
        label: Name used in aggregate error messages ("Groq").
        provider: The provider to call.
        options: Generation options for this step.
        provider_id: Provenance id returned on success ("groq:llama-3.3-70b").
    """

    label: str
    provider: TextProvider
    options: GenerateOptions = field(default_factory=GenerateOptions)
    provider_id: str = ""


@dataclass(frozen=True)
class ProviderAttempt:
    """Outcome of one failed or skipped chain step."""

    label: str
    reason: str

    def __str__(self) -> str:
        return f"{self.label}: {self.reason}"


class AllProvidersFailedError(Exception):
    """Every provider in a chain failed or was not configured.

    The message lists one numbered line per provider, in the order they
    were tried.
    """

    def __init__(self, operation: str, attempts: Sequence[ProviderAttempt]):
        self.operation = operation
        self.attempts = list(attempts)
        lines = [f"  {i}. {attempt}" for i, attempt in enumerate(self.attempts, start=1)]
        super().__init__(f"All providers failed for {operation}:\n" + "\n".join(lines))


def _engine_value(engine: EngineLike) -> str:
    return engine.value if isinstance(engine, MonitoringEngine) else str(engine)


# =============================================================================
# ROUTER
# =============================================================================


class ProviderRouter:
    """Runs the simulate and analyze fallback chains.

    Chains are passed in as factories so the simulate chain can depend on
    the engine (OpenRouter picks a different model per engine and Groq
    uses the engine persona as its system prompt).
    """

    def __init__(
        self,
        simulate_chain: Callable[[str], Sequence[ChainStep]],
        analyze_chain: Callable[[], Sequence[ChainStep]],
        providers: Optional[Mapping[str, TextProvider]] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """Initialize the router.

        Args:
            simulate_chain: Returns the simulate steps for an engine value.
            analyze_chain: Returns the analyze steps.
            providers: Every known provider by name, used for status
                reporting and closing clients.
            metrics: Collector for call counters and latencies.
        """
        self._simulate_chain = simulate_chain
        self._analyze_chain = analyze_chain
        self.providers: dict[str, TextProvider] = dict(providers or {})
        self.metrics = metrics or get_collector()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> "ProviderRouter":
        """Build the default chains from configured provider clients."""
        providers = catalog.build_provider_clients(settings, transport)
        openrouter = providers[catalog.OPENROUTER]
        groq = providers[catalog.GROQ]
        cerebras = providers[catalog.CEREBRAS]
        gemini = providers[catalog.GEMINI]

        def simulate_chain(engine: str) -> list[ChainStep]:
            fallback = catalog.ENGINE_TO_FALLBACK_MODEL.get(engine)
            return [
                ChainStep(
                    label="OpenRouter",
                    provider=openrouter,
                    options=GenerateOptions(
                        model=catalog.ENGINE_TO_MODEL.get(engine),
                        fallback_models=(fallback,) if fallback else (),
                    ),
                    provider_id=f"openrouter:{engine}",
                ),
                ChainStep(
                    label="Groq",
                    provider=groq,
                    options=GenerateOptions(
                        model=catalog.GroqModels.LLAMA_70B,
                        temperature=0.3,
                        system_prompt=ENGINE_PERSONAS.get(engine),
                    ),
                    provider_id="groq:llama-3.3-70b",
                ),
                ChainStep(label="Gemini", provider=gemini, provider_id="gemini:flash-1.5"),
            ]

        def analyze_chain() -> list[ChainStep]:
            return [
                ChainStep(
                    label="Cerebras",
                    provider=cerebras,
                    options=GenerateOptions(
                        model=catalog.CerebrasModels.LLAMA_70B,
                        temperature=0.1,
                        max_tokens=1024,
                    ),
                    provider_id="cerebras:llama-3.3-70b",
                ),
                ChainStep(
                    label="Groq",
                    provider=groq,
                    options=GenerateOptions(
                        model=catalog.GroqModels.LLAMA_70B,
                        temperature=0.1,
                        max_tokens=1024,
                    ),
                    provider_id="groq:llama-3.3-70b",
                ),
                ChainStep(label="Gemini", provider=gemini, provider_id="gemini:flash-1.5"),
            ]

        return cls(
            simulate_chain=simulate_chain,
            analyze_chain=analyze_chain,
            providers=providers,
            metrics=metrics,
        )

    async def simulate(self, prompt_text: str, engine: EngineLike) -> ProviderCallResult:
        """Generate a simulated engine answer.

        Raises:
            AllProvidersFailedError: If no provider in the chain succeeded.
        """
        engine_value = _engine_value(engine)
        steps = self._simulate_chain(engine_value)
        return await self._run_chain(f'{SIMULATE} "{engine_value}"', SIMULATE, steps, prompt_text)

    async def analyze(self, prompt: str) -> ProviderCallResult:
        """Run an analysis prompt that expects JSON back.

        Raises:
            AllProvidersFailedError: If no provider in the chain succeeded.
        """
        return await self._run_chain(ANALYZE, ANALYZE, self._analyze_chain(), prompt)

    async def _run_chain(
        self,
        description: str,
        operation: str,
        steps: Sequence[ChainStep],
        prompt: str,
    ) -> ProviderCallResult:
        attempts: list[ProviderAttempt] = []

        for step in steps:
            provider_name = getattr(step.provider, "name", step.label.lower())
            labels = {"provider": provider_name, "operation": operation}

            if not step.provider.is_configured:
                attempts.append(ProviderAttempt(step.label, NOT_CONFIGURED))
                self.metrics.increment(PROVIDER_CALLS, labels={**labels, "outcome": "skipped"})
                logger.debug(f"{step.label} not configured, skipping for {description}")
                continue

            started = time.monotonic()
            try:
                text = await step.provider.generate(prompt, step.options)
            except Exception as e:
                attempts.append(ProviderAttempt(step.label, str(e) or type(e).__name__))
                self.metrics.increment(PROVIDER_CALLS, labels={**labels, "outcome": "error"})
                logger.warning(f"{step.label} failed for {description}: {e}")
                continue
            finally:
                self.metrics.record_histogram(
                    PROVIDER_LATENCY_MS,
                    (time.monotonic() - started) * 1000,
                    labels={"provider": provider_name},
                )

            self.metrics.increment(PROVIDER_CALLS, labels={**labels, "outcome": "success"})
            provider_id = step.provider_id or provider_name
            logger.info(f"{description} served by {provider_id}")
            return ProviderCallResult(text=text, provider_id=provider_id)

        logger.error(f"All {len(attempts)} providers failed for {description}")
        raise AllProvidersFailedError(description, attempts)

    def get_provider_status(self) -> dict[str, ProviderStatus]:
        """Configuration state of every known provider. No network calls."""
        status = {}
        for name in catalog.KNOWN_PROVIDERS:
            provider = self.providers.get(name)
            info = catalog.PROVIDER_INFO.get(name, {})
            status[name] = ProviderStatus(
                name=name,
                configured=bool(provider is not None and provider.is_configured),
                free_limit=info.get("free_limit", ""),
                best_for=info.get("best_for", ""),
                signup_url=info.get("signup_url", ""),
            )
        return status

    async def aclose(self) -> None:
        """Close the HTTP clients of providers that hold one."""
        for provider in self.providers.values():
            close = getattr(provider, "close", None)
            if close is not None:
                await close()
