"""Engine role-play: ask a provider to answer the way an AI search engine would."""

import logging
from typing import TYPE_CHECKING, Union

from pulse_core.domain.schemas.monitoring import MonitoringEngine
from pulse_core.providers.base import ProviderCallResult

if TYPE_CHECKING:
    from pulse_core.domain.services.router import ProviderRouter

logger = logging.getLogger(__name__)

ENGINE_PERSONAS: dict[str, str] = {
    MonitoringEngine.CHATGPT.value: (
        "You are ChatGPT, a helpful AI assistant by OpenAI. Answer conversationally "
        "and helpfully. Include relevant brands, products, and services where appropriate."
    ),
    MonitoringEngine.GEMINI.value: (
        "You are Google Gemini, a helpful AI assistant by Google. Answer factually with "
        "well-structured information. Include relevant brands and services where appropriate."
    ),
    MonitoringEngine.PERPLEXITY.value: (
        "You are Perplexity AI, a search-focused AI assistant. Answer with verified facts, "
        "include brand mentions naturally, and reference sources where possible."
    ),
}

LENGTH_TARGET = "Provide a realistic, helpful response (150-300 words)."


def build_simulation_prompt(prompt_text: str, engine: Union[MonitoringEngine, str]) -> str:
    """Persona, quoted user question and length target, in that order.

    Raises:
        ValueError: If ``engine`` is not a known engine.
    """
    engine = MonitoringEngine(engine)
    persona = ENGINE_PERSONAS[engine.value]
    return f'{persona}\n\nUser question: "{prompt_text}"\n\n{LENGTH_TARGET}'


async def simulate_engine_response(
    router: "ProviderRouter",
    prompt_text: str,
    engine: Union[MonitoringEngine, str],
) -> ProviderCallResult:
    """Run the simulate chain for one engine.

    The answer is free text and is returned as-is.

    Raises:
        AllProvidersFailedError: If no simulate provider succeeded.
    """
    engine = MonitoringEngine(engine)
    full_prompt = build_simulation_prompt(prompt_text, engine)
    call = await router.simulate(full_prompt, engine)
    logger.debug(f"Simulated {engine.value} answer ({len(call.text)} chars) via {call.provider_id}")
    return call
