"""Known text-generation providers, their models and free-tier facts.

Every provider here speaks the OpenAI chat-completion contract; the
builders turn :class:`~pulse_core.config.Settings` into configured
:class:`ChatCompletionClient` instances.
"""

from typing import Optional

import httpx

from pulse_core.config import Settings
from pulse_core.providers.chat_completion import ChatCompletionClient, ChatCompletionConfig


OPENROUTER = "openrouter"
GROQ = "groq"
CEREBRAS = "cerebras"
GEMINI = "gemini"

KNOWN_PROVIDERS = (OPENROUTER, GROQ, CEREBRAS, GEMINI)


class GroqModels:
    LLAMA_70B = "llama-3.3-70b-versatile"
    LLAMA_8B = "llama-3.1-8b-instant"


class CerebrasModels:
    LLAMA_70B = "llama-3.3-70b"
    LLAMA_8B = "llama3.1-8b"


class GeminiModels:
    FLASH = "gemini-1.5-flash"


# Real model behind each simulated engine
ENGINE_TO_MODEL: dict[str, str] = {
    "chatgpt": "openai/gpt-4o-mini",
    "gemini": "google/gemini-flash-1.5",
    "perplexity": "perplexity/llama-3.1-sonar-small-128k-online",
}

# Free models that need no OpenRouter credits
ENGINE_TO_FALLBACK_MODEL: dict[str, str] = {
    "chatgpt": "meta-llama/llama-3.2-3b-instruct:free",
    "gemini": "google/gemma-2-9b-it:free",
    "perplexity": "mistralai/mistral-7b-instruct:free",
}

PROVIDER_INFO: dict[str, dict[str, str]] = {
    OPENROUTER: {
        "free_limit": "50 requests/day",
        "best_for": "Simulation with the real models (ChatGPT, Gemini, Perplexity)",
        "signup_url": "https://openrouter.ai",
    },
    GROQ: {
        "free_limit": "500,000 tokens/day",
        "best_for": "Simulation fallback, fast and reliable",
        "signup_url": "https://console.groq.com",
    },
    CEREBRAS: {
        "free_limit": "1,000,000 tokens/day",
        "best_for": "Brand analysis (very fast JSON output)",
        "signup_url": "https://cloud.cerebras.ai",
    },
    GEMINI: {
        "free_limit": "10-20 requests/day (Google AI Studio)",
        "best_for": "Last-resort fallback",
        "signup_url": "https://aistudio.google.com",
    },
}


def _signup_hint(name: str) -> str:
    return f"Get a free key at {PROVIDER_INFO[name]['signup_url']}"


def build_openrouter_client(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ChatCompletionClient:
    config = ChatCompletionConfig(
        name=OPENROUTER,
        display_name="OpenRouter",
        base_url="https://openrouter.ai/api/v1",
        api_key=settings.openrouter_api_key,
        default_model=ENGINE_TO_MODEL["chatgpt"],
        # Shared by the primary and :free fallback model of one call
        timeout=settings.openrouter_timeout,
        temperature=0.3,
        extra_headers={"HTTP-Referer": settings.app_url, "X-Title": "AIO Pulse"},
        quota_hint="Daily limit of 50 requests exhausted.",
        signup_hint=_signup_hint(OPENROUTER),
    )
    return ChatCompletionClient(config, transport=transport)


def build_groq_client(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ChatCompletionClient:
    config = ChatCompletionConfig(
        name=GROQ,
        display_name="Groq",
        base_url="https://api.groq.com/openai/v1",
        api_key=settings.groq_api_key,
        default_model=GroqModels.LLAMA_70B,
        timeout=settings.groq_timeout,
        quota_hint="Daily limit of 500,000 tokens exhausted; resets at midnight UTC.",
        signup_hint=_signup_hint(GROQ),
    )
    return ChatCompletionClient(config, transport=transport)


def build_cerebras_client(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ChatCompletionClient:
    config = ChatCompletionConfig(
        name=CEREBRAS,
        display_name="Cerebras",
        base_url="https://api.cerebras.ai/v1",
        api_key=settings.cerebras_api_key,
        default_model=CerebrasModels.LLAMA_70B,
        timeout=settings.cerebras_timeout,
        quota_hint="Daily limit of 1,000,000 tokens exhausted; resets at midnight UTC.",
        signup_hint=_signup_hint(CEREBRAS),
    )
    return ChatCompletionClient(config, transport=transport)


def build_gemini_client(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ChatCompletionClient:
    config = ChatCompletionConfig(
        name=GEMINI,
        display_name="Gemini",
        base_url="https://generativelanguage.googleapis.com/v1beta/openai",
        api_key=settings.gemini_api_key,
        default_model=GeminiModels.FLASH,
        timeout=settings.gemini_timeout,
        signup_hint=_signup_hint(GEMINI),
    )
    return ChatCompletionClient(config, transport=transport)


def build_provider_clients(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[str, ChatCompletionClient]:
    """Build one client per known provider, keyed by provider name."""
    return {
        OPENROUTER: build_openrouter_client(settings, transport),
        GROQ: build_groq_client(settings, transport),
        CEREBRAS: build_cerebras_client(settings, transport),
        GEMINI: build_gemini_client(settings, transport),
    }
