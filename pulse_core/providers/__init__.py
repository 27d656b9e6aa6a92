"""Text-generation providers for AIO Pulse.

- Base: provider protocol, DTOs and error taxonomy
- Chat completion: the OpenAI-compatible HTTP client
- Catalog: the known providers and their models
"""

from pulse_core.providers.base import (
    ChatMessage,
    GenerateOptions,
    ProviderCallResult,
    ProviderConnectionError,
    ProviderCreditsExhaustedError,
    ProviderError,
    ProviderNotConfiguredError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderStatus,
    ProviderTimeoutError,
    TextProvider,
)
from pulse_core.providers.chat_completion import ChatCompletionClient, ChatCompletionConfig

__all__ = [
    "ChatCompletionClient",
    "ChatCompletionConfig",
    "ChatMessage",
    "GenerateOptions",
    "ProviderCallResult",
    "ProviderConnectionError",
    "ProviderCreditsExhaustedError",
    "ProviderError",
    "ProviderNotConfiguredError",
    "ProviderRateLimitError",
    "ProviderResponseError",
    "ProviderStatus",
    "ProviderTimeoutError",
    "TextProvider",
]
