"""Provider interface, DTOs and error taxonomy.

A provider is anything that can turn a prompt into text and can tell,
without network access, whether it holds a credential:

    class EchoProvider:
        name = "echo"
        is_configured = True

        async def generate(self, prompt, options=None):
            return prompt

The router only relies on this shape, so test doubles and real HTTP
clients are interchangeable.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable


# =============================================================================
# EXCEPTIONS
# =============================================================================


class ProviderError(Exception):
    """Base exception for upstream text-generation failures."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class ProviderNotConfiguredError(ProviderError):
    """No API credential is present for the provider."""


class ProviderConnectionError(ProviderError):
    """The provider could not be reached."""


class ProviderTimeoutError(ProviderError):
    """The provider did not answer within its timeout."""


class ProviderRateLimitError(ProviderError):
    """The provider answered 429."""


class ProviderCreditsExhaustedError(ProviderError):
    """The provider answered 402 (no credits left for the model)."""


class ProviderResponseError(ProviderError):
    """Non-2xx answer, malformed body or empty completion."""


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class ChatMessage:
    """A message in a chat-completion request."""

    role: str  # "system", "user", "assistant"
    content: str


@dataclass(frozen=True)
class GenerateOptions:
    """Per-call generation options.

    Attributes:
        model: Model id; the provider default is used when unset.
        fallback_models: Models tried in order, on the same provider,
            when the primary model fails.
        temperature: Sampling temperature override.
        max_tokens: Completion length override.
        system_prompt: Optional system message sent before the prompt.
    """

    model: Optional[str] = None
    fallback_models: tuple[str, ...] = ()
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    system_prompt: Optional[str] = None


@dataclass(frozen=True)
class ProviderCallResult:
    """Successful router call: the text and which provider produced it."""

    text: str
    provider_id: str


@dataclass(frozen=True)
class ProviderStatus:
    """Configuration state of one known provider."""

    name: str
    configured: bool
    free_limit: str = ""
    best_for: str = ""
    signup_url: str = ""

    def to_dict(self) -> dict:
        return {
            "configured": self.configured,
            "free_limit": self.free_limit,
            "best_for": self.best_for,
            "signup_url": self.signup_url,
        }


# =============================================================================
# PROVIDER INTERFACE
# =============================================================================


@runtime_checkable
class TextProvider(Protocol):
    """Single-method text-generation capability."""

    name: str

    @property
    def is_configured(self) -> bool: ...

    async def generate(
        self,
        prompt: str,
        options: Optional[GenerateOptions] = None,
    ) -> str: ...
