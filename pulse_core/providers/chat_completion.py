"""OpenAI-compatible chat-completion client.

OpenRouter, Groq, Cerebras and Gemini all expose the same
``POST {base_url}/chat/completions`` contract, so one client class
configured per provider covers them.

Usage:
    config = ChatCompletionConfig(
        name="groq",
        display_name="Groq",
        base_url="https://api.groq.com/openai/v1",
        api_key=settings.groq_api_key,
        default_model="llama-3.3-70b-versatile",
        timeout=30.0,
    )
    client = ChatCompletionClient(config)

    text = await client.generate("Hello!", GenerateOptions(temperature=0.1))
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx

from pulse_core.providers.base import (
    ChatMessage,
    GenerateOptions,
    ProviderConnectionError,
    ProviderCreditsExhaustedError,
    ProviderError,
    ProviderNotConfiguredError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderTimeoutError,
)

logger = logging.getLogger(__name__)

# Bound on how much of an error body ends up in exception messages
ERROR_BODY_LIMIT = 300


@dataclass
class ChatCompletionConfig:
    """Configuration for one chat-completion provider.

    Attributes:
        name: Machine name used in provenance ids and metrics.
        display_name: Human name used in error messages.
        base_url: API root; ``/chat/completions`` is appended.
        api_key: Bearer token; ``None`` or blank means not configured.
        default_model: Model used when the call does not pick one.
        timeout: Request timeout in seconds.
        temperature: Default sampling temperature.
        max_tokens: Default completion length.
        extra_headers: Additional headers sent with every request.
        quota_hint: Appended to rate-limit errors (e.g. the daily quota).
        signup_hint: Appended to not-configured errors.
    """

    name: str
    display_name: str
    base_url: str
    api_key: Optional[str] = None
    default_model: str = "default"
    timeout: float = 30.0
    temperature: float = 0.2
    max_tokens: int = 2048
    extra_headers: dict[str, str] = field(default_factory=dict)
    quota_hint: str = ""
    signup_hint: str = ""


class ChatCompletionClient:
    """Async client for an OpenAI-compatible chat-completion endpoint."""

    def __init__(
        self,
        config: ChatCompletionConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the client.

        Args:
            config: Provider configuration.
            transport: Optional httpx transport (tests use ``MockTransport``).
            clock: Monotonic seconds, used for the per-call deadline.
        """
        self.config = config
        self.name = config.name
        self._transport = transport
        self._clock = clock
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def is_configured(self) -> bool:
        key = self.config.api_key
        return bool(key and key.strip())

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            headers = {"Content-Type": "application/json", **self.config.extra_headers}
            if self.config.api_key:
                headers["Authorization"] = f"Bearer {self.config.api_key}"
            self._http_client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _error_for_status(self, response: httpx.Response, model: str) -> ProviderError:
        display = self.config.display_name
        status = response.status_code

        if status == 429:
            hint = f" {self.config.quota_hint}" if self.config.quota_hint else ""
            return ProviderRateLimitError(
                f"{display} rate limit reached ({status}).{hint}",
                provider=self.name,
            )
        if status == 402:
            return ProviderCreditsExhaustedError(
                f'{display}: credits exhausted for model "{model}". '
                "Try a model with the :free suffix.",
                provider=self.name,
            )

        body = response.text[:ERROR_BODY_LIMIT]
        return ProviderResponseError(
            f"{display} API error {status}: {body}",
            provider=self.name,
        )

    async def _make_request(
        self, payload: dict[str, Any], timeout: Optional[float] = None
    ) -> dict[str, Any]:
        """POST a completion request and return the decoded JSON body.

        ``timeout`` overrides the configured timeout for this request.

        Raises:
            ProviderError: On connection, timeout, status or decoding errors.
        """
        client = await self._get_http_client()
        display = self.config.display_name

        try:
            if timeout is None:
                response = await client.post("/chat/completions", json=payload)
            else:
                response = await client.post("/chat/completions", json=payload, timeout=timeout)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(
                f"{display} timed out after {self.config.timeout:g}s",
                provider=self.name,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderConnectionError(
                f"{display} connection error: {e}",
                provider=self.name,
            ) from e

        if not response.is_success:
            raise self._error_for_status(response, payload.get("model", ""))

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderResponseError(
                f"{display} returned a non-JSON body",
                provider=self.name,
            ) from e

        if not isinstance(data, dict):
            raise ProviderResponseError(
                f"{display} returned an unexpected body",
                provider=self.name,
            )
        return data

    def _extract_content(self, data: dict[str, Any]) -> str:
        display = self.config.display_name

        if "error" in data:
            error_info = data["error"]
            if isinstance(error_info, dict):
                error_msg = error_info.get("message", str(error_info))
            else:
                error_msg = str(error_info)
            raise ProviderResponseError(f"{display} error: {error_msg}", provider=self.name)

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None

        if not isinstance(content, str) or not content.strip():
            raise ProviderResponseError(f"Empty response from {display} API", provider=self.name)
        return content

    async def _complete(
        self,
        messages: list[ChatMessage],
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: Optional[float] = None,
    ) -> str:
        payload = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": False,
        }
        logger.debug(
            f"{self.config.display_name} request: model={model}, "
            f"temperature={temperature}, max_tokens={max_tokens}"
        )
        data = await self._make_request(payload, timeout)
        return self._extract_content(data)

    async def generate(
        self,
        prompt: str,
        options: Optional[GenerateOptions] = None,
    ) -> str:
        """Generate a completion for a single user prompt.

        When ``options.fallback_models`` is set, each model is tried in
        order and only the last failure is raised. All attempts share one
        deadline of ``config.timeout`` seconds: a fallback gets whatever
        time the earlier attempts left, and is skipped when none is left.

        Raises:
            ProviderNotConfiguredError: If no API key is configured.
            ProviderError: If every model attempt fails.
        """
        if not self.is_configured:
            hint = f" {self.config.signup_hint}" if self.config.signup_hint else ""
            raise ProviderNotConfiguredError(
                f"{self.config.display_name} API key not configured.{hint}",
                provider=self.name,
            )

        options = options or GenerateOptions()
        messages = []
        if options.system_prompt:
            messages.append(ChatMessage(role="system", content=options.system_prompt))
        messages.append(ChatMessage(role="user", content=prompt))

        temperature = (
            options.temperature if options.temperature is not None else self.config.temperature
        )
        max_tokens = options.max_tokens if options.max_tokens is not None else self.config.max_tokens
        models = [options.model or self.config.default_model, *options.fallback_models]

        deadline = self._clock() + self.config.timeout

        for index, model in enumerate(models):
            remaining = deadline - self._clock()
            try:
                return await self._complete(messages, model, temperature, max_tokens, timeout=remaining)
            except ProviderError as e:
                if index == len(models) - 1:
                    raise
                if deadline - self._clock() <= 0:
                    logger.warning(
                        f"{self.config.display_name} model {model!r} failed with no time left "
                        f"for {models[index + 1]!r}: {e}"
                    )
                    raise
                logger.warning(
                    f"{self.config.display_name} model {model!r} failed, "
                    f"trying {models[index + 1]!r}: {e}"
                )

        # models is never empty
        raise ProviderResponseError("No model attempted", provider=self.name)
