# core/llm_provider.py
"""LLM provider clients used by the semantic experts.

Every provider exposes one coroutine, `complete(request)`, that sends a system
and user prompt and returns the generated text plus a token count. Network
concerns (retries, backoff, quota detection, concurrency) live in
`HTTPClientService`; providers only know their own wire format.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog

import config
from core.exceptions import LLMServiceError, ProviderTransportError
from core.http_client_service import HTTPClientService

logger = structlog.get_logger(__name__)

SUPPORTED_SERVICES = ("openai", "anthropic", "ollama")


@dataclass(frozen=True)
class CompletionRequest:
    system_prompt: str
    user_prompt: str
    max_tokens: int = 0
    temperature: float = 0.0


@dataclass(frozen=True)
class CompletionResponse:
    content: str
    tokens_used: int = 0


class LLMProvider(Protocol):
    """Protocol implemented by every completion backend."""

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Generate a completion.

        Raises:
            LLMServiceError: The call failed. `ProviderTransportError` and
                `QuotaExceededError` carry the HTTP status and retryability.
        """
        ...


class _HTTPProvider:
    """Shared plumbing for providers talking JSON over HTTP."""

    service_name = ""

    def __init__(self, api_base: str, model: str, http_client: HTTPClientService | None = None):
        self.api_base = api_base.rstrip("/")
        self.model = model
        self._owns_client = http_client is None
        self._http = http_client or HTTPClientService()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def _max_tokens(self, request: CompletionRequest) -> int:
        return request.max_tokens if request.max_tokens > 0 else config.DEFAULT_MAX_TOKENS

    def _decode(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderTransportError(
                f"{self.service_name} returned a non-JSON body",
                status_code=response.status_code,
                retryable=False,
            ) from e
        if not isinstance(data, dict):
            raise ProviderTransportError(
                f"{self.service_name} returned an unexpected body",
                status_code=response.status_code,
                retryable=False,
            )
        return data

    def _malformed(self, what: str) -> ProviderTransportError:
        return ProviderTransportError(f"{self.service_name}: malformed response ({what})", retryable=False)

    def _field(self, container: Any, key: str, expected: type, what: str) -> Any:
        """Return `container[key]`, or `expected()` when absent or null."""
        if not isinstance(container, dict):
            raise self._malformed(what)
        value = container.get(key)
        if value is None:
            return expected()
        if not isinstance(value, expected):
            raise self._malformed(f"{what}.{key} is {type(value).__name__}")
        return value

    def _count(self, container: Any, key: str) -> int:
        value = container.get(key) if isinstance(container, dict) else None
        if value is None:
            return 0
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self._malformed(f"usage {key} is not a number")
        return int(value)

    def get_statistics(self) -> dict[str, Any]:
        return self._http.get_statistics()


class OpenAIProvider(_HTTPProvider):
    """OpenAI-compatible chat completions (`/chat/completions`)."""

    service_name = "openai"

    def __init__(
        self,
        api_key: str,
        *,
        api_base: str | None = None,
        model: str | None = None,
        http_client: HTTPClientService | None = None,
    ):
        super().__init__(api_base or config.OPENAI_API_BASE, model or config.OPENAI_MODEL, http_client)
        self._api_key = api_key

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
            "max_tokens": self._max_tokens(request),
            "temperature": request.temperature,
        }
        headers = {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}

        response = await self._http.post_json(f"{self.api_base}/chat/completions", payload, headers=headers)
        data = self._decode(response)

        choices = self._field(data, "choices", list, "body")
        if not choices:
            raise ProviderTransportError("openai: no choices in response", retryable=False)
        message = self._field(choices[0], "message", dict, "choices[0]")
        content = self._field(message, "content", str, "message")
        tokens = self._count(self._field(data, "usage", dict, "body"), "total_tokens")

        logger.debug("OpenAI completion received", model=self.model, tokens_used=tokens)
        return CompletionResponse(content=content, tokens_used=tokens)


class AnthropicProvider(_HTTPProvider):
    """Anthropic Messages API (`/messages`)."""

    service_name = "anthropic"

    def __init__(
        self,
        api_key: str,
        *,
        api_base: str | None = None,
        model: str | None = None,
        http_client: HTTPClientService | None = None,
    ):
        super().__init__(api_base or config.ANTHROPIC_API_BASE, model or config.ANTHROPIC_MODEL, http_client)
        self._api_key = api_key

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        payload = {
            "model": self.model,
            "max_tokens": self._max_tokens(request),
            "system": request.system_prompt,
            "messages": [{"role": "user", "content": request.user_prompt}],
            "temperature": request.temperature,
        }
        headers = {
            "x-api-key": self._api_key,
            "anthropic-version": config.ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

        response = await self._http.post_json(f"{self.api_base}/messages", payload, headers=headers)
        data = self._decode(response)

        content_blocks = self._field(data, "content", list, "body")
        if not content_blocks:
            raise ProviderTransportError("anthropic: empty content in response", retryable=False)
        text = self._field(content_blocks[0], "text", str, "content[0]")
        usage = self._field(data, "usage", dict, "body")
        tokens = self._count(usage, "input_tokens") + self._count(usage, "output_tokens")

        logger.debug("Anthropic completion received", model=self.model, tokens_used=tokens)
        return CompletionResponse(content=text, tokens_used=tokens)


class OllamaProvider(_HTTPProvider):
    """Local Ollama chat endpoint (`/api/chat`). No API key."""

    service_name = "ollama"

    def __init__(
        self,
        *,
        api_base: str | None = None,
        model: str | None = None,
        http_client: HTTPClientService | None = None,
    ):
        super().__init__(api_base or config.OLLAMA_API_BASE, model or config.OLLAMA_MODEL, http_client)

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
            "stream": False,
            "options": {"temperature": request.temperature, "num_predict": self._max_tokens(request)},
        }

        response = await self._http.post_json(f"{self.api_base}/api/chat", payload)
        data = self._decode(response)

        content = self._field(self._field(data, "message", dict, "body"), "content", str, "message")
        tokens = self._count(data, "eval_count") + self._count(data, "prompt_eval_count")

        logger.debug("Ollama completion received", model=self.model, tokens_used=tokens)
        return CompletionResponse(content=content, tokens_used=tokens)


class OfflineProvider:
    """Provider that never leaves the process.

    Always answers with an empty JSON object, so experts see "no semantic
    findings" and only the structural checks contribute. Used for dry runs.
    """

    def __init__(self) -> None:
        self.calls: list[CompletionRequest] = []

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        self.calls.append(request)
        return CompletionResponse(content="{}", tokens_used=0)

    async def aclose(self) -> None:
        return None


def create_provider(
    service: str | None = None,
    api_key: str | None = None,
    *,
    http_client: HTTPClientService | None = None,
) -> OpenAIProvider | AnthropicProvider | OllamaProvider:
    """Build the provider for `service` (defaults to `config.LLM_SERVICE`).

    When `api_key` is omitted the configured key for that service is used.

    Raises:
        LLMServiceError: The service is unknown or needs an API key that is missing.
    """
    service = (service or config.LLM_SERVICE).strip().lower()

    if service == "openai":
        key = api_key if api_key is not None else config.OPENAI_API_KEY
        if not key:
            raise LLMServiceError("API key required for openai")
        return OpenAIProvider(key, http_client=http_client)

    if service == "anthropic":
        key = api_key if api_key is not None else config.ANTHROPIC_API_KEY
        if not key:
            raise LLMServiceError("API key required for anthropic")
        return AnthropicProvider(key, http_client=http_client)

    if service == "ollama":
        return OllamaProvider(http_client=http_client)

    raise LLMServiceError(
        f"unsupported LLM service: {service}",
        details={"supported": list(SUPPORTED_SERVICES)},
    )
