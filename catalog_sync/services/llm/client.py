"""LLM Client abstraction.

Supports multiple backends:
- OpenAI-compatible chat completions (default)
- Ollama (local deployment)
- Mock (scripted responses for tests)

Used for:
- Low-confidence product classification fallback
- Translating natural-language requests into commands

Example:
    client = create_llm_client(get_llm_settings())
    response = await client.complete("Classify this product: ...")
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from catalog_sync.config.settings import LLMBackendType, LLMSettings
from catalog_sync.utils.errors import LLMError

logger = structlog.get_logger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM."""
    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)
    raw_response: Optional[Dict[str, Any]] = None

    @property
    def tokens_used(self) -> int:
        """Total tokens used in this response."""
        return self.usage.get("total_tokens", 0)


def extract_json_object(content: str) -> Optional[Dict[str, Any]]:
    """Return the first well-formed JSON object embedded in ``content``.

    Models often wrap JSON in prose or code fences, so every "{" is tried
    as a starting point until one decodes to an object.
    """
    decoder = json.JSONDecoder()
    start = content.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(content, start)
        except json.JSONDecodeError:
            start = content.find("{", start + 1)
            continue
        if isinstance(value, dict):
            return value
        start = content.find("{", start + 1)
    return None


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


class LLMClient(ABC):
    """Abstract base class for LLM clients."""

    def __init__(self, settings: Optional[LLMSettings] = None):
        self.settings = settings or LLMSettings(backend=LLMBackendType.MOCK)
        self._log = logger.bind(
            component="LLMClient",
            backend=self.settings.backend.value,
            model=self.settings.model,
        )

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        """Generate a completion for the given prompt.

        Args:
            prompt: User prompt to complete
            system_prompt: Optional system prompt for context
            temperature: Override default temperature

        Returns:
            LLMResponse with generated content

        Raises:
            LLMError: On transport failure or an unusable response
        """

    async def close(self) -> None:
        """Release network resources."""


class _HTTPLLMClient(LLMClient):
    """Shared httpx plumbing for HTTP backends."""

    base_url: str = ""

    def __init__(
        self,
        settings: LLMSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(settings)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.settings.timeout,
                headers=self._headers(),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        client = await self._get_client()
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.settings.max_retries),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                retry=retry_if_exception(_is_retryable),
                reraise=True,
            ):
                with attempt:
                    response = await client.post(path, json=payload)
                    response.raise_for_status()
                    data = response.json()
                    if not isinstance(data, dict):
                        raise LLMError(
                            "LLM response body is not a JSON object",
                            details={"type": type(data).__name__},
                        )
                    return data
        except httpx.HTTPStatusError as e:
            self._log.warning(
                "llm_request_failed",
                status=e.response.status_code,
                body=e.response.text[:200],
            )
            raise LLMError(f"LLM request failed: HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            self._log.warning("llm_request_error", error=str(e))
            raise LLMError(f"LLM request failed: {e}") from e
        raise LLMError("LLM request failed after retries")


class OpenAIClient(_HTTPLLMClient):
    """OpenAI-compatible chat completions client."""

    def __init__(
        self,
        settings: LLMSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not settings.openai_api_key:
            raise LLMError("LLM_OPENAI_API_KEY is required for the openai backend")
        self.base_url = settings.openai_base_url.rstrip("/")
        super().__init__(settings, transport)

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.settings.openai_api_key}",
        }

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        data = await self._post(
            "/chat/completions",
            {
                "model": self.settings.model,
                "messages": messages,
                "temperature": self.settings.temperature if temperature is None else temperature,
                "max_tokens": self.settings.max_tokens,
            },
        )
        try:
            content = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError("Malformed chat completion response") from e
        if not isinstance(content, str):
            raise LLMError(
                "Chat completion content is not text",
                details={"type": type(content).__name__},
            )

        return LLMResponse(
            content=content,
            model=data.get("model", self.settings.model),
            usage=data.get("usage") or {},
            raw_response=data,
        )


class OllamaClient(_HTTPLLMClient):
    """Ollama-based LLM client (http://localhost:11434 by default)."""

    def __init__(
        self,
        settings: LLMSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = settings.ollama_url.rstrip("/")
        super().__init__(settings, transport)

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        payload: Dict[str, Any] = {
            "model": self.settings.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.settings.temperature if temperature is None else temperature,
                "num_predict": self.settings.max_tokens,
            },
        }
        if system_prompt:
            payload["system"] = system_prompt

        data = await self._post("/api/generate", payload)
        content = data.get("response") or ""
        if not isinstance(content, str):
            raise LLMError(
                "Ollama response is not text",
                details={"type": type(content).__name__},
            )
        return LLMResponse(
            content=content,
            model=data.get("model", self.settings.model),
            usage={
                "prompt_tokens": data.get("prompt_eval_count", 0),
                "completion_tokens": data.get("eval_count", 0),
                "total_tokens": data.get("prompt_eval_count", 0) + data.get("eval_count", 0),
            },
            raw_response=data,
        )


class MockLLMClient(LLMClient):
    """Mock LLM client for testing.

    Responses are served in order; an Exception instance in the list is
    raised instead of returned.
    """

    def __init__(
        self,
        responses: Optional[List[Any]] = None,
        settings: Optional[LLMSettings] = None,
    ):
        super().__init__(settings or LLMSettings(backend=LLMBackendType.MOCK))
        self.responses: List[Any] = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        self.calls.append({
            "prompt": prompt,
            "system_prompt": system_prompt,
            "temperature": temperature,
        })
        if not self.responses:
            return LLMResponse(content="{}", model="mock", usage={"total_tokens": 0})
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return LLMResponse(content=str(response), model="mock", usage={"total_tokens": 100})


def create_llm_client(
    settings: LLMSettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[LLMClient]:
    """Build the configured client, or None in rule-only mode."""
    if not settings.is_enabled:
        logger.warning(
            "llm_disabled",
            backend=settings.backend.value,
            reason="no API key" if settings.backend == LLMBackendType.OPENAI else "disabled",
        )
        return None
    if settings.backend == LLMBackendType.OLLAMA:
        return OllamaClient(settings, transport)
    if settings.backend == LLMBackendType.MOCK:
        return MockLLMClient(settings=settings)
    return OpenAIClient(settings, transport)
