"""Chat-completions client for OpenAI-compatible LLM providers (DeepSeek by default)."""

import logging

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI, OpenAIError

from bizfinder.config import get_settings
from bizfinder.core.interfaces import ILLMClient
from bizfinder.llm.exceptions import LLMCallError, LLMNotConfiguredError
from bizfinder.llm.schemas import LLMResponse

logger = logging.getLogger(__name__)


class LLMClient(ILLMClient):
    """Sends a single user prompt and returns the model's raw text."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        temperature: float = 0.2,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the LLM client.

        Args:
            api_key: Provider API key
            base_url: Base URL of the chat-completions API (e.g. https://api.deepseek.com/v1)
            model: Model name
            temperature: Sampling temperature
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._temperature = temperature
        self._timeout = timeout
        self._transport = transport
        self._client: AsyncOpenAI | None = None

    @property
    def model(self) -> str:
        return self._model

    async def _get_client(self) -> AsyncOpenAI:
        """Get or create the SDK client."""
        if self._client is None or self._client.is_closed():
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                max_retries=0,  # failed hits are skipped, not retried
                http_client=httpx.AsyncClient(
                    timeout=httpx.Timeout(self._timeout, connect=10.0),
                    transport=self._transport,
                ),
            )
        return self._client

    async def close(self) -> None:
        """Close the SDK client and its HTTP connections."""
        if self._client and not self._client.is_closed():
            await self._client.close()
            self._client = None

    async def call(self, prompt: str) -> LLMResponse:
        """Send a prompt and return the raw completion text.

        Args:
            prompt: Full prompt text, sent as a single user message

        Returns:
            LLMResponse with the verbatim content

        Raises:
            LLMNotConfiguredError: If no API key is set
            LLMCallError: On network errors, non-2xx status or malformed payload
        """
        if not self._api_key:
            raise LLMNotConfiguredError()

        try:
            client = await self._get_client()
            completion = await client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self._temperature,
                stream=False,
            )
        except APIStatusError as e:
            logger.error(f"LLM API error {e.status_code}: {e.message[:200]}")
            raise LLMCallError(f"Model call failed: HTTP {e.status_code}") from e
        except APIConnectionError as e:
            logger.error(f"LLM request failed: {e}")
            raise LLMCallError(f"Model call failed: {e}") from e
        except OpenAIError as e:
            raise LLMCallError(f"Unexpected LLM response payload: {e}") from e

        try:
            content = completion.choices[0].message.content
        except (IndexError, AttributeError, TypeError) as e:
            raise LLMCallError(f"Unexpected LLM response payload: {e}") from e

        usage = completion.usage
        return LLMResponse(
            content=content or "",
            model=completion.model or self._model,
            prompt_tokens=usage.prompt_tokens if usage else None,
            completion_tokens=usage.completion_tokens if usage else None,
        )


# =============================================================================
# Singleton instance
# =============================================================================

_llm_client: LLMClient | None = None


def get_llm_client() -> LLMClient:
    """Get singleton LLM client instance."""
    global _llm_client
    if _llm_client is None:
        settings = get_settings()
        _llm_client = LLMClient(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            timeout=settings.llm_timeout_seconds,
        )
    return _llm_client


async def close_llm_client() -> None:
    """Close the singleton client, if created."""
    if _llm_client is not None:
        await _llm_client.close()
