"""LLM collaborators: an offline echo client and an Anthropic HTTP client."""
import time
from typing import Any

import httpx

from vibeflow.collaborators.base import LLMClient, LLMResponse, LLMUsage
from vibeflow.config import Settings, get_settings
from vibeflow.observability import get_logger

logger = get_logger(__name__)


class LLMCallError(Exception):
    """Raised when an LLM provider call fails."""

    pass


class EchoLLMClient:
    """
    Deterministic offline client.

    Returns ``"LLM response for: <prompt>"`` and a whitespace token count.
    Used when no real provider is configured.
    """

    def call(self, prompt: str, model: str) -> LLMResponse:
        return LLMResponse(
            content=f"LLM response for: {prompt}",
            model=model,
            usage=LLMUsage(tokens=len(prompt.split())),
        )


class AnthropicLLMClient:
    """
    Anthropic Messages API client.

    Retries rate limiting, server errors and timeouts with exponential
    backoff; client errors are not retried.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize client.

        Args:
            settings: Settings to read credentials and limits from
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._settings = settings or get_settings()
        if self._settings.anthropic_api_key is None:
            raise LLMCallError("anthropic_api_key is not configured")
        self._transport = transport

    def call(self, prompt: str, model: str) -> LLMResponse:
        settings = self._settings
        request_body = {
            "model": model,
            "max_tokens": settings.llm_max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "x-api-key": settings.anthropic_api_key.get_secret_value(),
            "anthropic-version": settings.anthropic_version,
            "content-type": "application/json",
        }
        timeout = httpx.Timeout(
            connect=5.0,
            read=settings.llm_timeout_s,
            write=5.0,
            pool=5.0,
        )
        url = f"{settings.anthropic_base_url}/v1/messages"

        logger.info("llm_call_start", extra={"model": model})
        data = self._post_with_retries(url, request_body, headers, timeout)
        response = self._parse_response(data, model)
        logger.info(
            "llm_call_end",
            extra={"model": response.model, "tokens": response.usage.tokens},
        )
        return response

    def _post_with_retries(
        self,
        url: str,
        body: dict[str, Any],
        headers: dict[str, str],
        timeout: httpx.Timeout,
    ) -> dict[str, Any]:
        max_retries = self._settings.llm_max_retries

        for attempt in range(max_retries + 1):
            wait_time = 0.5 * (2**attempt)
            try:
                with httpx.Client(timeout=timeout, transport=self._transport) as client:
                    response = client.post(url, json=body, headers=headers)

                retryable = response.status_code == 429 or 500 <= response.status_code < 600
                if retryable and attempt < max_retries:
                    logger.warning(
                        f"Provider returned {response.status_code}, retrying in {wait_time}s"
                    )
                    time.sleep(wait_time)
                    continue

                response.raise_for_status()
                return response.json()

            except httpx.TimeoutException as e:
                if attempt < max_retries:
                    logger.warning(f"Request timeout, retrying in {wait_time}s")
                    time.sleep(wait_time)
                    continue
                raise LLMCallError(f"Request timeout: {e}") from e

            except httpx.HTTPStatusError as e:
                raise LLMCallError(
                    f"Provider returned HTTP {e.response.status_code}"
                ) from e

            except httpx.HTTPError as e:
                raise LLMCallError(f"HTTP error: {e}") from e

        raise LLMCallError("Max retries exceeded")

    def _parse_response(self, data: dict[str, Any], model: str) -> LLMResponse:
        """Parse Anthropic API response."""
        text = "".join(
            block.get("text", "")
            for block in data.get("content", [])
            if block.get("type") == "text"
        )
        usage = data.get("usage", {})
        tokens = (usage.get("input_tokens") or 0) + (usage.get("output_tokens") or 0)
        return LLMResponse(
            content=text,
            model=data.get("model", model),
            usage=LLMUsage(tokens=tokens),
        )


def build_llm_client(settings: Settings | None = None) -> LLMClient:
    """Create the LLM collaborator selected by ``settings.llm_provider``."""
    settings = settings or get_settings()
    if settings.llm_provider == "anthropic":
        return AnthropicLLMClient(settings)
    return EchoLLMClient()
