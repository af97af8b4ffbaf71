"""Classification gateways: one prompt in, raw model text out."""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar

import httpx
import openai
from langchain_core.messages import HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from privacyguard.core.config import Settings
from privacyguard.pipeline.exceptions import GatewayError, RateLimitError
from privacyguard.pipeline.retry import is_rate_limited
from privacyguard.schemas.assessment import PRIVACY_CATEGORIES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayResponse:
    text: str


class ClassificationGateway(ABC):
    """Contract for provider-specific classification clients."""

    @abstractmethod
    async def classify(self, prompt: str) -> GatewayResponse:
        """Send a single prompt and return the provider's raw text."""


def _message_text(content: Any) -> str:
    # Chat models may return content as a list of parts.
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return "" if content is None else str(content)


class GeminiGateway(ClassificationGateway):
    """Gateway on Gemini through LangChain."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        temperature: float,
        max_output_tokens: int,
        timeout_seconds: int,
    ) -> None:
        # Retries are handled by call_with_retry, not the client.
        self._model = ChatGoogleGenerativeAI(
            model=model,
            google_api_key=api_key,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            timeout=timeout_seconds,
            max_retries=0,
        )

    async def classify(self, prompt: str) -> GatewayResponse:
        try:
            message = await self._model.ainvoke([HumanMessage(content=prompt)])
        except Exception as exc:
            if is_rate_limited(exc):
                raise RateLimitError(f"Gemini rate limit: {exc}") from exc
            raise GatewayError(f"Gemini request failed: {exc}") from exc
        text = _message_text(message.content)
        if not text:
            raise GatewayError("Gemini returned empty response")
        return GatewayResponse(text=text)


class OpenAIGateway(ClassificationGateway):
    """Gateway on an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        temperature: float,
        max_output_tokens: int,
        timeout_seconds: int,
        base_url: str | None = None,
    ) -> None:
        self._client = openai.AsyncOpenAI(
            api_key=api_key,
            timeout=timeout_seconds,
            base_url=base_url,
            max_retries=0,
        )
        self._model = model
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens

    async def classify(self, prompt: str) -> GatewayResponse:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                temperature=self._temperature,
                max_tokens=self._max_output_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except openai.RateLimitError as exc:
            raise RateLimitError(f"AI provider rate limit: {exc}") from exc
        except (openai.APIConnectionError, httpx.ConnectError, httpx.TimeoutException) as exc:
            raise GatewayError(f"AI provider network error: {exc}") from exc
        except openai.APIStatusError as exc:
            raise GatewayError(
                f"AI provider API error: {exc}", status_code=exc.status_code
            ) from exc
        except openai.APIError as exc:
            raise GatewayError(f"AI provider API error: {exc}") from exc

        if not response.choices:
            raise GatewayError("AI returned no choices")
        content = response.choices[0].message.content
        if content is None:
            raise GatewayError("AI returned empty response")
        return GatewayResponse(text=content)


class StaticGateway(ClassificationGateway):
    """Gateway that returns a fixed valid all-Unknown classification.

    No network calls. Useful for local development without credentials.
    """

    DEFAULT_RESPONSE: ClassVar[dict[str, object]] = {
        "categories": {
            category: {"risk": "Unknown", "explanation": "Not assessed"}
            for category in PRIVACY_CATEGORIES
        },
        "overallRisk": "Unknown",
        "summary": "Static classification; no model was consulted.",
    }

    def __init__(self, response: dict[str, object] | None = None) -> None:
        self._payload = json.dumps(response if response is not None else self.DEFAULT_RESPONSE)

    async def classify(self, prompt: str) -> GatewayResponse:
        _ = prompt
        return GatewayResponse(text=self._payload)


def create_gateway(settings: Settings) -> ClassificationGateway:
    """Create the configured classification gateway."""
    provider = settings.llm_provider.lower()
    if provider == "example":
        return StaticGateway()
    if provider == "gemini":
        if not settings.gemini_api_key:
            raise ValueError("gemini_api_key is required for llm_provider=gemini")
        return GeminiGateway(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            temperature=settings.llm_temperature,
            max_output_tokens=settings.llm_max_output_tokens,
            timeout_seconds=settings.llm_timeout_seconds,
        )
    if provider == "openai":
        if not settings.openai_api_key:
            raise ValueError("openai_api_key is required for llm_provider=openai")
        return OpenAIGateway(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            temperature=settings.llm_temperature,
            max_output_tokens=settings.llm_max_output_tokens,
            timeout_seconds=settings.llm_timeout_seconds,
            base_url=settings.openai_base_url,
        )
    raise ValueError(
        f"Unknown llm provider '{provider}'. Choose from: ['example', 'gemini', 'openai']"
    )
