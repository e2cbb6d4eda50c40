"""Chat-completion client behind every role agent.

One role turn is one request. The client owns the invocation budget: each
request is bounded by ``timeout_s`` and transient failures (connection drops,
request timeouts, rate limits) get ``max_retries`` further attempts with
jittered exponential backoff. The SDK's own retry layer is disabled so the
two never multiply.
"""

from __future__ import annotations

import asyncio
import random
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import structlog
from openai import APIConnectionError, APIStatusError, AsyncOpenAI, RateLimitError
from openai.types.chat import ChatCompletionMessage

from src.infra.errors import LLMError

if TYPE_CHECKING:
    from src.config.settings import ModelSettings
    from src.coordination.roles import Role

logger = structlog.get_logger()

# APITimeoutError is an APIConnectionError
_TRANSIENT = (APIConnectionError, RateLimitError)

MAX_BACKOFF_S = 30.0


def backoff_delay(attempt: int, base_delay_s: float) -> float:
    """Seconds to wait after the given failed attempt (1-based)."""
    return min(MAX_BACKOFF_S, base_delay_s * 2 ** (attempt - 1)) + random.uniform(0, 0.5)


class ModelClient(ABC):
    """Sends one role turn to a chat model."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: list[dict[str, Any]],
        model: str,
        *,
        tools: list[dict] | None = None,
        role: Role | None = None,
    ) -> ChatCompletionMessage:
        """Return the assistant message (text and/or tool calls).

        Raises LLMError once the call cannot be completed.
        """
        ...

    async def close(self) -> None:
        """Release network resources. Default: nothing to release."""


class OpenAICompatModelClient(ModelClient):
    """ModelClient over any OpenAI-compatible endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        *,
        timeout_s: float = 600.0,
        max_retries: int = 3,
        base_delay_s: float = 1.0,
    ) -> None:
        self._client = AsyncOpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout_s, max_retries=0
        )
        self._attempts = max_retries + 1
        self._base_delay_s = base_delay_s

    @classmethod
    def from_settings(cls, settings: ModelSettings) -> OpenAICompatModelClient:
        return cls(
            settings.api_key,
            settings.base_url,
            timeout_s=settings.timeout_s,
            max_retries=settings.max_retries,
        )

    async def chat_completion(
        self,
        messages: list[dict[str, Any]],
        model: str,
        *,
        tools: list[dict] | None = None,
        role: Role | None = None,
    ) -> ChatCompletionMessage:
        label = role.value if role is not None else None
        log = logger.bind(role=label, model=model)
        request: dict[str, Any] = {"model": model, "messages": messages}
        if tools:
            request["tools"] = tools

        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self._client.chat.completions.create(**request)
                break
            except _TRANSIENT as e:
                if attempt >= self._attempts:
                    raise LLMError(
                        f"Model call failed after {attempt} attempts: {e}", role=label
                    ) from e
                delay = backoff_delay(attempt, self._base_delay_s)
                log.warning(
                    "model_call_retry",
                    attempt=attempt,
                    attempts=self._attempts,
                    delay=round(delay, 2),
                    error=str(e),
                )
                await asyncio.sleep(delay)
            except APIStatusError as e:
                raise LLMError(
                    f"Model API error: {e.status_code} {e.message}", role=label
                ) from e

        if not response.choices:
            raise LLMError("Model returned no choices", role=label)
        message = response.choices[0].message
        log.debug(
            "model_call_finished",
            attempts=attempt,
            has_content=bool(message.content),
            tool_calls=len(message.tool_calls) if message.tool_calls else 0,
        )
        return message

    async def close(self) -> None:
        await self._client.close()
