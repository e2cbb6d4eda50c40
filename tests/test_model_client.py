"""Tests for the model client's invocation budget: timeout, retries, errors."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import APITimeoutError, BadRequestError, RateLimitError

from src.agent import model_client as model_client_module
from src.agent.model_client import OpenAICompatModelClient, backoff_delay
from src.config.settings import ModelSettings
from src.coordination.roles import Role
from src.infra.errors import LLMError

MESSAGES = [{"role": "user", "content": "build FR-1"}]


def _reply(content: str | None = "ok", *, choices: int = 1):
    response = MagicMock()
    message = MagicMock(content=content, tool_calls=None)
    response.choices = [MagicMock(message=message) for _ in range(choices)]
    return response


def _status_error(cls, status: int):
    return cls(f"HTTP {status}", response=MagicMock(status_code=status), body=None)


@pytest.fixture()
def no_backoff(monkeypatch):
    monkeypatch.setattr(model_client_module, "backoff_delay", lambda attempt, base: 0.0)


def _client(create: AsyncMock, **kwargs) -> OpenAICompatModelClient:
    client = OpenAICompatModelClient(api_key="sk-test", **kwargs)
    client._client = MagicMock()
    client._client.chat.completions.create = create
    return client


class TestConstruction:
    def test_settings_drive_timeout_and_sdk_retries_off(self):
        settings = ModelSettings(api_key="sk-test", timeout_s=12.5, max_retries=5)
        client = OpenAICompatModelClient.from_settings(settings)
        assert client._client.timeout == 12.5
        assert client._client.max_retries == 0
        assert client._attempts == 6

    def test_backoff_grows_and_is_capped(self):
        assert 1.0 <= backoff_delay(1, 1.0) <= 1.5
        assert 4.0 <= backoff_delay(3, 1.0) <= 4.5
        assert backoff_delay(20, 1.0) <= model_client_module.MAX_BACKOFF_S + 0.5


class TestRetries:
    @pytest.mark.asyncio()
    async def test_timeout_then_success(self, no_backoff):
        create = AsyncMock(side_effect=[APITimeoutError(request=MagicMock()), _reply("done")])
        client = _client(create, max_retries=2)

        message = await client.chat_completion(MESSAGES, "m", role=Role.builder)

        assert message.content == "done"
        assert create.await_count == 2

    @pytest.mark.asyncio()
    async def test_rate_limit_exhaustion_names_role(self, no_backoff):
        create = AsyncMock(side_effect=_status_error(RateLimitError, 429))
        client = _client(create, max_retries=2)

        with pytest.raises(LLMError, match="after 3 attempts") as exc_info:
            await client.chat_completion(MESSAGES, "m", role=Role.verifier)

        assert create.await_count == 3
        assert exc_info.value.role == "verifier"
        assert exc_info.value.code == "LLM_ERROR"

    @pytest.mark.asyncio()
    async def test_client_error_not_retried(self, no_backoff):
        create = AsyncMock(side_effect=_status_error(BadRequestError, 400))
        client = _client(create, max_retries=3)

        with pytest.raises(LLMError, match="400") as exc_info:
            await client.chat_completion(MESSAGES, "m", role=Role.refactorer)

        assert create.await_count == 1
        assert exc_info.value.role == "refactorer"


class TestReply:
    @pytest.mark.asyncio()
    async def test_no_choices_is_llm_error(self):
        client = _client(AsyncMock(return_value=_reply(choices=0)))
        with pytest.raises(LLMError, match="no choices") as exc_info:
            await client.chat_completion(MESSAGES, "m", role=Role.builder)
        assert exc_info.value.role == "builder"

    @pytest.mark.asyncio()
    async def test_tools_sent_only_when_present(self):
        create = AsyncMock(return_value=_reply())
        client = _client(create)
        tools = [{"type": "function", "function": {"name": "fs_read"}}]

        await client.chat_completion(MESSAGES, "m", tools=tools)
        assert create.await_args.kwargs["tools"] == tools

        await client.chat_completion(MESSAGES, "m", tools=[])
        assert "tools" not in create.await_args.kwargs
        assert create.await_args.kwargs["model"] == "m"
