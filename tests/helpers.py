"""Test doubles and helpers shared across test modules.

ScriptedRunner stands in for a role agent: it replays canned responses
(strings, exceptions, or async callables) and counts invocations.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

from src.coordination.roles import Role


def report(role: Role, payload: dict[str, Any], *, prose: str = "Done.") -> str:
    """Render a role output with a well-formed report block."""
    return f"{prose}\n<<<{role.report_tag}>>>\n{json.dumps(payload)}\n<<<END>>>\n"


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll predicate until true; raises TimeoutError if it never holds."""
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)


Response = str | BaseException | Callable[[], Awaitable[str]]


class ScriptedRunner:
    """RoleRunner double. The last response repeats once the script runs out."""

    def __init__(self, *responses: Response) -> None:
        if not responses:
            raise ValueError("ScriptedRunner needs at least one response")
        self._responses = list(responses)
        self.calls = 0
        self.prompts: list[str] = []

    async def invoke(self, prompt: str, *, iteration: int = 0) -> str:
        self.prompts.append(prompt)
        response = self._responses[min(self.calls, len(self._responses) - 1)]
        self.calls += 1
        await asyncio.sleep(0)
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return await response()
        return response


def static_prompts(role: Role, state) -> str:
    return f"{role.value} iteration={state.iteration}"
