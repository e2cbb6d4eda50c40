from __future__ import annotations

import json
from typing import Any

import structlog

from src.agent.model_client import ModelClient
from src.coordination.roles import Role
from src.infra.errors import CapabilityDeniedError, CoordinatorError
from src.tools.context import ToolContext
from src.tools.registry import ToolRegistry

logger = structlog.get_logger()


def _safe_parse_args(raw: str | None) -> tuple[dict, str | None]:
    """Parse JSON tool call arguments. Returns (dict, error_message | None)."""
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        return {}, f"JSON parse error: {e}"
    if not isinstance(parsed, dict):
        return {}, f"Expected dict, got {type(parsed).__name__}"
    return parsed, None


class RoleAgent:
    """Tool-calling loop for a single role.

    Flow: prompt → LLM → (tool_calls → execute → LLM)* → final text

    Only tools granted to the role are advertised; calls to anything else
    are answered with a TOOL_DENIED result rather than executed. Capability
    errors go back to the model as tool results and never end the turn.
    """

    def __init__(
        self,
        role: Role,
        model_client: ModelClient,
        tool_registry: ToolRegistry,
        *,
        model: str = "gpt-4o-mini",
        max_turns: int = 12,
    ) -> None:
        self._role = role
        self._model_client = model_client
        self._tool_registry = tool_registry
        self._model = model
        self._max_turns = max_turns

    @property
    def role(self) -> Role:
        return self._role

    async def invoke(self, prompt: str, *, iteration: int = 0) -> str:
        messages: list[dict[str, Any]] = [{"role": "user", "content": prompt}]
        tools_schema = self._tool_registry.get_tools_schema(self._role) or None
        context = ToolContext(role=self._role, iteration=iteration)
        collected: list[str] = []

        for turn in range(self._max_turns):
            message = await self._model_client.chat_completion(
                messages, self._model, tools=tools_schema, role=self._role
            )
            if message.content:
                collected.append(message.content)
                logger.debug(
                    "role_output", role=self._role.value, turn=turn + 1, text=message.content
                )

            if not message.tool_calls:
                logger.info(
                    "role_turn_complete",
                    role=self._role.value,
                    turns=turn + 1,
                    chars=len(message.content or ""),
                )
                return message.content or ""

            messages.append({
                "role": "assistant",
                "content": message.content or "",
                "tool_calls": [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.function.name,
                            "arguments": tc.function.arguments,
                        },
                    }
                    for tc in message.tool_calls
                ],
            })
            for tc in message.tool_calls:
                logger.debug(
                    "role_tool_call",
                    role=self._role.value,
                    tool_name=tc.function.name,
                    arguments=(tc.function.arguments or "")[:500],
                )
                result = await self._execute_tool(
                    tc.function.name, tc.function.arguments, context
                )
                messages.append({
                    "role": "tool",
                    "tool_call_id": tc.id,
                    "content": json.dumps(result, ensure_ascii=False),
                })

        logger.warning("max_turns_reached", role=self._role.value, max=self._max_turns)
        return "\n".join(collected)

    async def _execute_tool(
        self, tool_name: str, arguments_json: str | None, context: ToolContext
    ) -> dict:
        """Execute a tool by name. Returns result dict or error dict."""
        tool = self._tool_registry.get(tool_name)
        if tool is None:
            logger.warning("unknown_tool", tool_name=tool_name, role=self._role.value)
            return {"error_code": "UNKNOWN_TOOL", "message": f"Unknown tool: {tool_name}"}

        if not self._tool_registry.check_role(tool_name, self._role):
            denied = CapabilityDeniedError(
                f"Tool '{tool_name}' is not available to the {self._role} role."
            )
            logger.warning("tool_denied_by_role", tool_name=tool_name, role=self._role.value)
            return {
                "ok": False,
                "error_code": denied.code,
                "tool_name": tool_name,
                "message": str(denied),
            }

        arguments, parse_err = _safe_parse_args(arguments_json)
        if parse_err:
            logger.warning(
                "tool_call_args_parse_failed",
                tool_name=tool_name,
                error=parse_err,
                raw_args=(arguments_json or "")[:200],
            )
            return {"error_code": "INVALID_ARGS", "message": f"Invalid arguments: {parse_err}"}

        try:
            result = await tool.execute(arguments, context)
        except CoordinatorError as e:
            logger.warning(
                "tool_call_rejected", tool_name=tool_name, role=self._role.value, code=e.code
            )
            return {"error_code": e.code, "message": str(e)}
        except OSError as e:
            logger.warning("tool_io_error", tool_name=tool_name, error=str(e))
            return {"error_code": "IO_ERROR", "message": str(e)}
        except Exception:
            logger.exception("tool_execution_failed", tool_name=tool_name)
            return {"error_code": "EXECUTION_ERROR", "message": f"Tool {tool_name} failed"}
        logger.info("tool_executed", tool_name=tool_name, role=self._role.value)
        return result
