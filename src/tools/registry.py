from __future__ import annotations

import structlog

from src.coordination.roles import Role
from src.tools.base import BaseTool

logger = structlog.get_logger()


class ToolRegistry:
    """Registry for workspace tools. Provides lookup and role-aware filtering."""

    def __init__(self) -> None:
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        """Register a tool.

        Raises ValueError if the name is already registered, or if a
        mutating tool is granted to the verifier.
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        if tool.mutating and Role.verifier in tool.allowed_roles:
            raise ValueError(f"Mutating tool cannot be granted to verifier: {tool.name}")
        if not tool.allowed_roles:
            logger.warning(
                "tool_registered_without_roles",
                tool_name=tool.name,
                msg="Tool has empty allowed_roles (fail-closed default); "
                "no role can call it.",
            )
        self._tools[tool.name] = tool
        logger.debug("tool_registered", tool_name=tool.name)

    def get(self, name: str) -> BaseTool | None:
        """Get a tool by name. Returns None if not found."""
        return self._tools.get(name)

    def check_role(self, tool_name: str, role: Role) -> bool:
        """Check if a tool is available to the given role. False for unknown tools."""
        tool = self._tools.get(tool_name)
        return tool is not None and role in tool.allowed_roles

    def list_tools(self, role: Role) -> list[BaseTool]:
        """Return tools available to the given role."""
        return [tool for tool in self._tools.values() if role in tool.allowed_roles]

    def get_tools_schema(self, role: Role) -> list[dict]:
        """Return tools in OpenAI function calling format, filtered by role.

        Output format:
        [{"type": "function", "function": {"name": ..., "description": ..., "parameters": ...}}]
        """
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }
            for tool in self.list_tools(role)
        ]
