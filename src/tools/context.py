from __future__ import annotations

from dataclasses import dataclass

from src.coordination.roles import Role


@dataclass(frozen=True)
class ToolContext:
    """Runtime context injected into tool execution by RoleAgent.

    role: the role whose turn issued the call (for audit/logging).
    iteration: builder pass counter at invocation time.
    """

    role: Role
    iteration: int = 0
