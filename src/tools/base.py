from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from src.coordination.roles import Role

if TYPE_CHECKING:
    from src.tools.context import ToolContext


class BaseTool(ABC):
    """Abstract base class for workspace capability tools.

    Every tool body runs inside the shared WorkspaceLock. Tools raise
    CapabilityError subclasses for rejected calls; the role agent turns
    them into error results for the model.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool name used in function calling."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        ...

    @property
    @abstractmethod
    def parameters(self) -> dict:
        """JSON Schema describing the tool's input parameters."""
        ...

    @property
    def allowed_roles(self) -> frozenset[Role]:
        """Roles that may call this tool. Fail-closed: empty by default."""
        return frozenset()

    @property
    def mutating(self) -> bool:
        """True if the tool changes the workspace. Conservative default: True.

        Mutating tools can never be granted to the verifier.
        """
        return True

    @abstractmethod
    async def execute(
        self, arguments: dict, context: ToolContext | None = None
    ) -> dict:
        """Execute the tool with given arguments and optional runtime context."""
        ...


READ_ONLY_ROLES = frozenset({Role.builder, Role.verifier, Role.refactorer})
WRITER_ROLES = frozenset({Role.builder, Role.refactorer})
