from __future__ import annotations

from typing import TYPE_CHECKING

from src.tools.base import WRITER_ROLES, BaseTool
from src.tools.workspace import Workspace

if TYPE_CHECKING:
    from src.coordination.roles import Role
    from src.tools.context import ToolContext


class FsMkdirTool(BaseTool):
    """Create a directory (and parents) inside the workspace."""

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace

    @property
    def name(self) -> str:
        return "fs_mkdir"

    @property
    def description(self) -> str:
        return "Create a directory within the workspace root (builder/refactorer)."

    @property
    def allowed_roles(self) -> frozenset[Role]:
        return WRITER_ROLES

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {"path": {"type": "string"}},
            "required": ["path"],
        }

    async def execute(
        self, arguments: dict, context: ToolContext | None = None
    ) -> dict:
        raw_path = arguments.get("path")

        async def _mkdir() -> dict:
            self._workspace.resolve(raw_path).mkdir(parents=True, exist_ok=True)
            return {"ok": True, "path": raw_path}

        return await self._workspace.lock.run_exclusive(_mkdir)
