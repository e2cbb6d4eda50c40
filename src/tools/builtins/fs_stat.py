from __future__ import annotations

from typing import TYPE_CHECKING

from src.infra.errors import CapabilityError
from src.tools.base import READ_ONLY_ROLES, BaseTool
from src.tools.workspace import Workspace

if TYPE_CHECKING:
    from src.coordination.roles import Role
    from src.tools.context import ToolContext


class FsStatTool(BaseTool):
    """Stat a workspace path."""

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace

    @property
    def name(self) -> str:
        return "fs_stat"

    @property
    def description(self) -> str:
        return "Stat a path within the workspace root."

    @property
    def allowed_roles(self) -> frozenset[Role]:
        return READ_ONLY_ROLES

    @property
    def mutating(self) -> bool:
        return False

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

        async def _stat() -> dict:
            target = self._workspace.resolve(raw_path)
            if not target.exists():
                raise CapabilityError(f"Path not found: {raw_path}", code="FILE_NOT_FOUND")
            st = target.stat()
            return {
                "path": raw_path,
                "isFile": target.is_file(),
                "isDir": target.is_dir(),
                "size": st.st_size,
                "mtimeMs": st.st_mtime * 1000,
            }

        return await self._workspace.lock.run_exclusive(_stat)
