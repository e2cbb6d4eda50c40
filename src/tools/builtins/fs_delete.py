from __future__ import annotations

import shutil
from typing import TYPE_CHECKING

import structlog

from src.infra.errors import PathEscapeError
from src.tools.base import WRITER_ROLES, BaseTool
from src.tools.workspace import Workspace

if TYPE_CHECKING:
    from src.coordination.roles import Role
    from src.tools.context import ToolContext

logger = structlog.get_logger()


class FsDeleteTool(BaseTool):
    """Delete a file or directory tree. Missing paths are not an error."""

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace

    @property
    def name(self) -> str:
        return "fs_delete"

    @property
    def description(self) -> str:
        return (
            "Delete a file or directory within the workspace root "
            "(builder; refactorer allowed but discouraged)."
        )

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

        async def _delete() -> dict:
            target = self._workspace.resolve_entry(raw_path)
            if target == self._workspace.root:
                raise PathEscapeError("Refusing to delete the workspace root.")
            if target.is_symlink():
                target.unlink()
            elif target.is_dir():
                shutil.rmtree(target)
            else:
                target.unlink(missing_ok=True)
            logger.info(
                "workspace_path_deleted",
                path=raw_path,
                role=context.role.value if context else None,
            )
            return {"ok": True, "path": raw_path}

        return await self._workspace.lock.run_exclusive(_delete)
