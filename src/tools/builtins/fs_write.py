from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from src.infra.errors import CapabilityError
from src.tools.base import WRITER_ROLES, BaseTool
from src.tools.workspace import Workspace

if TYPE_CHECKING:
    from src.coordination.roles import Role
    from src.tools.context import ToolContext

logger = structlog.get_logger()


class FsWriteTool(BaseTool):
    """Write (create or overwrite) a text file in the workspace."""

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace

    @property
    def name(self) -> str:
        return "fs_write"

    @property
    def description(self) -> str:
        return "Write a text file within the workspace root (builder/refactorer)."

    @property
    def allowed_roles(self) -> frozenset[Role]:
        return WRITER_ROLES

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string"},
                "contents": {"type": "string"},
                "mkdirp": {
                    "type": "boolean",
                    "description": "Create parent directories if missing.",
                },
            },
            "required": ["path", "contents"],
        }

    async def execute(
        self, arguments: dict, context: ToolContext | None = None
    ) -> dict:
        raw_path = arguments.get("path")
        contents = arguments.get("contents")
        if not isinstance(contents, str):
            raise CapabilityError("contents must be a string", code="INVALID_ARGS")

        async def _write() -> dict:
            target = self._workspace.resolve(raw_path)
            if arguments.get("mkdirp"):
                target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(contents, encoding="utf-8")
            logger.info(
                "workspace_file_written",
                path=raw_path,
                role=context.role.value if context else None,
                chars=len(contents),
            )
            return {"ok": True, "path": raw_path}

        return await self._workspace.lock.run_exclusive(_write)
