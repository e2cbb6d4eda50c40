from __future__ import annotations

from typing import TYPE_CHECKING

from src.constants import MAX_READ_BYTES
from src.infra.errors import CapabilityError
from src.tools.base import READ_ONLY_ROLES, BaseTool
from src.tools.workspace import Workspace

if TYPE_CHECKING:
    from src.coordination.roles import Role
    from src.tools.context import ToolContext


class FsReadTool(BaseTool):
    """Read a text file from the workspace with path safety enforcement."""

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace

    @property
    def name(self) -> str:
        return "fs_read"

    @property
    def description(self) -> str:
        return "Read a text file within the workspace root."

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
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path relative to the workspace root.",
                },
                "maxBytes": {
                    "type": "integer",
                    "minimum": 1,
                    "description": f"Max bytes to read (default {MAX_READ_BYTES}).",
                },
            },
            "required": ["path"],
        }

    async def execute(
        self, arguments: dict, context: ToolContext | None = None
    ) -> dict:
        raw_path = arguments.get("path")
        limit = arguments.get("maxBytes") or MAX_READ_BYTES

        async def _read() -> dict:
            target = self._workspace.resolve(raw_path)
            if not target.is_file():
                raise CapabilityError(f"File not found: {raw_path}", code="FILE_NOT_FOUND")
            data = target.read_bytes()
            return {
                "path": raw_path,
                "bytes": len(data),
                "truncated": len(data) > limit,
                "contents": data[:limit].decode("utf-8", errors="replace"),
            }

        return await self._workspace.lock.run_exclusive(_read)
