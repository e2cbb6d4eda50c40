from __future__ import annotations

from typing import TYPE_CHECKING

from src.infra.errors import CapabilityError
from src.tools.base import WRITER_ROLES, BaseTool
from src.tools.workspace import Workspace

if TYPE_CHECKING:
    from src.coordination.roles import Role
    from src.tools.context import ToolContext


def apply_line_edits(source: str, edits: list[dict]) -> str:
    """Replace 1-based inclusive line ranges.

    Edits are applied bottom-up so earlier line numbers stay valid.
    """
    lines = source.split("\n")
    for edit in sorted(edits, key=lambda e: e["startLine"], reverse=True):
        start = edit["startLine"] - 1
        end = edit["endLine"]
        lines[start:end] = edit["replacement"].split("\n")
    return "\n".join(lines)


def _validate_edits(edits: object) -> list[dict]:
    if not isinstance(edits, list):
        raise CapabilityError("edits must be a list", code="INVALID_ARGS")
    for edit in edits:
        if not isinstance(edit, dict):
            raise CapabilityError("each edit must be an object", code="INVALID_ARGS")
        start, end = edit.get("startLine"), edit.get("endLine")
        if not isinstance(start, int) or not isinstance(end, int) or start < 1 or end < 1:
            raise CapabilityError(
                "startLine and endLine must be integers >= 1", code="INVALID_ARGS"
            )
        if not isinstance(edit.get("replacement"), str):
            raise CapabilityError("replacement must be a string", code="INVALID_ARGS")
    return edits


class FsApplyEditsTool(BaseTool):
    """Apply line-range replacements to a workspace text file."""

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace

    @property
    def name(self) -> str:
        return "fs_apply_edits"

    @property
    def description(self) -> str:
        return "Apply line-based edits to a text file (builder/refactorer)."

    @property
    def allowed_roles(self) -> frozenset[Role]:
        return WRITER_ROLES

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string"},
                "edits": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "startLine": {"type": "integer", "minimum": 1},
                            "endLine": {"type": "integer", "minimum": 1},
                            "replacement": {"type": "string"},
                        },
                        "required": ["startLine", "endLine", "replacement"],
                    },
                },
            },
            "required": ["path", "edits"],
        }

    async def execute(
        self, arguments: dict, context: ToolContext | None = None
    ) -> dict:
        raw_path = arguments.get("path")
        edits = _validate_edits(arguments.get("edits"))

        async def _apply() -> dict:
            target = self._workspace.resolve(raw_path)
            if not target.is_file():
                raise CapabilityError(f"File not found: {raw_path}", code="FILE_NOT_FOUND")
            source = target.read_text(encoding="utf-8")
            target.write_text(apply_line_edits(source, edits), encoding="utf-8")
            return {"ok": True, "path": raw_path, "editsApplied": len(edits)}

        return await self._workspace.lock.run_exclusive(_apply)
