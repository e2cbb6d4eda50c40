from __future__ import annotations

from fnmatch import fnmatch
from typing import TYPE_CHECKING

from src.constants import DEFAULT_GLOB_IGNORE
from src.infra.errors import CapabilityError
from src.tools.base import READ_ONLY_ROLES, BaseTool
from src.tools.workspace import Workspace

if TYPE_CHECKING:
    from src.coordination.roles import Role
    from src.tools.context import ToolContext


def _ignored(rel: str, patterns: list[str]) -> bool:
    # "**/x/**" must also match a top-level "x/..." entry and the "x" dir itself
    candidates = (rel, f"/{rel}", f"/{rel}/")
    return any(fnmatch(c, p) for c in candidates for p in patterns)


class FsGlobTool(BaseTool):
    """Glob for paths under the workspace root."""

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace

    @property
    def name(self) -> str:
        return "fs_glob"

    @property
    def description(self) -> str:
        return "Glob files within the workspace root, e.g. 'src/**/*.ts'."

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
                "pattern": {"type": "string", "description": "Glob pattern."},
                "ignore": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["pattern"],
        }

    async def execute(
        self, arguments: dict, context: ToolContext | None = None
    ) -> dict:
        pattern = arguments.get("pattern")
        if not isinstance(pattern, str) or not pattern.strip():
            raise CapabilityError("pattern must be a non-empty string", code="INVALID_ARGS")
        ignore = arguments.get("ignore") or list(DEFAULT_GLOB_IGNORE)
        root = self._workspace.root

        async def _glob() -> dict:
            entries: list[str] = []
            try:
                matches = root.glob(pattern)
                for path in matches:
                    if not path.resolve().is_relative_to(root):
                        continue
                    rel = path.relative_to(root).as_posix()
                    if not _ignored(rel, ignore):
                        entries.append(rel)
            except (ValueError, NotImplementedError) as e:
                raise CapabilityError(f"Invalid glob pattern: {e}", code="INVALID_ARGS") from e
            entries.sort()
            return {"pattern": pattern, "count": len(entries), "entries": entries}

        return await self._workspace.lock.run_exclusive(_glob)
