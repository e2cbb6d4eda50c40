from __future__ import annotations

from src.tools.builtins.cmd_run import CmdRunTool
from src.tools.builtins.fs_apply_edits import FsApplyEditsTool
from src.tools.builtins.fs_delete import FsDeleteTool
from src.tools.builtins.fs_glob import FsGlobTool
from src.tools.builtins.fs_mkdir import FsMkdirTool
from src.tools.builtins.fs_read import FsReadTool
from src.tools.builtins.fs_stat import FsStatTool
from src.tools.builtins.fs_write import FsWriteTool
from src.tools.registry import ToolRegistry
from src.tools.workspace import Workspace


def register_builtins(registry: ToolRegistry, workspace: Workspace) -> None:
    """Register all workspace tools with the registry.

    Read-only tools are granted to every role; mutating tools only to
    builder and refactorer.
    """
    registry.register(FsReadTool(workspace))
    registry.register(FsWriteTool(workspace))
    registry.register(FsApplyEditsTool(workspace))
    registry.register(FsDeleteTool(workspace))
    registry.register(FsMkdirTool(workspace))
    registry.register(FsGlobTool(workspace))
    registry.register(FsStatTool(workspace))
    registry.register(CmdRunTool(workspace))
