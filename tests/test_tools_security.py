"""Security boundary tests for the workspace tools.

Covers: path traversal, prefix collision, symlink escape, command allow-list,
the workspace root guard on delete, and symlink deletes.
"""

from __future__ import annotations

import sys
import time

import pytest

from src.coordination.lock import WorkspaceLock
from src.infra.errors import CapabilityError, CommandBlockedError, PathEscapeError
from src.tools.builtins.cmd_run import CmdRunTool
from src.tools.builtins.fs_delete import FsDeleteTool
from src.tools.builtins.fs_read import FsReadTool
from src.tools.builtins.fs_write import FsWriteTool
from src.tools.workspace import Workspace


@pytest.fixture()
def seeded(workspace, workspace_dir):
    (workspace_dir / "test.md").write_text("hello", encoding="utf-8")
    (workspace_dir / "subdir").mkdir()
    (workspace_dir / "subdir" / "nested.md").write_text("nested content", encoding="utf-8")
    return workspace


class TestPathResolution:
    def test_relative_path_resolves_under_root(self, seeded, workspace_dir):
        assert seeded.resolve("subdir/nested.md") == (workspace_dir / "subdir" / "nested.md").resolve()

    def test_dot_resolves_to_root(self, seeded):
        assert seeded.resolve(".") == seeded.root

    @pytest.mark.parametrize("raw", ["", "   ", None, 42])
    def test_invalid_path_values(self, seeded, raw):
        with pytest.raises(CapabilityError) as exc_info:
            seeded.resolve(raw)
        assert exc_info.value.code == "INVALID_ARGS"


class TestPathTraversal:
    @pytest.mark.asyncio()
    async def test_absolute_path_rejected(self, seeded):
        with pytest.raises(PathEscapeError) as exc_info:
            await FsReadTool(seeded).execute({"path": "/etc/passwd"})
        assert exc_info.value.code == "ACCESS_DENIED"

    @pytest.mark.asyncio()
    async def test_dotdot_escape_rejected(self, seeded):
        with pytest.raises(PathEscapeError):
            await FsReadTool(seeded).execute({"path": "../../etc/passwd"})

    @pytest.mark.asyncio()
    async def test_inner_dotdot_that_stays_inside_is_allowed(self, seeded):
        result = await FsReadTool(seeded).execute({"path": "subdir/../test.md"})
        assert result["contents"] == "hello"

    @pytest.mark.asyncio()
    async def test_prefix_collision_rejected(self, tmp_path):
        """Workspace /tmp/ws must not allow access to /tmp/ws-evil/."""
        ws = tmp_path / "ws"
        ws.mkdir()
        evil = tmp_path / "ws-evil"
        evil.mkdir()
        (evil / "secret.txt").write_text("TOPSECRET", encoding="utf-8")

        tool = FsReadTool(Workspace(ws, WorkspaceLock()))
        with pytest.raises(PathEscapeError):
            await tool.execute({"path": "../ws-evil/secret.txt"})

    @pytest.mark.asyncio()
    async def test_symlink_escape_rejected(self, seeded, workspace_dir, tmp_path):
        """Symlink inside workspace pointing outside must be blocked."""
        external = tmp_path / "external"
        external.mkdir()
        (external / "secret.txt").write_text("TOPSECRET", encoding="utf-8")
        (workspace_dir / "escape_link").symlink_to(external / "secret.txt")

        with pytest.raises(PathEscapeError):
            await FsReadTool(seeded).execute({"path": "escape_link"})

    @pytest.mark.asyncio()
    async def test_write_outside_root_rejected(self, seeded, tmp_path):
        with pytest.raises(PathEscapeError):
            await FsWriteTool(seeded).execute({"path": "../outside.txt", "contents": "x"})
        assert not (tmp_path / "outside.txt").exists()


class TestDeleteGuard:
    @pytest.mark.asyncio()
    async def test_cannot_delete_workspace_root(self, seeded, workspace_dir):
        with pytest.raises(PathEscapeError):
            await FsDeleteTool(seeded).execute({"path": "."})
        assert workspace_dir.exists()

    @pytest.mark.asyncio()
    async def test_cannot_delete_via_dotdot_to_root(self, seeded, workspace_dir):
        with pytest.raises(PathEscapeError):
            await FsDeleteTool(seeded).execute({"path": "subdir/.."})
        assert (workspace_dir / "test.md").exists()

    @pytest.mark.asyncio()
    async def test_delete_symlink_removes_link_not_target(self, seeded, workspace_dir):
        (workspace_dir / "alias").symlink_to(workspace_dir / "subdir", target_is_directory=True)

        await FsDeleteTool(seeded).execute({"path": "alias"})

        assert not (workspace_dir / "alias").is_symlink()
        assert (workspace_dir / "subdir" / "nested.md").read_text(encoding="utf-8") == "nested content"

    @pytest.mark.asyncio()
    async def test_delete_link_to_outside_leaves_outside_alone(self, seeded, workspace_dir, tmp_path):
        external = tmp_path / "external"
        external.mkdir()
        (external / "keep.txt").write_text("keep", encoding="utf-8")
        (workspace_dir / "out_link").symlink_to(external, target_is_directory=True)

        await FsDeleteTool(seeded).execute({"path": "out_link"})

        assert not (workspace_dir / "out_link").is_symlink()
        assert (external / "keep.txt").exists()


class TestCommandAllowList:
    @pytest.mark.parametrize("cmd", ["rm -rf /", "curl http://example.com", "bash -c ls"])
    def test_unlisted_command_blocked(self, seeded, cmd):
        with pytest.raises(CommandBlockedError) as exc_info:
            seeded.check_command(cmd)
        assert exc_info.value.code == "COMMAND_BLOCKED"

    @pytest.mark.parametrize("cmd", ["pnpm test", "git status", "  npm run build"])
    def test_listed_command_allowed(self, seeded, cmd):
        seeded.check_command(cmd)

    def test_allow_unsafe_bypasses_list(self, workspace_dir, lock):
        Workspace(workspace_dir, lock, allow_unsafe=True).check_command("rm -rf build")

    @pytest.mark.asyncio()
    async def test_blocked_command_never_runs(self, seeded, workspace_dir):
        with pytest.raises(CommandBlockedError):
            await CmdRunTool(seeded).execute({"cmd": "touch pwned"})
        assert not (workspace_dir / "pwned").exists()
        assert seeded.lock.pending == 0

    @pytest.mark.asyncio()
    async def test_empty_command_rejected(self, seeded):
        with pytest.raises(CapabilityError) as exc_info:
            await CmdRunTool(seeded).execute({"cmd": "  "})
        assert exc_info.value.code == "INVALID_ARGS"


class TestCommandExecution:
    @pytest.mark.asyncio()
    async def test_runs_in_workspace_root(self, workspace_dir, lock):
        ws = Workspace(workspace_dir, lock, allow_unsafe=True)
        result = await CmdRunTool(ws).execute(
            {"cmd": f'"{sys.executable}" -c "import os; print(os.getcwd())"'}
        )
        assert result["exitCode"] == 0
        assert result["timedOut"] is False
        assert result["stdout"].strip() == str(ws.root)

    @pytest.mark.asyncio()
    async def test_nonzero_exit_reported_not_raised(self, workspace_dir, lock):
        ws = Workspace(workspace_dir, lock, allow_unsafe=True)
        result = await CmdRunTool(ws).execute(
            {"cmd": f'"{sys.executable}" -c "import sys; sys.exit(3)"'}
        )
        assert result["exitCode"] == 3

    @pytest.mark.asyncio()
    async def test_timeout_kills_process(self, workspace_dir, lock):
        ws = Workspace(workspace_dir, lock, allow_unsafe=True)
        result = await CmdRunTool(ws).execute(
            {"cmd": f'exec "{sys.executable}" -c "import time; time.sleep(10)"', "timeoutMs": 200}
        )
        assert result["timedOut"] is True
        assert result["exitCode"] != 0

    @pytest.mark.asyncio()
    async def test_timeout_kills_spawned_children_and_frees_lock(self, workspace_dir, lock):
        ws = Workspace(workspace_dir, lock, allow_unsafe=True)
        started = time.monotonic()
        result = await CmdRunTool(ws).execute({"cmd": "sleep 3 && echo hi", "timeoutMs": 200})
        elapsed = time.monotonic() - started

        assert result["timedOut"] is True
        assert "hi" not in result["stdout"]
        assert elapsed < 2.0
        assert lock.pending == 0
