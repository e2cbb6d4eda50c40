from __future__ import annotations

import asyncio
import contextlib
import os
import signal
from typing import TYPE_CHECKING

import structlog

from src.infra.errors import CapabilityError
from src.tools.base import READ_ONLY_ROLES, BaseTool
from src.tools.workspace import Workspace

if TYPE_CHECKING:
    from src.coordination.roles import Role
    from src.tools.context import ToolContext

logger = structlog.get_logger()

MAX_OUTPUT_CHARS = 100_000
# Upper bound on reading leftover output once a timed-out command is killed
KILL_DRAIN_S = 5.0


def _kill_group(proc: asyncio.subprocess.Process) -> None:
    """SIGKILL the command and everything it spawned (its own session)."""
    with contextlib.suppress(ProcessLookupError):
        os.killpg(proc.pid, signal.SIGKILL)


class CmdRunTool(BaseTool):
    """Run an allow-listed shell command in the workspace root.

    Available to every role, including the verifier: running checks is how
    it proves compliance. The allow-list is bypassed only with allow_unsafe.
    """

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace

    @property
    def name(self) -> str:
        return "cmd_run"

    @property
    def description(self) -> str:
        return (
            "Run a shell command in the workspace root "
            "(allowlist enforced unless --allow-unsafe)."
        )

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
                "cmd": {
                    "type": "string",
                    "description": "Command line to run, e.g. 'pnpm test'.",
                },
                "timeoutMs": {
                    "type": "integer",
                    "minimum": 1,
                    "description": "Timeout in milliseconds (default 10 minutes).",
                },
            },
            "required": ["cmd"],
        }

    async def execute(
        self, arguments: dict, context: ToolContext | None = None
    ) -> dict:
        cmd = arguments.get("cmd")
        if not isinstance(cmd, str) or not cmd.strip():
            raise CapabilityError("cmd must be a non-empty string", code="INVALID_ARGS")
        timeout_ms = arguments.get("timeoutMs")
        timeout_s = timeout_ms / 1000 if timeout_ms else self._workspace.command_timeout_s

        async def _run() -> dict:
            self._workspace.check_command(cmd)
            proc = await asyncio.create_subprocess_shell(
                cmd,
                cwd=self._workspace.root,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
            timed_out = False
            try:
                stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout_s)
            except TimeoutError:
                timed_out = True
                _kill_group(proc)
                try:
                    stdout, stderr = await asyncio.wait_for(proc.communicate(), KILL_DRAIN_S)
                except TimeoutError:
                    # A descendant escaped the process group and still holds the pipes
                    logger.warning("command_output_abandoned", cmd=cmd)
                    stdout, stderr = b"", b""
            logger.info(
                "command_finished",
                cmd=cmd,
                exit_code=proc.returncode,
                timed_out=timed_out,
                role=context.role.value if context else None,
            )
            return {
                "cmd": cmd,
                "exitCode": proc.returncode,
                "timedOut": timed_out,
                "stdout": stdout.decode("utf-8", errors="replace")[-MAX_OUTPUT_CHARS:],
                "stderr": stderr.decode("utf-8", errors="replace")[-MAX_OUTPUT_CHARS:],
            }

        return await self._workspace.lock.run_exclusive(_run)
