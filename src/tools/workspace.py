from __future__ import annotations

from pathlib import Path

import structlog

from src.constants import COMMAND_ALLOWLIST
from src.coordination.lock import WorkspaceLock
from src.infra.errors import CapabilityError, CommandBlockedError, PathEscapeError

logger = structlog.get_logger()


class Workspace:
    """Workspace root plus the lock and policy every tool shares."""

    def __init__(
        self,
        root: Path,
        lock: WorkspaceLock,
        *,
        allow_unsafe: bool = False,
        command_timeout_s: float = 600.0,
    ) -> None:
        self.root = root.resolve()
        self.lock = lock
        self.allow_unsafe = allow_unsafe
        self.command_timeout_s = command_timeout_s

    def resolve(self, raw_path: object) -> Path:
        """Resolve a workspace-relative path (symlinks followed).

        Raises CapabilityError for non-string/empty input and PathEscapeError
        for absolute paths or anything landing outside the root.
        """
        target = self._candidate(raw_path).resolve()
        # is_relative_to rejects prefix collisions like /ws vs /ws-evil
        if not target.is_relative_to(self.root):
            logger.warning("path_escape_blocked", path=raw_path, resolved=str(target))
            raise PathEscapeError()
        return target

    def resolve_entry(self, raw_path: object) -> Path:
        """Resolve like resolve(), except a trailing symlink names the link itself."""
        candidate = self._candidate(raw_path)
        if not candidate.is_symlink():
            return self.resolve(raw_path)
        entry = candidate.parent.resolve() / candidate.name
        if not entry.is_relative_to(self.root):
            logger.warning("path_escape_blocked", path=raw_path, resolved=str(entry))
            raise PathEscapeError()
        return entry

    def _candidate(self, raw_path: object) -> Path:
        if not isinstance(raw_path, str) or not raw_path.strip():
            raise CapabilityError("path must be a non-empty string", code="INVALID_ARGS")
        if Path(raw_path).is_absolute():
            raise PathEscapeError(
                "Absolute paths are not allowed. Use a relative path within workspace."
            )
        return self.root / raw_path

    def check_command(self, cmd: str) -> None:
        if self.allow_unsafe:
            return
        parts = cmd.split()
        first = parts[0] if parts else ""
        if first not in COMMAND_ALLOWLIST:
            logger.warning("command_blocked", cmd=cmd)
            raise CommandBlockedError(f"Command blocked by allowlist: {cmd}")
