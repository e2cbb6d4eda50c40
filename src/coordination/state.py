"""Shared coordination state and its durable snapshot.

Each top-level sub-record has exactly one writer (its role loop). Loops get
a RoleWriter bound to their role from the StateStore; the writer can only
replace that role's sub-record. Sub-records are frozen and swapped
wholesale, so readers never see a torn record. Reads are lock-free and only
eventually consistent across sub-records.

All mutations and snapshot writes go through the store one at a time, and
each snapshot is written to a temp file then renamed over the previous one.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.coordination.roles import Role
from src.infra.errors import CoordinatorError, StatePersistError

logger = structlog.get_logger()


class Verdict(StrEnum):
    UNKNOWN = "UNKNOWN"
    PASS = "PASS"
    FAIL = "FAIL"


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class Blocker(_Record):
    ids: list[str] = Field(default_factory=list)
    summary: str = ""
    fix: str = ""


class BuilderState(_Record):
    last_report: Any = None
    exit_criteria_met: bool = False
    wants_refactor: bool = False


class VerifierState(_Record):
    last_report: Any = None
    verdict: Verdict = Verdict.UNKNOWN
    blockers: list[Blocker] = Field(default_factory=list)
    refactor_recommended: bool = False


class RefactorerState(_Record):
    last_report: Any = None
    ran_count: int = 0
    last_ran_at: datetime | None = None


class SharedState(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    iteration: int = 0
    builder: BuilderState = Field(default_factory=BuilderState)
    verifier: VerifierState = Field(default_factory=VerifierState)
    refactorer: RefactorerState = Field(default_factory=RefactorerState)

    def is_complete(self) -> bool:
        """Overall completion: builder says done AND verifier proved it."""
        return self.builder.exit_criteria_met and self.verifier.verdict == Verdict.PASS

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


_RECORD_TYPES: dict[Role, type[_Record]] = {
    Role.builder: BuilderState,
    Role.verifier: VerifierState,
    Role.refactorer: RefactorerState,
}


class StateStore:
    """Owns the SharedState and its durable copy under the workspace."""

    def __init__(self, path: Path, state: SharedState | None = None) -> None:
        self._path = path
        self._state = state or SharedState()
        self._write_lock = asyncio.Lock()
        self._writers: dict[Role, RoleWriter] = {}

    @property
    def path(self) -> Path:
        return self._path

    @property
    def state(self) -> SharedState:
        """Live record for lock-free reads. Do not mutate; use a RoleWriter."""
        return self._state

    async def initialize(self) -> None:
        """Create the snapshot directory and write the initial snapshot."""
        try:
            await asyncio.to_thread(self._path.parent.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise StatePersistError(f"Cannot create state directory: {e}") from e
        async with self._write_lock:
            await self._persist()
        logger.info("state_initialized", path=str(self._path))

    def writer(self, role: Role) -> RoleWriter:
        """Return the single writer for a role's sub-record."""
        if role not in self._writers:
            self._writers[role] = RoleWriter(self, role)
        return self._writers[role]

    async def _commit(self, mutate: Callable[[SharedState], None]) -> None:
        async with self._write_lock:
            mutate(self._state)
            await self._persist()

    async def _persist(self) -> None:
        payload = self._state.to_json()
        try:
            await asyncio.to_thread(_atomic_write, self._path, payload)
        except OSError as e:
            logger.error("state_persist_failed", path=str(self._path), error=str(e))
            raise StatePersistError(f"Failed to write state snapshot: {e}") from e


class RoleWriter:
    """Write access to exactly one role's sub-record."""

    def __init__(self, store: StateStore, role: Role) -> None:
        self._store = store
        self._role = role

    @property
    def role(self) -> Role:
        return self._role

    def current(self) -> Any:
        return getattr(self._store.state, self._role.value)

    async def replace(self, record: _Record) -> None:
        expected = _RECORD_TYPES[self._role]
        if not isinstance(record, expected):
            raise CoordinatorError(
                f"{self._role} writer cannot store {type(record).__name__}",
                code="NOT_OWNER",
            )
        await self._store._commit(lambda s: setattr(s, self._role.value, record))

    async def begin_iteration(self) -> int:
        """Increment the builder pass counter. Builder only."""
        if self._role is not Role.builder:
            raise CoordinatorError(
                f"{self._role} writer cannot advance iteration", code="NOT_OWNER"
            )

        def _bump(s: SharedState) -> None:
            s.iteration += 1

        await self._store._commit(_bump)
        return self._store.state.iteration


def _atomic_write(path: Path, payload: str) -> None:
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(payload, encoding="utf-8")
    os.replace(tmp, path)
