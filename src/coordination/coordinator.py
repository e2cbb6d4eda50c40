from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import structlog

from src.config.settings import CoordinatorSettings
from src.coordination.heuristics import RefactorPredicate
from src.coordination.loops import (
    BuilderLoop,
    PromptFactory,
    RefactorerLoop,
    RoleLoop,
    RoleRunner,
    VerifierLoop,
)
from src.coordination.roles import Role
from src.coordination.signals import RefactorTrigger, Termination
from src.coordination.state import StateStore, Verdict
from src.infra.errors import StatePersistError

logger = structlog.get_logger()


@dataclass(frozen=True)
class RunOutcome:
    """Final report of a coordination run.

    status is "done" only when Termination was raised by an observed
    completion and the final state still shows it. Anything else (iteration
    cap, halt, a verdict overturned by a late call) is "incomplete".
    """

    status: Literal["done", "incomplete"]
    verdict: Verdict
    exit_criteria_met: bool
    iterations: int
    refactor_runs: int
    state_path: Path
    reason: str | None = None


class Coordinator:
    """Runs the builder, verifier and refactorer loops against one workspace."""

    def __init__(
        self,
        runners: dict[Role, RoleRunner],
        prompts: PromptFactory,
        store: StateStore,
        settings: CoordinatorSettings,
        *,
        detector: RefactorPredicate | None = None,
    ) -> None:
        missing = set(Role) - runners.keys()
        if missing:
            raise ValueError(f"Missing runners for roles: {sorted(missing)}")
        self._runners = runners
        self._prompts = prompts
        self._store = store
        self._settings = settings
        self._detector = detector
        self.trigger = RefactorTrigger()
        self.termination = Termination()
        self.loops: dict[Role, RoleLoop] = {}

    @property
    def store(self) -> StateStore:
        return self._store

    async def run(self) -> RunOutcome:
        """Run all three loops to completion.

        Raises StatePersistError if the durable snapshot cannot be written;
        the other loops are cancelled first.
        """
        await self._store.initialize()
        termination = self.termination
        # Stops verifier/refactorer without claiming completion
        halt = termination.child()
        common = (self._prompts, self.trigger, termination)

        builder = BuilderLoop(
            self._runners[Role.builder], self._store, *common,
            max_iterations=self._settings.max_iterations,
        )
        verifier = VerifierLoop(
            self._runners[Role.verifier], self._store, *common,
            stop=halt,
            interval_s=self._settings.verifier_interval_s,
            detector=self._detector,
        )
        refactorer = RefactorerLoop(
            self._runners[Role.refactorer], self._store, *common,
            stop=halt,
            poll_s=self._settings.refactor_poll_s,
        )
        self.loops = {
            Role.builder: builder,
            Role.verifier: verifier,
            Role.refactorer: refactorer,
        }

        async def _builder_then_halt() -> None:
            await builder.run()
            if not termination.is_set:
                halt.fire("builder iterations exhausted")

        logger.info(
            "coordination_started",
            state_path=str(self._store.path),
            max_iterations=self._settings.max_iterations,
            verifier_interval_s=self._settings.verifier_interval_s,
        )
        try:
            async with asyncio.TaskGroup() as tg:
                tg.create_task(_builder_then_halt(), name="builder")
                tg.create_task(verifier.run(), name="verifier")
                tg.create_task(refactorer.run(), name="refactorer")
        except ExceptionGroup as eg:
            fatal = [e for e in eg.exceptions if isinstance(e, StatePersistError)]
            if fatal:
                logger.error("coordination_aborted", error=str(fatal[0]))
                raise fatal[0] from eg
            raise

        outcome = self._outcome(halt)
        logger.info(
            "coordination_finished",
            status=outcome.status,
            verdict=outcome.verdict.value,
            exit_criteria_met=outcome.exit_criteria_met,
            iterations=outcome.iterations,
            refactor_runs=outcome.refactor_runs,
            reason=outcome.reason,
        )
        return outcome

    def _outcome(self, halt: Termination) -> RunOutcome:
        state = self._store.state
        reason = self.termination.reason or halt.reason
        done = self.termination.is_set and state.is_complete()
        if self.termination.is_set and not done:
            # An in-flight call finished after completion and rewrote its record
            logger.warning(
                "completion_overturned",
                verdict=state.verifier.verdict.value,
                exit_criteria_met=state.builder.exit_criteria_met,
            )
            reason = "state changed after completion was observed"
        return RunOutcome(
            status="done" if done else "incomplete",
            verdict=state.verifier.verdict,
            exit_criteria_met=state.builder.exit_criteria_met,
            iterations=state.iteration,
            refactor_runs=state.refactorer.ran_count,
            state_path=self._store.path,
            reason=reason,
        )
