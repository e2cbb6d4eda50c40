"""The three role loops.

Each loop is a linear state machine (idle → invoking → updating →
[waiting] → idle ... → done) that owns one sub-record of the shared state.
Loops observe their stop token at every loop-top and every wait exit. An
invocation already in flight is always allowed to finish; only the next
pass is skipped.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from typing import Protocol

import structlog

from src.coordination.heuristics import KeywordRefactorDetector, RefactorPredicate
from src.coordination.reports import builder_update, refactorer_update, verifier_update
from src.coordination.roles import Role
from src.coordination.signals import RefactorTrigger, Termination
from src.coordination.state import SharedState, StateStore, Verdict

logger = structlog.get_logger()

PromptFactory = Callable[[Role, SharedState], str]


class RoleRunner(Protocol):
    """Executes one role turn: prompt in, free-form role output out.

    Raising signals an invocation failure; the calling loop treats it as a
    failed pass and retries on its next iteration.
    """

    async def invoke(self, prompt: str, *, iteration: int = 0) -> str: ...


class LoopPhase(StrEnum):
    idle = "idle"
    invoking = "invoking"
    updating = "updating"
    waiting = "waiting"
    done = "done"


class RoleLoop:
    """Shared plumbing: phase tracking, invocation, completion check."""

    role: Role

    def __init__(
        self,
        runner: RoleRunner,
        store: StateStore,
        prompts: PromptFactory,
        trigger: RefactorTrigger,
        termination: Termination,
        *,
        stop: Termination | None = None,
    ) -> None:
        self._runner = runner
        self._store = store
        self._writer = store.writer(self.role)
        self._prompts = prompts
        self._trigger = trigger
        self._termination = termination
        # Token this loop exits on; defaults to the run-wide termination
        self._stop = stop or termination
        self._phase = LoopPhase.idle
        self._log = logger.bind(role=self.role.value)

    @property
    def phase(self) -> LoopPhase:
        return self._phase

    def _enter(self, phase: LoopPhase) -> None:
        if phase is not self._phase:
            self._log.debug("loop_phase", phase=phase.value, previous=self._phase.value)
        self._phase = phase

    async def _invoke(self) -> str | None:
        """One role turn. Returns None when the invocation failed."""
        self._enter(LoopPhase.invoking)
        state = self._store.state
        prompt = self._prompts(self.role, state)
        try:
            return await self._runner.invoke(prompt, iteration=state.iteration)
        except Exception:
            # Failed pass: leave this role's sub-record untouched, retry next pass
            self._log.exception("role_invocation_failed", iteration=state.iteration)
            return None

    def _check_completion(self) -> bool:
        if not self._store.state.is_complete():
            return False
        if self._termination.fire(f"completion observed by {self.role}"):
            self._log.info("termination_raised", iteration=self._store.state.iteration)
        return True

    async def run(self) -> None:
        self._log.info("loop_started")
        try:
            await self._run()
        finally:
            self._enter(LoopPhase.done)
            self._log.info("loop_finished", stopped=self._stop.is_set)

    async def _run(self) -> None:
        raise NotImplementedError


class BuilderLoop(RoleLoop):
    """Continuous passes until completion, termination, or the iteration cap."""

    role = Role.builder

    def __init__(self, *args, max_iterations: int, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._max_iterations = max_iterations

    async def _run(self) -> None:
        while not self._stop.is_set:
            if self._store.state.iteration >= self._max_iterations:
                self._log.warning("max_iterations_reached", max=self._max_iterations)
                return
            self._enter(LoopPhase.idle)
            iteration = await self._writer.begin_iteration()
            self._log.info("builder_pass_started", iteration=iteration)

            response = await self._invoke()
            if response is None:
                continue

            self._enter(LoopPhase.updating)
            record = builder_update(response)
            await self._writer.replace(record)
            self._log.info(
                "builder_pass_finished",
                iteration=iteration,
                exit_criteria_met=record.exit_criteria_met,
                wants_refactor=record.wants_refactor,
            )
            if record.wants_refactor:
                self._trigger.set(self.role.value)

            if self._check_completion():
                return

            verifier = self._store.state.verifier
            if verifier.verdict == Verdict.FAIL and verifier.refactor_recommended:
                self._trigger.set(self.role.value)


class VerifierLoop(RoleLoop):
    """Periodic verification runs, separated by an interruptible interval."""

    role = Role.verifier

    def __init__(
        self,
        *args,
        interval_s: float,
        detector: RefactorPredicate | None = None,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._interval_s = interval_s
        self._detector = detector or KeywordRefactorDetector()

    async def _run(self) -> None:
        while not self._stop.is_set:
            self._enter(LoopPhase.idle)
            self._log.info("verification_started")

            response = await self._invoke()
            if response is not None:
                self._enter(LoopPhase.updating)
                record = verifier_update(response, self._detector)
                await self._writer.replace(record)
                self._log.info(
                    "verification_finished",
                    verdict=record.verdict.value,
                    blockers=len(record.blockers),
                    refactor_recommended=record.refactor_recommended,
                )
                if self._check_completion():
                    return
                if record.verdict == Verdict.FAIL and record.refactor_recommended:
                    self._trigger.set(self.role.value)

            self._enter(LoopPhase.waiting)
            await self._stop.wait(self._interval_s)


class RefactorerLoop(RoleLoop):
    """Polls the trigger; runs at most once per consumed request."""

    role = Role.refactorer

    def __init__(self, *args, poll_s: float = 1.0, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._poll_s = poll_s

    async def _run(self) -> None:
        while not self._stop.is_set:
            source = self._trigger.consume()
            if source is None:
                self._enter(LoopPhase.waiting)
                await self._stop.wait(self._poll_s)
                continue

            if self._store.state.verifier.verdict == Verdict.PASS:
                self._log.info("refactor_skipped", reason="verdict_pass", requested_by=source)
                continue

            self._log.info("refactor_triggered", requested_by=source)
            response = await self._invoke()
            if response is None:
                continue

            self._enter(LoopPhase.updating)
            record = refactorer_update(response, self._writer.current())
            await self._writer.replace(record)
            self._log.info("refactor_finished", ran_count=record.ran_count)
