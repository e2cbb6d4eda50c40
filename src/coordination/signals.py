"""Coordination signals shared by the role loops.

RefactorTrigger: single-slot request for a Refactorer pass.
Termination: one-shot broadcast that ends the run.
"""

from __future__ import annotations

import asyncio
import contextlib

import structlog

logger = structlog.get_logger()


class RefactorTrigger:
    """Single-slot signal with read-and-clear consumption.

    Any number of set() calls before a consume() collapse into one pending
    request. consume() checks and clears the slot without yielding to the
    event loop, so a set() from another task is either observed now or left
    pending for the next poll, never lost.
    """

    def __init__(self) -> None:
        self._pending = False
        self._requested_by: str | None = None

    @property
    def pending(self) -> bool:
        return self._pending

    def set(self, source: str) -> None:
        if not self._pending:
            self._requested_by = source
            logger.info("refactor_trigger_set", source=source)
        self._pending = True

    def consume(self) -> str | None:
        """Atomically read and clear. Returns the first requester, or None if unset."""
        if not self._pending:
            return None
        source, self._requested_by = self._requested_by, None
        self._pending = False
        return source


class Termination:
    """Monotonic cancellation token observed by every role loop.

    fire() is idempotent; the first caller's reason is kept. Any pending
    wait() resolves as soon as the token fires. A child token fires when
    its parent does but may also be fired alone, which stops only the loops
    that observe the child.
    """

    def __init__(self, *, parent: Termination | None = None) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None
        self._children: list[Termination] = []
        if parent is not None:
            parent._children.append(self)
            if parent.is_set:
                self.fire(parent.reason or "parent")

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def child(self) -> Termination:
        return Termination(parent=self)

    def fire(self, reason: str) -> bool:
        """Raise the signal. Returns True only for the call that actually raised it."""
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        for child in self._children:
            child.fire(reason)
        return True

    async def wait(self, timeout: float) -> bool:
        """Sleep up to timeout seconds, waking early if fired. Returns is_set."""
        if self._event.is_set():
            return True
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._event.wait(), timeout)
        return self._event.is_set()
