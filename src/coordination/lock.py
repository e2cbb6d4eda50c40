from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


class WorkspaceLock:
    """FIFO mutual exclusion for everything that touches the workspace.

    Each caller chains onto the completion future of the previous caller,
    so operations run strictly in submission order and each one's effects
    are complete before the next starts. A failing operation still hands
    the lock to the next waiter. Not reentrant: calling run_exclusive from
    inside an operation deadlocks.
    """

    def __init__(self) -> None:
        self._tail: asyncio.Future[None] | None = None
        self._pending = 0

    @property
    def pending(self) -> int:
        """Operations submitted but not yet finished (running + queued)."""
        return self._pending

    async def run_exclusive(self, operation: Callable[[], Awaitable[T]]) -> T:
        prev = self._tail
        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._tail = done
        self._pending += 1
        try:
            if prev is not None and not prev.done():
                try:
                    await asyncio.shield(prev)
                except asyncio.CancelledError:
                    # Our slot must not open before the previous holder finishes
                    prev.add_done_callback(lambda _: _release(done))
                    raise
            try:
                return await operation()
            finally:
                _release(done)
        finally:
            self._pending -= 1


def _release(fut: asyncio.Future[None]) -> None:
    if not fut.done():
        fut.set_result(None)
