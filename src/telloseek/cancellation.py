"""
Cooperative cancellation for the mission control loop.

The loop checks the token at the top of every cycle and after every
suspension point. ``guard()`` and ``sleep()`` wake up as soon as the token
fires, so a cancelled mission never waits out a full capture or delay.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

T = TypeVar('T')


class MissionCancelled(Exception):
    """Raised inside the control loop once its token has been cancelled."""

    def __init__(self, reason: str = "cancelled"):
        super().__init__(reason)
        self.reason = reason


class CancellationToken:
    """One-shot cancellation flag bound to the running event loop."""

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """Fire the token. The first reason wins; later calls are no-ops."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise MissionCancelled(self._reason or "cancelled")

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, raising MissionCancelled if the token fires first."""
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the token fires first.

        On cancellation the pending work is cancelled and MissionCancelled is
        raised; its result, if any arrives later, is discarded.
        """
        self.raise_if_cancelled()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not work.done():
                work.cancel()
        if work.done() and not work.cancelled():
            if self.cancelled:
                # consume the outcome so no "exception never retrieved" warning leaks
                work.exception()
                self.raise_if_cancelled()
            return work.result()
        self.raise_if_cancelled()
        return await work
