"""
Cancellation tokens for narration sessions.

Each narration session owns one token. Teardown cancels the token, and
every await the session makes goes through ``guard`` so that a superseded
session stops at its next suspension point instead of acting on late
results.

Classes:
    SessionCancelled: Raised inside a session whose token was cancelled
    CancellationToken: One-shot cancellation signal
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

T = TypeVar("T")


class SessionCancelled(Exception):
    """The awaiting session has been torn down."""

    def __init__(self, reason: str = ""):
        super().__init__(reason or "session cancelled")
        self.reason = reason


class CancellationToken:
    """
    One-shot signal shared by everything a narration session starts.

    Example:
        >>> token = CancellationToken()
        >>> audio = await token.guard(asyncio.to_thread(narrator.synthesize, text))
        >>> token.cancel("superseded")   # from elsewhere: guard raises SessionCancelled
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "") -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the token is cancelled first.

        When the token wins the race the pending work is cancelled and its
        eventual result is discarded.

        Raises:
            SessionCancelled: If the token is (or becomes) cancelled
        """
        work = asyncio.ensure_future(awaitable)
        if self._event.is_set():
            work.cancel()
            raise SessionCancelled(self.reason or "")

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not work.done():
                work.cancel()

        if work.done() and not work.cancelled() and not self._event.is_set():
            return work.result()

        if work.done() and not work.cancelled():
            # Retrieve so a late failure is not reported as never retrieved.
            work.exception()
        raise SessionCancelled(self.reason or "")
