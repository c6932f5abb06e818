"""
P24 Client - Request context.

A RequestContext is the caller-supplied cancellation signal of one
client call. It can be cancelled explicitly or expire at a deadline, and
every await the client performs on behalf of the call (limiter waits,
HTTP attempts, backoff sleeps, sibling sub-range requests) runs under it.
"""

import asyncio
import logging
import time
from typing import Awaitable, Optional, TypeVar

from p24_client.exceptions import RequestCancelledError


logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestContext:
    """
    Cancellation signal with an optional deadline.

    Usage:
        context = RequestContext(timeout=30.0)
        balance = await client.get_balance(query, context)

        # from another task
        context.cancel()
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._cancelled = asyncio.Event()
        self.deadline: Optional[float] = None
        if timeout is not None:
            self.deadline = time.monotonic() + timeout

    @classmethod
    def background(cls) -> "RequestContext":
        """Context that is never cancelled and has no deadline."""
        return cls()

    def cancel(self) -> None:
        """Cancel every operation running under this context."""
        if not self._cancelled.is_set():
            logger.debug("[context] Cancelled")
        self._cancelled.set()

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    @property
    def deadline_exceeded(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set() or self.deadline_exceeded

    def error(self) -> RequestCancelledError:
        if self.deadline_exceeded and not self._cancelled.is_set():
            return RequestCancelledError("request deadline exceeded", deadline_exceeded=True)
        return RequestCancelledError()

    def check(self) -> None:
        """
        Raises:
            RequestCancelledError: If the context is already done
        """
        if self.cancelled:
            raise self.error()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await awaitable unless the context is done first.

        The inner work is cancelled and awaited before
        RequestCancelledError is raised.

        Raises:
            RequestCancelledError: If the context is cancelled or expires
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise self.error()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._cancelled.wait())
        try:
            await asyncio.wait(
                {task, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            await asyncio.wait({task})
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()

        task.cancel()
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"[context] Cancelled work failed: {task.exception()!r}")
        raise self.error()
