"""
P24 Client - Token Bucket Rate Limiter.

One limiter instance is shared by every request of a transport, so the
request budget is global to the process no matter how many statement
sub-ranges are in flight. Tokens are handed out as reservations: a
caller books a token for a point in time and sleeps until it is due.
Cancelled waits give their token back.
"""

import asyncio
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional


logger = logging.getLogger(__name__)


DEFAULT_REQUESTS_PER_SECOND = 2.0
DEFAULT_BURST = 2


@dataclass(frozen=True)
class Reservation:
    """A booked token."""

    time_to_act: float
    """Monotonic time at which the token may be used."""

    def delay(self, now: float) -> float:
        return max(0.0, self.time_to_act - now)


class TokenBucket:
    """
    Token bucket admitting `rate` operations per second with bursts of `burst`.

    Safe for concurrent use from any number of tasks (and threads).
    """

    def __init__(
        self,
        rate: float = DEFAULT_REQUESTS_PER_SECOND,
        burst: int = DEFAULT_BURST,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if burst < 1:
            raise ValueError(f"burst should be >= 1, got {burst}")
        if rate <= 0:
            raise ValueError(f"rate should be > 0, got {rate}")

        self.rate = float(rate)
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last = clock()
        self._last_event = self._last
        self._lock = threading.Lock()

    @classmethod
    def unlimited(cls) -> "TokenBucket":
        """Limiter that never waits."""
        return cls(rate=math.inf, burst=1)

    @property
    def is_unlimited(self) -> bool:
        return math.isinf(self.rate)

    def _advance(self, now: float) -> float:
        last = min(self._last, now)
        return min(float(self.burst), self._tokens + (now - last) * self.rate)

    def reserve(self, at: Optional[float] = None) -> Reservation:
        """
        Book one token for time `at` (default: now).

        Returns:
            Reservation; its delay is at least `at - now`
        """
        if self.is_unlimited:
            now = self._clock()
            return Reservation(time_to_act=now if at is None else max(at, now))

        with self._lock:
            now = self._clock()
            at = now if at is None else max(at, now)

            tokens = self._advance(at) - 1.0
            wait = -tokens / self.rate if tokens < 0 else 0.0
            reservation = Reservation(time_to_act=at + wait)

            # may move back when a future booking is followed by one for now
            self._tokens = tokens
            self._last = at
            self._last_event = max(self._last_event, reservation.time_to_act)

        return reservation

    def cancel(self, reservation: Reservation) -> None:
        """Give back the token of a reservation that will not be used."""
        if self.is_unlimited:
            return

        with self._lock:
            now = self._clock()
            if reservation.time_to_act < now:
                return
            # later reservations already count on this token
            restore = 1.0 - (self._last_event - reservation.time_to_act) * self.rate
            if restore <= 0:
                return
            self._tokens = min(float(self.burst), self._advance(now) + restore)
            self._last = now

    async def acquire(self, delay: float = 0.0) -> float:
        """
        Wait for a token, no earlier than `delay` seconds from now.

        Cancellation while waiting returns the token to the bucket.

        Returns:
            Seconds actually waited
        """
        now = self._clock()
        reservation = self.reserve(at=now + max(0.0, delay))
        wait = reservation.delay(now)
        if wait <= 0:
            return 0.0

        if wait > delay:
            logger.debug(f"[rate_limiter] Waiting {wait:.3f}s for a token")
        try:
            await asyncio.sleep(wait)
        except asyncio.CancelledError:
            self.cancel(reservation)
            raise
        return wait

    def __repr__(self) -> str:
        return f"<TokenBucket(rate={self.rate}, burst={self.burst})>"
