"""
Token Bucket Rate Limiter Tests.
"""

import asyncio
import threading
import time

import pytest

from p24_client import TokenBucket


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================================
# RESERVATION TESTS
# ============================================================

class TestReserve:
    """Tests for TokenBucket.reserve."""

    def test_burst_is_immediate(self):
        """Test burst tokens are available without delay."""
        clock = FakeClock()
        bucket = TokenBucket(rate=2.0, burst=2, clock=clock)

        assert bucket.reserve().delay(clock()) == 0
        assert bucket.reserve().delay(clock()) == 0

    def test_rate_after_burst(self):
        """Test tokens beyond the burst are spaced by 1/rate."""
        clock = FakeClock()
        bucket = TokenBucket(rate=2.0, burst=2, clock=clock)
        bucket.reserve()
        bucket.reserve()

        assert bucket.reserve().delay(clock()) == pytest.approx(0.5)
        assert bucket.reserve().delay(clock()) == pytest.approx(1.0)

    def test_refill(self):
        """Test tokens refill with time up to the burst."""
        clock = FakeClock()
        bucket = TokenBucket(rate=2.0, burst=2, clock=clock)
        bucket.reserve()
        bucket.reserve()

        clock.advance(10.0)

        assert bucket.reserve().delay(clock()) == 0
        assert bucket.reserve().delay(clock()) == 0
        assert bucket.reserve().delay(clock()) == pytest.approx(0.5)

    def test_future_reservation(self):
        """Test a reservation for a future time waits at least until then."""
        clock = FakeClock()
        bucket = TokenBucket(rate=2.0, burst=2, clock=clock)

        reservation = bucket.reserve(at=clock() + 3.0)

        assert reservation.delay(clock()) == pytest.approx(3.0)

    def test_future_reservation_consumes_token(self):
        """Test backoff reservations draw from the shared budget."""
        clock = FakeClock()
        bucket = TokenBucket(rate=1.0, burst=1, clock=clock)

        bucket.reserve(at=clock() + 5.0)

        assert bucket.reserve().delay(clock()) == pytest.approx(1.0)

    def test_cancel_returns_token(self):
        """Test cancelling the latest reservation gives its token back."""
        clock = FakeClock()
        bucket = TokenBucket(rate=2.0, burst=1, clock=clock)
        bucket.reserve()
        pending = bucket.reserve()

        bucket.cancel(pending)

        assert bucket.reserve().delay(clock()) == pytest.approx(0.5)

    def test_future_reservation_does_not_stall_refill(self):
        """Test a token booked far ahead leaves later spaced requests unthrottled."""
        clock = FakeClock()
        bucket = TokenBucket(rate=2.0, burst=2, clock=clock)
        bucket.reserve(at=clock() + 30.0)

        delays = []
        for _ in range(5):
            delays.append(bucket.reserve().delay(clock()))
            clock.advance(5.0)

        assert delays == [0.0] * 5

    def test_invalid_arguments(self):
        """Test invalid rate or burst."""
        with pytest.raises(ValueError):
            TokenBucket(rate=0)
        with pytest.raises(ValueError):
            TokenBucket(burst=0)

    def test_unlimited(self):
        """Test unlimited bucket never waits."""
        bucket = TokenBucket.unlimited()

        assert all(bucket.reserve().delay(time.monotonic()) == 0 for _ in range(100))
        assert bucket.is_unlimited

    def test_thread_safety(self):
        """Test concurrent reservations from threads hand out distinct slots."""
        clock = FakeClock()
        bucket = TokenBucket(rate=10.0, burst=1, clock=clock)
        delays = []
        lock = threading.Lock()

        def reserve_many():
            for _ in range(50):
                delay = bucket.reserve().delay(clock())
                with lock:
                    delays.append(delay)

        threads = [threading.Thread(target=reserve_many) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(round(delay, 6) for delay in delays) == [round(i * 0.1, 6) for i in range(200)]


# ============================================================
# ACQUIRE TESTS
# ============================================================

class TestAcquire:
    """Tests for TokenBucket.acquire."""

    @pytest.mark.asyncio
    async def test_acquire_immediate(self):
        """Test acquire does not sleep when a token is available."""
        bucket = TokenBucket(rate=1.0, burst=1)

        assert await bucket.acquire() == 0.0

    @pytest.mark.asyncio
    async def test_acquire_waits(self):
        """Test acquire sleeps for the reservation delay."""
        bucket = TokenBucket(rate=20.0, burst=1)
        await bucket.acquire()

        waited = await bucket.acquire()

        assert waited == pytest.approx(0.05, abs=0.02)

    @pytest.mark.asyncio
    async def test_acquire_cancel_returns_token(self):
        """Test a cancelled wait gives its token back."""
        bucket = TokenBucket(rate=1.0, burst=1)
        await bucket.acquire()

        task = asyncio.ensure_future(bucket.acquire())
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        reservation = bucket.reserve()
        assert reservation.delay(time.monotonic()) < 1.5
