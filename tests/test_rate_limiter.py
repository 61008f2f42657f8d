"""
Tests for the token bucket limiter
Refill arithmetic, start/stop lifecycle, waiting without spinning and no double-spend
"""

import asyncio
import time

import pytest

from doh_flag_resolver.rate_limiter import TokenBucketLimiter


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class TestLimiterConfiguration:
    """Test limiter construction and validation"""

    def test_defaults(self):
        """Test default bucket matches one token per two seconds"""
        limiter = TokenBucketLimiter()
        assert limiter.bucket_size == 1
        assert limiter.tokens_per_interval == 1
        assert limiter.interval == 2.0
        assert limiter.is_stopped
        assert limiter.tokens == 1  # bucket starts full

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"bucket_size": 0},
            {"tokens_per_interval": -1},
            {"interval": 0},
            {"interval": -2.0},
        ],
    )
    def test_invalid_configuration(self, kwargs):
        """Test invalid parameters are rejected"""
        with pytest.raises(ValueError):
            TokenBucketLimiter(**kwargs)

    def test_zero_refill_allowed(self):
        """Test a zero refill rate is accepted (callers guard with timeouts)"""
        limiter = TokenBucketLimiter(tokens_per_interval=0)
        assert limiter.tokens_per_interval == 0

    def test_start_in_running_state(self):
        """Test stopped=False starts accruing immediately"""
        limiter = TokenBucketLimiter(stopped=False)
        assert not limiter.is_stopped

    def test_stats(self):
        """Test limiter statistics"""
        limiter = TokenBucketLimiter(name="google")
        stats = limiter.get_stats()
        assert stats["name"] == "google"
        assert stats["bucket_size"] == 1
        assert stats["current_tokens"] == 1
        assert stats["running"] is False


class TestRefill:
    """Test lazy refill arithmetic with a controlled clock"""

    def test_no_refill_while_stopped(self):
        """Test tokens only accrue while running"""
        clock = FakeClock()
        limiter = TokenBucketLimiter(bucket_size=3, clock=clock)
        assert limiter.try_remove_tokens(3)

        clock.advance(100)
        assert limiter.tokens == 0

    def test_refill_per_interval(self):
        """Test one token is added per elapsed interval"""
        clock = FakeClock()
        limiter = TokenBucketLimiter(bucket_size=5, interval=2.0, clock=clock)
        limiter.start()
        assert limiter.try_remove_tokens(5)

        clock.advance(1.9)
        assert limiter.tokens == 0
        clock.advance(0.1)
        assert limiter.tokens == 1
        clock.advance(4.0)
        assert limiter.tokens == 3

    def test_tokens_never_exceed_capacity(self):
        """Test refill is capped at bucket size"""
        clock = FakeClock()
        limiter = TokenBucketLimiter(bucket_size=2, tokens_per_interval=5, clock=clock)
        limiter.start()
        clock.advance(60)
        assert limiter.tokens == 2

    def test_partial_interval_carries_over(self):
        """Test refill stays aligned to interval boundaries"""
        clock = FakeClock()
        limiter = TokenBucketLimiter(bucket_size=10, interval=2.0, clock=clock)
        limiter.start()
        assert limiter.try_remove_tokens(10)

        clock.advance(3.0)  # one boundary crossed, 1s into the next
        assert limiter.tokens == 1
        assert limiter.time_until_refill() == pytest.approx(1.0)
        clock.advance(1.0)
        assert limiter.tokens == 2

    def test_start_is_idempotent(self):
        """Test a second start() does not reset the refill schedule"""
        clock = FakeClock()
        limiter = TokenBucketLimiter(clock=clock)
        limiter.start()
        assert limiter.try_remove_tokens(1)

        clock.advance(1.5)
        limiter.start()
        clock.advance(0.5)
        assert limiter.tokens == 1

    def test_stop_freezes_tokens(self):
        """Test stop() keeps current tokens and halts accrual"""
        clock = FakeClock()
        limiter = TokenBucketLimiter(bucket_size=4, clock=clock)
        limiter.start()
        assert limiter.try_remove_tokens(4)
        clock.advance(2.0)
        limiter.stop()

        clock.advance(100)
        assert limiter.is_stopped
        assert limiter.tokens == 1


class TestTryRemoveTokens:
    """Test token deduction"""

    def test_single_success_per_interval(self):
        """Test at most one removal succeeds per interval with capacity 1"""
        clock = FakeClock()
        limiter = TokenBucketLimiter(bucket_size=1, interval=2.0, clock=clock)
        limiter.start()

        for _ in range(3):
            results = [limiter.try_remove_tokens(1) for _ in range(20)]
            assert results.count(True) == 1
            clock.advance(2.0)

    def test_removal_failure_is_not_an_error(self):
        """Test an empty bucket reports False"""
        limiter = TokenBucketLimiter()
        assert limiter.try_remove_tokens(1) is True
        assert limiter.try_remove_tokens(1) is False

    def test_remove_more_than_available(self):
        """Test a multi-token removal is all-or-nothing"""
        limiter = TokenBucketLimiter(bucket_size=3)
        assert limiter.try_remove_tokens(2)
        assert not limiter.try_remove_tokens(2)
        assert limiter.tokens == 1


class TestAwaitTokens:
    """Test waiting for token availability"""

    async def test_returns_immediately_when_available(self):
        """Test no wait when the bucket already holds tokens"""
        limiter = TokenBucketLimiter(interval=10.0, stopped=False)
        await asyncio.wait_for(limiter.await_tokens(1), timeout=0.5)
        assert limiter.tokens == 1  # waiting does not consume

    async def test_waits_for_next_refill(self):
        """Test waiting on an empty bucket lasts until the refill boundary"""
        limiter = TokenBucketLimiter(interval=0.2, stopped=False)
        assert limiter.try_remove_tokens(1)

        start = time.monotonic()
        await asyncio.wait_for(limiter.await_tokens(1), timeout=2.0)
        elapsed = time.monotonic() - start

        assert elapsed >= 0.15
        assert limiter.tokens == 1

    async def test_waits_for_start_when_stopped(self):
        """Test an empty stopped bucket waits for start() and a refill"""
        limiter = TokenBucketLimiter(interval=0.05)
        assert limiter.try_remove_tokens(1)

        asyncio.get_running_loop().call_later(0.05, limiter.start)
        await asyncio.wait_for(limiter.await_tokens(1), timeout=2.0)
        assert not limiter.is_stopped

    async def test_zero_refill_never_resolves(self):
        """Test a zero-rate bucket keeps waiting instead of spinning"""
        limiter = TokenBucketLimiter(tokens_per_interval=0, interval=0.05, stopped=False)
        assert limiter.try_remove_tokens(1)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(limiter.await_tokens(1), timeout=0.2)

    async def test_impossible_count_rejected(self):
        """Test waiting for more tokens than the bucket can hold"""
        limiter = TokenBucketLimiter(bucket_size=1)
        with pytest.raises(ValueError):
            await limiter.await_tokens(2)

    async def test_concurrent_waiters_never_double_spend(self):
        """Test four waiters on a one-token bucket need three refills"""
        interval = 0.1
        start = time.monotonic()
        limiter = TokenBucketLimiter(interval=interval, stopped=False)
        taken_at = []

        async def waiter():
            while True:
                await limiter.await_tokens(1)
                if limiter.try_remove_tokens(1):
                    taken_at.append(time.monotonic())
                    return

        await asyncio.wait_for(asyncio.gather(*(waiter() for _ in range(4))), timeout=3.0)

        assert len(taken_at) == 4
        # Each removal after the first needs its own refill boundary
        for i, taken in enumerate(sorted(taken_at)):
            assert taken - start >= i * interval - 0.01
