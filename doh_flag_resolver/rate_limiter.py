"""
Token bucket rate limiting for DoH providers
Each upstream provider owns one bucket, shared by every resolution in the process
"""

import asyncio
import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)


class TokenBucketLimiter:
    """
    Token bucket with interval-aligned refill

    The bucket starts full and stopped. Tokens accrue only while running:
    every full interval adds tokens_per_interval tokens, never exceeding
    bucket_size. Waiting for tokens and taking them are separate steps, so
    several waiters can wake for the same token and all but one will fail
    to remove it.
    """

    def __init__(
        self,
        bucket_size: int = 1,
        tokens_per_interval: int = 1,
        interval: float = 2.0,
        stopped: bool = True,
        name: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize token bucket

        Args:
            bucket_size: Maximum number of tokens held (default: 1)
            tokens_per_interval: Tokens added per elapsed interval (default: 1)
            interval: Refill interval in seconds (default: 2.0)
            stopped: Create in the stopped state (default: True)
            name: Label used in logs and stats
            clock: Monotonic time source in seconds
        """
        if bucket_size < 1:
            raise ValueError("bucket_size must be at least 1")
        if tokens_per_interval < 0:
            raise ValueError("tokens_per_interval cannot be negative")
        if interval <= 0:
            raise ValueError("interval must be positive")

        self.bucket_size = bucket_size
        self.tokens_per_interval = tokens_per_interval
        self.interval = interval
        self.name = name or "limiter"
        self._clock = clock
        self._tokens = bucket_size
        self._running = False
        self._last_refill = 0.0
        self._started = asyncio.Event()

        if not stopped:
            self.start()

    @property
    def is_stopped(self) -> bool:
        return not self._running

    @property
    def tokens(self) -> int:
        """Current token count after applying any pending refill"""
        self._refill()
        return self._tokens

    def start(self) -> None:
        """Begin accruing tokens. Calling start() on a running bucket does nothing."""
        if self._running:
            return
        self._running = True
        self._last_refill = self._clock()
        self._started.set()
        logger.debug("Started token bucket %s", self.name)

    def stop(self) -> None:
        """Stop accruing tokens, keeping whatever the bucket currently holds"""
        if not self._running:
            return
        self._refill()
        self._running = False
        self._started.clear()
        logger.debug("Stopped token bucket %s", self.name)

    def _refill(self) -> None:
        if not self._running:
            return
        elapsed = self._clock() - self._last_refill
        if elapsed < self.interval:
            return
        ticks = int(elapsed // self.interval)
        self._tokens = min(
            self.bucket_size, self._tokens + ticks * self.tokens_per_interval
        )
        self._last_refill += ticks * self.interval

    def time_until_refill(self) -> float:
        """Seconds until the next refill boundary (0.0 when stopped)"""
        if not self._running:
            return 0.0
        self._refill()
        return max(0.0, self._last_refill + self.interval - self._clock())

    async def await_tokens(self, count: int = 1) -> None:
        """
        Wait until at least count tokens are available, without taking them

        Sleeps until the next refill boundary between checks, and on a
        stopped bucket waits for start().

        Args:
            count: Number of tokens to wait for

        Raises:
            ValueError: If count can never be satisfied by this bucket
        """
        if count > self.bucket_size:
            raise ValueError(
                f"Cannot wait for {count} tokens on {self.name} "
                f"(bucket size {self.bucket_size})"
            )
        while True:
            self._refill()
            if self._tokens >= count:
                return
            if not self._running:
                await self._started.wait()
                continue
            await asyncio.sleep(self.time_until_refill())

    def try_remove_tokens(self, count: int = 1) -> bool:
        """
        Remove count tokens if the bucket holds them

        There is no suspension point between the check and the deduction,
        so concurrent waiters on one event loop can never double-spend.

        Returns:
            True if the tokens were taken, False otherwise
        """
        self._refill()
        if self._tokens < count:
            return False
        self._tokens -= count
        return True

    def get_stats(self) -> dict:
        """
        Get bucket statistics

        Returns:
            Dictionary with capacity, refill settings and current state
        """
        return {
            "name": self.name,
            "bucket_size": self.bucket_size,
            "tokens_per_interval": self.tokens_per_interval,
            "interval_seconds": self.interval,
            "current_tokens": self.tokens,
            "running": self._running,
        }

    def __repr__(self) -> str:
        return (
            f"TokenBucketLimiter(name={self.name!r}, bucket_size={self.bucket_size}, "
            f"tokens_per_interval={self.tokens_per_interval}, interval={self.interval})"
        )
