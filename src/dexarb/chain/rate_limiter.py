"""
Token bucket rate limiter for RPC requests.

Public JSON-RPC endpoints throttle aggressively; every call the chain
client makes draws from a shared bucket so that concurrent source
fetches stay under the provider's limit.
"""

import asyncio
import logging

from dexarb.config.constants import DEFAULT_REQUESTS_PER_SECOND
from dexarb.utils.time import monotonic_us


logger = logging.getLogger(__name__)


class TokenBucket:
    """
    Bucket of request tokens refilled continuously at a fixed rate.

    The balance is brought up to date lazily whenever it is read or
    drawn from, using the monotonic clock.
    """

    def __init__(self, capacity: int, refill_rate: float) -> None:
        """
        Create a full bucket.

        Args:
            capacity: Maximum number of tokens held.
            refill_rate: Tokens added per second.

        Raises:
            ValueError: If capacity is below one or the rate is not positive.
        """
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        if refill_rate <= 0:
            raise ValueError(f"refill_rate must be > 0, got {refill_rate}")

        self.capacity = capacity
        self.refill_rate = refill_rate
        self.tokens = float(capacity)
        self._updated_us = monotonic_us()
        self._lock = asyncio.Lock()

    def _top_up(self) -> None:
        now = monotonic_us()
        gained = (now - self._updated_us) / 1_000_000 * self.refill_rate
        self.tokens = min(float(self.capacity), self.tokens + gained)
        self._updated_us = now

    def _deficit(self, tokens: int) -> float:
        self._top_up()
        return max(tokens - self.tokens, 0.0)

    async def acquire(self, tokens: int = 1) -> None:
        """
        Take tokens, sleeping until the balance covers them.

        Callers queue on the lock, so a burst of concurrent requests
        drains at the refill rate instead of all waking at once.
        """
        async with self._lock:
            missing = self._deficit(tokens)
            if missing > 0:
                delay = missing / self.refill_rate
                logger.debug(f"Rate limited, waiting {delay:.3f}s for {tokens} token(s)")
                await asyncio.sleep(delay)
                self._top_up()
            self.tokens -= tokens

    async def try_acquire(self, tokens: int = 1) -> bool:
        """Take tokens only if the balance already covers them."""
        async with self._lock:
            if self._deficit(tokens) > 0:
                return False
            self.tokens -= tokens
            return True


class RateLimiter:
    """Per-second request limiter with a burst allowance."""

    def __init__(
        self,
        requests_per_second: int = DEFAULT_REQUESTS_PER_SECOND,
        burst_multiplier: int = 2,
    ) -> None:
        self._requests_per_second = requests_per_second
        self._bucket = TokenBucket(
            capacity=requests_per_second * burst_multiplier,
            refill_rate=float(requests_per_second),
        )

    @property
    def requests_per_second(self) -> int:
        return self._requests_per_second

    @property
    def available(self) -> float:
        """Tokens left in the bucket as of the last draw."""
        return self._bucket.tokens

    async def acquire(self, weight: int = 1) -> None:
        """Wait for permission to send a request of the given weight."""
        await self._bucket.acquire(weight)

    async def try_acquire(self, weight: int = 1) -> bool:
        return await self._bucket.try_acquire(weight)
