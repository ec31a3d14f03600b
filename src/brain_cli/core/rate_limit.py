"""Client-side token-bucket rate limiter.

Notion allows an average of three requests per second per integration.
Every request made by ``NotionClient`` first takes a token from a
``TokenBucket``; when the bucket is empty the caller sleeps until a token
has been refilled.

The clock and sleep functions are injectable so tests can drive the
bucket without real waiting.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class TokenBucket:
    """Token bucket refilled continuously at ``rate`` tokens per second.

    Args:
        rate: Tokens added per second. Must be positive.
        capacity: Maximum burst size. Defaults to ``max(1, rate)``.
        clock: Monotonic time source returning seconds.
        sleep: Function used to wait for a number of seconds.

    Raises:
        ValueError: If ``rate`` or ``capacity`` is not positive.
    """

    def __init__(
        self,
        rate: float,
        capacity: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if rate <= 0:
            raise ValueError(f"Rate must be positive, got {rate}")
        if capacity is None:
            capacity = max(1.0, rate)
        if capacity <= 0:
            raise ValueError(f"Capacity must be positive, got {capacity}")

        self.rate = rate
        self.capacity = capacity
        self._clock = clock
        self._sleep = sleep
        self._tokens = capacity
        self._last = clock()

    @property
    def available(self) -> float:
        """Tokens currently in the bucket (after refilling)."""
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last)
        self._last = now
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)

    def acquire(self, tokens: float = 1.0) -> float:
        """Take *tokens* from the bucket, sleeping until they are available.

        Args:
            tokens: Number of tokens to take. Cannot exceed ``capacity``.

        Returns:
            Seconds spent waiting (0.0 when a token was immediately free).

        Raises:
            ValueError: If *tokens* exceeds the bucket capacity.
        """
        if tokens > self.capacity:
            raise ValueError(
                f"Cannot acquire {tokens} tokens from a bucket of capacity {self.capacity}"
            )

        self._refill()
        waited = 0.0
        if self._tokens < tokens:
            waited = (tokens - self._tokens) / self.rate
            logger.debug("Rate limit reached, waiting %.3fs", waited)
            self._sleep(waited)
            self._refill()
        self._tokens -= tokens
        return waited
