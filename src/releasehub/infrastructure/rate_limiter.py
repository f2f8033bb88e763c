"""
Sliding-window Rate Limiter for Spotify API calls.

Hey future me - das ist der Gatekeeper für ALLE Spotify Requests! Every outbound call
passes through acquire() before it is sent.

ALGORITHM: Sliding window
- We keep the timestamps of the last admissions
- On acquire(): drop timestamps older than the window
- Fewer than max_requests left? Admit now and record the timestamp
- Otherwise: sleep until the OLDEST timestamp leaves the window (+ small safety margin)
  and check again

No FIFO guarantee between waiting tasks! The only promise is that all admitted calls
together never exceed max_requests per window.

Adaptive delay and 429 handling are NOT here - they live in the RetryExecutor.
This class only enforces the hard ceiling.

USAGE:
    limiter = RateLimiter.for_spotify(clock)

    async with limiter:
        response = await client.get(url)
"""

import logging
from collections import deque
from dataclasses import dataclass

from releasehub.config import RateLimitSettings
from releasehub.domain.ports import IClock

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter.

    Hey future me - the defaults mirror Spotify's soft cap: 15 requests per second,
    plus 25ms margin so we never admit right on the window edge.
    """

    max_requests: int = 15
    interval_seconds: float = 1.0
    safety_margin_seconds: float = 0.025


class RateLimiter:
    """Sliding-window admission control.

    Attributes:
        config: Rate limiter configuration
        _timestamps: Admission times (monotonic) inside the current window
    """

    def __init__(
        self, clock: IClock, config: RateLimiterConfig | None = None, name: str = "default"
    ) -> None:
        self.config = config or RateLimiterConfig()
        self._clock = clock
        self._timestamps: deque[float] = deque()
        self._name = name

    @classmethod
    def for_spotify(
        cls, clock: IClock, settings: RateLimitSettings | None = None
    ) -> "RateLimiter":
        """Create rate limiter configured from RATE_LIMIT_* settings."""
        settings = settings or RateLimitSettings()
        return cls(
            clock,
            RateLimiterConfig(
                max_requests=settings.max_requests_per_interval,
                interval_seconds=settings.request_interval_seconds,
                safety_margin_seconds=settings.safety_margin_seconds,
            ),
            name="spotify",
        )

    def _evict_expired(self, now: float) -> None:
        """Drop admissions that left the window."""
        while self._timestamps and now - self._timestamps[0] >= self.config.interval_seconds:
            self._timestamps.popleft()

    # Hey future me - there is NO await between the count check and the append, so under
    # asyncio nobody can sneak in between. That's why we don't need a lock here.
    async def acquire(self) -> None:
        """Wait until one more request fits in the window, then record it."""
        while True:
            now = self._clock.monotonic()
            self._evict_expired(now)

            if len(self._timestamps) < self.config.max_requests:
                self._timestamps.append(now)
                return

            oldest = self._timestamps[0]
            wait_time = (
                self.config.interval_seconds - (now - oldest) + self.config.safety_margin_seconds
            )
            logger.debug(
                f"RateLimiter[{self._name}]: window full, waiting {wait_time:.3f}s"
            )
            await self._clock.sleep(wait_time)

    async def __aenter__(self) -> "RateLimiter":
        """Enter async context - acquire admission."""
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        """Exit async context."""
        pass

    @property
    def in_window(self) -> int:
        """Admissions currently counted in the window (for debugging)."""
        self._evict_expired(self._clock.monotonic())
        return len(self._timestamps)

    @property
    def name(self) -> str:
        """Get limiter name for logging."""
        return self._name


__all__ = [
    "RateLimiter",
    "RateLimiterConfig",
]
