# Hey future me - this is THE wrapper every Spotify call goes through!
#
# One attempt = rate limiter admission → adaptive delay (+ jitter) → the call.
#
# Three DIFFERENT failure paths, don't merge them:
# - 429: Spotify TELLS us how long to wait (Retry-After). We sleep hint+1s and slow down
#   the adaptive delay (x1.5). If the hint is absurd (> max_retry_after_seconds) we give
#   up immediately with RateLimitExceededError - freezing the app for 10 minutes is worse.
# - Network blips (reset/timeout/aborted): exponential 2^attempt * 2s, NetworkError at the end.
# - Anything else HTTP: exponential 2^attempt * 1s, the last error is re-raised unchanged.
#
# On success the adaptive delay decays x0.9 back toward the base delay, so we speed
# back up after a quiet period.
"""Retry/backoff executor for rate-limited HTTP calls."""

from __future__ import annotations

import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx

from releasehub.config import RateLimitSettings
from releasehub.domain.exceptions import NetworkError, RateLimitExceededError
from releasehub.domain.ports import IClock
from releasehub.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Connection reset / timeout / aborted mid-response
NETWORK_ERRORS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)

DELAY_DECAY = 0.9
DELAY_GROWTH = 1.5


@dataclass
class RetryStats:
    """Counters for monitoring how hard we are pushing Spotify."""

    calls: int = 0
    successes: int = 0
    failures: int = 0
    retries: int = 0
    rate_limited: int = 0
    total_backoff_seconds: float = 0.0

    def get_stats(self) -> dict[str, Any]:
        """Get all counters as a dictionary."""
        return {
            "calls": self.calls,
            "successes": self.successes,
            "failures": self.failures,
            "retries": self.retries,
            "rate_limited": self.rate_limited,
            "total_backoff_seconds": round(self.total_backoff_seconds, 2),
        }


class RetryExecutor:
    """Runs zero-argument async calls with rate limiting, adaptive delay and retries."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        clock: IClock,
        settings: RateLimitSettings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._rate_limiter = rate_limiter
        self._clock = clock
        self._settings = settings or RateLimitSettings()
        self._rng = rng or random.Random()
        self._current_delay = self._settings.base_delay_seconds
        self.stats = RetryStats()

    @property
    def current_delay(self) -> float:
        """Current adaptive inter-call delay in seconds."""
        return self._current_delay

    def _jitter(self) -> float:
        return self._rng.random() * self._current_delay * self._settings.jitter_ratio

    def _on_success(self) -> None:
        self._current_delay = max(
            self._settings.base_delay_seconds, self._current_delay * DELAY_DECAY
        )
        self.stats.successes += 1

    def _parse_retry_after(self, response: httpx.Response) -> int:
        """Read Retry-After (seconds), falling back to the configured default."""
        raw = response.headers.get("Retry-After")
        if raw is None:
            return self._settings.default_retry_after_seconds
        try:
            value = int(raw.strip())
        except ValueError:
            return self._settings.default_retry_after_seconds
        return value if value >= 0 else self._settings.default_retry_after_seconds

    # Hey future me - we sleep one second more than Spotify asks for.
    # Retry-After: 3 means we sleep 4 seconds before the next attempt.
    async def _handle_rate_limit(self, response: httpx.Response) -> int:
        requested_wait = self._parse_retry_after(response)

        if requested_wait > self._settings.max_retry_after_seconds:
            minutes = -(-requested_wait // 60)
            self.stats.failures += 1
            raise RateLimitExceededError(
                "Spotify rate limit exceeded. Please try again in approximately "
                f"{minutes} minute{'s' if minutes != 1 else ''}.",
                retry_after_seconds=requested_wait,
            )

        logger.warning(f"Rate limited by Spotify, waiting {requested_wait + 1}s")
        self.stats.rate_limited += 1
        self.stats.total_backoff_seconds += requested_wait + 1
        await self._clock.sleep(requested_wait + 1)
        self._current_delay = min(
            self._current_delay * DELAY_GROWTH, self._settings.max_delay_seconds
        )
        return requested_wait

    async def _backoff(self, seconds: float) -> None:
        self.stats.retries += 1
        self.stats.total_backoff_seconds += seconds
        await self._clock.sleep(seconds)

    async def admit(self) -> None:
        """Take a rate limiter slot for a request sent outside execute() (token replay)."""
        await self._rate_limiter.acquire()

    async def execute(self, call: Callable[[], Awaitable[T]]) -> T:
        """Execute a call with the full retry policy.

        Args:
            call: Zero-argument coroutine factory, invoked once per attempt

        Returns:
            Whatever the call returns

        Raises:
            RateLimitExceededError: Retry-After above the ceiling, or 429 on every attempt
            NetworkError: Network failures on every attempt
            httpx.HTTPError: Last non-network HTTP failure, unchanged
        """
        max_attempts = self._settings.max_attempts
        last_retry_after: int | None = None
        self.stats.calls += 1

        for attempt in range(max_attempts):
            is_last_attempt = attempt == max_attempts - 1
            try:
                await self._rate_limiter.acquire()
                await self._clock.sleep(self._current_delay + self._jitter())
                result = await call()
                self._on_success()
                return result

            except httpx.HTTPStatusError as e:
                if e.response.status_code == 429:
                    last_retry_after = await self._handle_rate_limit(e.response)
                    continue

                if is_last_attempt:
                    self.stats.failures += 1
                    raise

                wait_time = 2**attempt * 1.0
                logger.info(
                    f"API call failed with {e.response.status_code}, "
                    f"retrying in {wait_time:.0f}s (attempt {attempt + 1}/{max_attempts})"
                )
                await self._backoff(wait_time)

            except NETWORK_ERRORS as e:
                if is_last_attempt:
                    self.stats.failures += 1
                    raise NetworkError(
                        f"Network error after {max_attempts} attempts: "
                        f"{type(e).__name__}: {e}",
                        attempts=max_attempts,
                    ) from e

                wait_time = 2**attempt * 2.0
                logger.info(
                    f"Network error ({type(e).__name__}), retrying in {wait_time:.0f}s "
                    f"(attempt {attempt + 1}/{max_attempts})"
                )
                await self._backoff(wait_time)

            except httpx.HTTPError as e:
                if is_last_attempt:
                    self.stats.failures += 1
                    raise

                wait_time = 2**attempt * 1.0
                logger.info(
                    f"API call failed ({type(e).__name__}), retrying in {wait_time:.0f}s"
                )
                await self._backoff(wait_time)

        # Only reachable when the final attempt was a 429
        self.stats.failures += 1
        raise RateLimitExceededError(
            f"Spotify kept rate limiting after {max_attempts} attempts.",
            retry_after_seconds=last_retry_after,
        )


__all__ = [
    "NETWORK_ERRORS",
    "RetryExecutor",
    "RetryStats",
]
