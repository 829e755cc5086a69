"""
Rate limiters for external catalog APIs.

Hey future me - every catalog client owns exactly ONE limiter instance, shared by all its
callers. Two policies:

SLIDING WINDOW (TMDB):
- At most max_requests dispatches inside any window_seconds interval
- We remember the dispatch timestamps of the current window (a deque)
- When full: sleep until the oldest timestamp leaves the window, plus a small buffer
  (the buffer absorbs clock skew between us and the server)

FIXED DELAY (MusicBrainz):
- At least min_interval_seconds between two consecutive dispatches, no bursts
- MusicBrainz says 1 req/sec and IP-bans offenders, we use 1.5s to be safe

429 HANDLING:
- Both limiters support pause(seconds): every caller waits until the pause is over
- Clients call it with the Retry-After value so the whole pipeline backs off, not just
  the one request that got the 429

USAGE:
    limiter = SlidingWindowRateLimiter.for_tmdb()

    async with limiter:
        response = await client.get(url)

Clock and sleep are injectable so tests can run 100 requests through a 40/s limiter in
zero real time.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiters.

    Sliding window uses max_requests/window_seconds/buffer_seconds, fixed delay uses
    min_interval_seconds. max_pause_seconds caps Retry-After values, some APIs send
    absurd ones.
    """

    max_requests: int = 40
    window_seconds: float = 1.0
    buffer_seconds: float = 0.025
    min_interval_seconds: float = 1.5
    max_pause_seconds: float = 120.0


class RateLimiter(ABC):
    """Common interface of all limiters.

    Implementations hold an asyncio.Lock WHILE waiting, so waiters are released in
    arrival order (FIFO) and the bookkeeping never sees two concurrent mutations.
    """

    name: str

    @abstractmethod
    async def acquire(self) -> None:
        """Wait until a request may be dispatched, then claim the slot."""

    @abstractmethod
    def pause(self, seconds: float) -> float:
        """Block all dispatches for the given time. Returns the effective pause."""

    @abstractmethod
    def reset(self) -> None:
        """Forget all history (tests, settings change)."""

    @abstractmethod
    def get_stats(self) -> dict[str, Any]:
        """Debug statistics."""

    async def __aenter__(self) -> "RateLimiter":
        """Enter async context - acquire slot."""
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        """Exit async context."""
        return None


@dataclass
class SlidingWindowRateLimiter(RateLimiter):
    """At most config.max_requests dispatches per config.window_seconds.

    Attributes:
        config: Rate limiter configuration
        name: Limiter name for logging
        clock: Monotonic time source (seconds)
        sleep: Awaitable sleep function
    """

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "default"
    clock: Clock = time.monotonic
    sleep: Sleeper = asyncio.sleep

    # Internal state (not in __init__ signature)
    _timestamps: deque[float] = field(default_factory=deque, init=False)
    _blocked_until: float = field(default=0.0, init=False)
    _total_acquired: int = field(default=0, init=False)
    _total_waited: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    @classmethod
    def for_tmdb(
        cls,
        max_requests: int = 40,
        window_seconds: float = 1.0,
        buffer_seconds: float = 0.025,
    ) -> "SlidingWindowRateLimiter":
        """Create rate limiter for the TMDB API.

        Hey future me - TMDB allows roughly 40-50 req/s per IP. 40 per rolling second plus
        a 25ms buffer has never produced a 429 for us.
        """
        return cls(
            config=RateLimiterConfig(
                max_requests=max_requests,
                window_seconds=window_seconds,
                buffer_seconds=buffer_seconds,
            ),
            name="tmdb",
        )

    def _evict_expired(self, now: float) -> None:
        window = self.config.window_seconds
        while self._timestamps and now - self._timestamps[0] >= window:
            self._timestamps.popleft()

    async def acquire(self) -> None:
        """Acquire one dispatch slot, waiting if the window is full."""
        async with self._lock:
            while True:
                now = self.clock()
                if now < self._blocked_until:
                    wait_time = self._blocked_until - now
                else:
                    self._evict_expired(now)
                    if len(self._timestamps) < self.config.max_requests:
                        break
                    oldest = self._timestamps[0]
                    wait_time = (
                        self.config.window_seconds
                        - (now - oldest)
                        + self.config.buffer_seconds
                    )

                logger.debug(
                    f"RateLimiter[{self.name}]: window full, waiting {wait_time:.3f}s"
                )
                self._total_waited += wait_time
                await self.sleep(wait_time)

            self._timestamps.append(self.clock())
            self._total_acquired += 1

    def pause(self, seconds: float) -> float:
        """Block dispatches for ``seconds`` (capped by config.max_pause_seconds)."""
        wait_time = max(0.0, min(seconds, self.config.max_pause_seconds))
        self._blocked_until = max(self._blocked_until, self.clock() + wait_time)
        logger.warning(
            f"RateLimiter[{self.name}]: rate limited by server, pausing {wait_time:.1f}s"
        )
        return wait_time

    def reset(self) -> None:
        self._timestamps.clear()
        self._blocked_until = 0.0

    @property
    def in_window(self) -> int:
        """Dispatches inside the current window (for debugging)."""
        self._evict_expired(self.clock())
        return len(self._timestamps)

    def get_stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "policy": "sliding_window",
            "max_requests": self.config.max_requests,
            "window_seconds": self.config.window_seconds,
            "in_window": self.in_window,
            "total_acquired": self._total_acquired,
            "total_waited_seconds": round(self._total_waited, 3),
        }


@dataclass
class FixedDelayRateLimiter(RateLimiter):
    """At least config.min_interval_seconds between consecutive dispatches."""

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "default"
    clock: Clock = time.monotonic
    sleep: Sleeper = asyncio.sleep

    _last_dispatch: float | None = field(default=None, init=False)
    _blocked_until: float = field(default=0.0, init=False)
    _total_acquired: int = field(default=0, init=False)
    _total_waited: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    @classmethod
    def for_musicbrainz(cls, min_interval_seconds: float = 1.5) -> "FixedDelayRateLimiter":
        """Create rate limiter for the MusicBrainz API.

        Hey future me - MusicBrainz is STRICT: 1 req/sec, no bursts, and they ban IPs.
        1.5s gives us headroom for slow responses and clock jitter.
        """
        return cls(
            config=RateLimiterConfig(min_interval_seconds=min_interval_seconds),
            name="musicbrainz",
        )

    async def acquire(self) -> None:
        """Wait until min_interval_seconds passed since the previous dispatch."""
        async with self._lock:
            while True:
                now = self.clock()
                wait_time = self._blocked_until - now
                if self._last_dispatch is not None:
                    wait_time = max(
                        wait_time,
                        self.config.min_interval_seconds - (now - self._last_dispatch),
                    )
                if wait_time <= 0:
                    break

                logger.debug(f"RateLimiter[{self.name}]: waiting {wait_time:.3f}s")
                self._total_waited += wait_time
                await self.sleep(wait_time)

            self._last_dispatch = self.clock()
            self._total_acquired += 1

    def pause(self, seconds: float) -> float:
        wait_time = max(0.0, min(seconds, self.config.max_pause_seconds))
        self._blocked_until = max(self._blocked_until, self.clock() + wait_time)
        logger.warning(
            f"RateLimiter[{self.name}]: rate limited by server, pausing {wait_time:.1f}s"
        )
        return wait_time

    def reset(self) -> None:
        self._last_dispatch = None
        self._blocked_until = 0.0

    def get_stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "policy": "fixed_delay",
            "min_interval_seconds": self.config.min_interval_seconds,
            "total_acquired": self._total_acquired,
            "total_waited_seconds": round(self._total_waited, 3),
        }


__all__ = [
    "FixedDelayRateLimiter",
    "RateLimiter",
    "RateLimiterConfig",
    "SlidingWindowRateLimiter",
]
