"""
Rate limiting for user-initiated pushes.

The dispatcher takes any object with an `allow(key) -> bool` method.
InMemoryRateLimiter keeps its window in process memory, so it is only
correct for a single-instance deployment; running several API instances
needs an implementation backed by a shared store.
"""

import time
from typing import Callable, Protocol


class RateLimiter(Protocol):
    def allow(self, key: str) -> bool:
        """Record an attempt for `key` and return whether it is allowed."""
        ...


class InMemoryRateLimiter:
    """
    Sliding-window rate limiter keyed by an arbitrary string (e.g. user id).

    Args:
        max_requests: Maximum attempts allowed in the window.
        window_seconds: Time window in seconds.
        clock: Monotonic time source (tests inject a fake).
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        # {key: [timestamp, ...]}, oldest first; keys with no attempt in the
        # window are dropped
        self._attempts: dict[str, list[float]] = {}

    def __len__(self) -> int:
        """Number of keys currently tracked."""
        return len(self._attempts)

    def _evict_stale(self, cutoff: float) -> None:
        stale = [
            k for k, stamps in self._attempts.items()
            if not stamps or stamps[-1] <= cutoff
        ]
        for k in stale:
            del self._attempts[k]

    def allow(self, key: str) -> bool:
        now = self._clock()
        cutoff = now - self.window_seconds
        self._evict_stale(cutoff)

        recent = [t for t in self._attempts.get(key, []) if t > cutoff]
        if len(recent) >= self.max_requests:
            self._attempts[key] = recent
            return False

        recent.append(now)
        self._attempts[key] = recent
        return True


# Test pushes: 3 per user per 10 minutes
push_test_limiter = InMemoryRateLimiter(max_requests=3, window_seconds=600)
