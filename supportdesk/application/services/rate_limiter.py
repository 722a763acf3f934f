"""Per-key sliding-window request limiter, kept in process memory."""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable

from supportdesk.domain.errors import RateLimitedError


class SlidingWindowRateLimiter:
    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        message: str = "Too many requests, please try again later",
    ):
        self._limit = limit
        self._window = window_seconds
        self._clock = clock
        self._message = message
        self._hits: dict[str, deque[float]] = {}

    def hit(self, key: str) -> int:
        """Record a request for *key* and return how many remain in the window.

        Raises:
            RateLimitedError: *key* already used up the window. The refused
                request is not counted.
        """
        now = self._clock()
        hits = self._hits.setdefault(key, deque())
        while hits and hits[0] <= now - self._window:
            hits.popleft()
        if len(hits) >= self._limit:
            raise RateLimitedError(self._message)
        hits.append(now)
        return self._limit - len(hits)

