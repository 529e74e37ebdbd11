from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from threading import Lock

from app.core.config import RATE_LIMIT_REQUESTS, RATE_LIMIT_WINDOW_SECONDS


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int


class RateLimiterService(ABC):
    @abstractmethod
    def check(self, *, key: str, endpoint: str) -> RateLimitDecision:
        """Decide whether a request for `key` on `endpoint` may proceed."""


class InMemoryRateLimiterService(RateLimiterService):
    """Sliding-window limiter kept in process memory.

    Keyed by (tenant or client address, endpoint). Counters are lost on
    restart and are not shared between workers.
    """

    def __init__(
        self,
        *,
        limit: int = RATE_LIMIT_REQUESTS,
        window_seconds: int = RATE_LIMIT_WINDOW_SECONDS,
        clock=time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._store: dict[tuple[str, str], deque[float]] = {}
        self._lock = Lock()
        self._last_sweep = clock()

    def check(self, *, key: str, endpoint: str) -> RateLimitDecision:
        now = self._clock()

        with self._lock:
            cutoff = now - self.window_seconds
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(cutoff)
                self._last_sweep = now

            bucket = self._store.setdefault((key, endpoint), deque())
            while bucket and bucket[0] <= cutoff:
                bucket.popleft()

            if len(bucket) >= self.limit:
                retry_after = max(1, int(self.window_seconds - (now - bucket[0])))
                return RateLimitDecision(
                    allowed=False,
                    limit=self.limit,
                    remaining=0,
                    retry_after_seconds=retry_after,
                )

            bucket.append(now)
            return RateLimitDecision(
                allowed=True,
                limit=self.limit,
                remaining=max(0, self.limit - len(bucket)),
                retry_after_seconds=0,
            )

    def _sweep(self, cutoff: float) -> None:
        # descarta chaves sem requisições dentro da janela
        idle = [bucket_key for bucket_key, bucket in self._store.items() if not bucket or bucket[-1] <= cutoff]
        for bucket_key in idle:
            del self._store[bucket_key]

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._store)

    def reset(self) -> None:
        with self._lock:
            self._store.clear()
