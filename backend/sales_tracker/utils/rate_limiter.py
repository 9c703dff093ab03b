import math
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Tuple

from sales_tracker.config import API_RATE_LIMIT, LOGIN_RATE_LIMIT


class RateLimiter:
    """
    Sliding-window limiter keyed by client (IP address).

    Identifiers whose window has emptied are dropped, so the map only holds
    clients seen during the last window.
    """

    def __init__(self, max_attempts: int = 5, window_seconds: int = 300, clock: Callable[[], float] = time.monotonic):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()
        self.lock = threading.Lock()

    def _prune(self, identifier: str, now: float):
        hits = self._hits.get(identifier)
        if hits is None:
            return None
        cutoff = now - self.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        if not hits:
            del self._hits[identifier]
            return None
        return hits

    def _sweep(self, now: float):
        # at most once per window
        if now - self._last_sweep < self.window_seconds:
            return
        for identifier in list(self._hits):
            self._prune(identifier, now)
        self._last_sweep = now

    def _retry_after(self, hits: Deque[float], now: float) -> int:
        return max(0, math.ceil(hits[0] + self.window_seconds - now))

    def check(self, identifier: str) -> Tuple[bool, int]:
        """Record an attempt; returns (allowed, seconds until unblocked)"""
        now = self.clock()
        with self.lock:
            self._sweep(now)
            hits = self._prune(identifier, now)
            if hits is not None and len(hits) >= self.max_attempts:
                return False, self._retry_after(hits, now)
            self._hits.setdefault(identifier, deque()).append(now)
            return True, 0

    def is_allowed(self, identifier: str) -> bool:
        return self.check(identifier)[0]

    def get_remaining_time(self, identifier: str) -> int:
        now = self.clock()
        with self.lock:
            hits = self._prune(identifier, now)
            if hits is None or len(hits) < self.max_attempts:
                return 0
            return self._retry_after(hits, now)

    def tracked(self) -> int:
        """Number of identifiers currently held"""
        with self.lock:
            return len(self._hits)

    def reset(self):
        with self.lock:
            self._hits.clear()
            self._last_sweep = self.clock()


login_limiter = RateLimiter(max_attempts=LOGIN_RATE_LIMIT, window_seconds=300)
api_limiter = RateLimiter(max_attempts=API_RATE_LIMIT, window_seconds=60)
