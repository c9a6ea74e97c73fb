import inspect
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional


def _now_ms() -> float:
    return time.monotonic() * 1000


class SlidingWindowRateLimiter:
    def __init__(
        self,
        window_ms: int = 60000,
        max_requests: int = 30,
        clock: Callable[[], float] = _now_ms,
    ):
        """
        window_ms: trailing window length
        max_requests: requests allowed per client inside the window
        clock: millisecond clock, monotonic by default
        """
        self.window_ms = window_ms
        self.max_requests = max_requests
        self.clock = clock
        self.entries: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self.entries)

    def check(self, client_id: str, now: Optional[float] = None) -> bool:
        """Record a request from ``client_id``; True means over the limit."""
        if now is None:
            now = self.clock()
        window_start = now - self.window_ms

        if now - self._last_sweep >= self.window_ms:
            self.sweep(now)

        timestamps = self.entries.get(client_id)
        if timestamps is None:
            timestamps = self.entries[client_id] = deque()

        while timestamps and timestamps[0] <= window_start:
            timestamps.popleft()

        # Limited requests still count against the window
        timestamps.append(now)

        return len(timestamps) > self.max_requests

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop clients with nothing left in the window. Returns how many."""
        if now is None:
            now = self.clock()
        window_start = now - self.window_ms

        stale = [
            client_id
            for client_id, timestamps in self.entries.items()
            if not timestamps or timestamps[-1] <= window_start
        ]
        for client_id in stale:
            del self.entries[client_id]

        self._last_sweep = now
        return len(stale)


async def is_limited(limiter, client_id: str) -> bool:
    """Runs ``limiter.check``, awaiting it for async (Redis) limiters."""
    result = limiter.check(client_id)
    if inspect.isawaitable(result):
        result = await result
    return bool(result)
